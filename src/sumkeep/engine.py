from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from sumkeep.config import BACKUP_SUFFIX, ERROR_LOG_SUFFIX, FOREIGN_HEADER_LINES
from sumkeep.errors import (
    BackupExists,
    ForeignFormatError,
    HashingFailed,
    InvalidExtension,
    ManifestExists,
    ManifestNotFound,
    ManifestWriteFailed,
    SourceNotFound,
    TargetNotFound,
    UnsupportedAlgorithm,
    UnsupportedExtension,
    UserDeclined,
)
from sumkeep.foreign import parse_foreign_text
from sumkeep.hashing import HashAlgorithm, hash_file, list_files
from sumkeep.manifest import (
    Entry,
    atomic_write_text,
    make_entry,
    read_manifest,
    render_manifest,
    resolve_entry_path,
)

logger = logging.getLogger(__name__)

HashFunction = Callable[[Path, HashAlgorithm], str]
ListFiles = Callable[[Path], Iterable[Path]]


class GenerateMode(Enum):
    CREATE_NEW = "new"
    APPEND_MISSING = "append"
    OVERWRITE = "overwrite"


class MatchMode(Enum):
    BASENAME = "basename"
    PATH = "path"


class Outcome(Enum):
    OK = "OK"
    MISMATCH = "MISMATCH"
    MISSING = "MISSING"


@dataclass(frozen=True, slots=True)
class GenerateOptions:
    algorithm: HashAlgorithm
    mode: GenerateMode = GenerateMode.CREATE_NEW
    confirmed: bool = False
    match: MatchMode = MatchMode.BASENAME


@dataclass(frozen=True, slots=True)
class GenerateResult:
    manifest_path: Path
    mode: GenerateMode
    added: tuple[str, ...]
    written: bool


@dataclass(frozen=True, slots=True)
class VerificationResult:
    path: str
    outcome: Outcome
    expected: str
    actual: str | None = None


@dataclass(frozen=True, slots=True)
class VerificationReport:
    manifest_path: Path
    algorithm: HashAlgorithm
    results: tuple[VerificationResult, ...]
    error_log: Path | None = None

    @property
    def passed(self) -> bool:
        return all(r.outcome is Outcome.OK for r in self.results)

    @property
    def failures(self) -> list[VerificationResult]:
        return [r for r in self.results if r.outcome is not Outcome.OK]

    def count(self, outcome: Outcome) -> int:
        return sum(1 for r in self.results if r.outcome is outcome)


@dataclass(frozen=True, slots=True)
class ImportResult:
    path: Path
    backup_path: Path
    entries: tuple[Entry, ...]


def manifest_path_for(root: str | Path, algorithm: HashAlgorithm) -> Path:
    """Where the manifest for ``root`` lives.

    Directories keep ``<dir>/<dirname>.<ext>`` inside themselves; a single
    file gets ``<file>.<ext>`` beside it.
    """

    root_path = Path(root)
    if root_path.is_dir():
        return root_path / f"{root_path.name}{algorithm.extension}"
    return root_path.with_name(f"{root_path.name}{algorithm.extension}")


def _coerce_algorithm(value: HashAlgorithm | str | None) -> HashAlgorithm:
    if value is None:
        raise UnsupportedAlgorithm("A hash algorithm (md5 or sha256) must be selected")
    return HashAlgorithm.from_name(value)


def _relative_name(path: Path, base_dir: Path) -> str:
    try:
        return path.relative_to(base_dir).as_posix()
    except ValueError:
        return path.as_posix()


def _match_key(rel_path: str, match: MatchMode) -> str:
    if match is MatchMode.BASENAME:
        return rel_path.rsplit("/", 1)[-1]
    return rel_path


def _error_log_path(manifest_path: Path, now: datetime) -> Path:
    stamp = int(now.timestamp())
    candidate = manifest_path.with_name(f"{manifest_path.name}.{stamp}{ERROR_LOG_SUFFIX}")
    n = 1
    while candidate.exists():
        candidate = manifest_path.with_name(f"{manifest_path.name}.{stamp}-{n}{ERROR_LOG_SUFFIX}")
        n += 1
    return candidate


class ManifestEngine:
    """Generate, verify and import checksum manifests.

    The engine never prompts: every choice (algorithm, mode, confirmation)
    arrives already resolved. Hashing and directory listing are injected so
    callers can swap them out.
    """

    def __init__(
        self,
        hash_function: HashFunction = hash_file,
        list_files: ListFiles = list_files,
    ) -> None:
        self._hash_function = hash_function
        self._list_files = list_files

    def _digest(self, path: Path, algorithm: HashAlgorithm) -> str:
        try:
            return self._hash_function(path, algorithm).lower()
        except OSError as exc:
            raise HashingFailed(f"Cannot hash {path}: {exc}") from exc

    def _candidates(self, root: Path, manifest_path: Path) -> list[Path]:
        if not root.is_dir():
            return [root]
        files: list[Path] = []
        for p in self._list_files(root):
            p = Path(p)
            if not p.is_absolute():
                p = root / p
            if p == manifest_path:
                continue
            files.append(p)
        return files

    def _hash_all(self, files: list[Path], base_dir: Path, algorithm: HashAlgorithm) -> list[Entry]:
        entries: list[Entry] = []
        for p in files:
            entries.append(make_entry(self._digest(p, algorithm), _relative_name(p, base_dir)))
            logger.debug("hashed %s", p)
        return entries

    def generate_manifest(self, root: str | Path, options: GenerateOptions) -> GenerateResult:
        root_path = Path(root).absolute()
        if not root_path.exists():
            raise TargetNotFound(f"Path does not exist: {root_path}")

        algorithm = _coerce_algorithm(options.algorithm)
        manifest_path = manifest_path_for(root_path, algorithm)
        base_dir = manifest_path.parent
        mode = options.mode

        if manifest_path.exists():
            if mode is GenerateMode.CREATE_NEW:
                raise ManifestExists(f"Testfile already exists: {manifest_path}")
            if mode is GenerateMode.OVERWRITE and not options.confirmed:
                raise UserDeclined(f"Overwriting {manifest_path} was not confirmed")
        else:
            mode = GenerateMode.CREATE_NEW

        files = self._candidates(root_path, manifest_path)

        if mode is GenerateMode.APPEND_MISSING:
            return self._append_missing(manifest_path, files, algorithm, options.match)

        entries = self._hash_all(files, base_dir, algorithm)
        atomic_write_text(manifest_path, render_manifest(entries))
        logger.info("wrote %s with %d entries (%s)", manifest_path, len(entries), mode.value)
        return GenerateResult(
            manifest_path=manifest_path,
            mode=mode,
            added=tuple(e.path for e in entries),
            written=True,
        )

    def _append_missing(
        self,
        manifest_path: Path,
        files: list[Path],
        algorithm: HashAlgorithm,
        match: MatchMode,
    ) -> GenerateResult:
        base_dir = manifest_path.parent
        # Keys come from the manifest as it was on disk; files staged in this
        # run do not shadow each other.
        known = {_match_key(e.path, match) for e in read_manifest(manifest_path)}

        staged: list[Entry] = []
        for p in files:
            rel = _relative_name(p, base_dir)
            if _match_key(rel, match) in known:
                continue
            staged.append(make_entry(self._digest(p, algorithm), rel))
            logger.debug("staged %s", rel)

        if not staged:
            logger.info("no new files for %s", manifest_path)
            return GenerateResult(manifest_path, GenerateMode.APPEND_MISSING, (), written=False)

        existing = manifest_path.read_text(encoding="utf-8")
        if existing and not existing.endswith("\n"):
            existing += "\n"
        atomic_write_text(manifest_path, existing + render_manifest(staged))
        logger.info("appended %d entries to %s", len(staged), manifest_path)
        return GenerateResult(
            manifest_path=manifest_path,
            mode=GenerateMode.APPEND_MISSING,
            added=tuple(e.path for e in staged),
            written=True,
        )

    def verify(
        self,
        target: str | Path,
        algorithm: HashAlgorithm | str | None = None,
        *,
        now: datetime | None = None,
    ) -> VerificationReport:
        target_path = Path(target).absolute()
        if not target_path.exists():
            raise TargetNotFound(f"Path does not exist: {target_path}")

        if target_path.is_dir():
            resolved = _coerce_algorithm(algorithm)
            manifest_path = manifest_path_for(target_path, resolved)
            if not manifest_path.is_file():
                raise ManifestNotFound(f"Testfile {manifest_path} not found")
        else:
            resolved = HashAlgorithm.from_extension(target_path)
            if algorithm is not None and HashAlgorithm.from_name(algorithm) is not resolved:
                raise UnsupportedExtension(
                    f"{target_path.name} is a {resolved.value} testfile, "
                    f"not {HashAlgorithm.from_name(algorithm).value}"
                )
            manifest_path = target_path

        base_dir = manifest_path.parent
        results: list[VerificationResult] = []
        for entry in read_manifest(manifest_path):
            file_path = resolve_entry_path(entry, base_dir)
            try:
                actual = self._hash_function(file_path, resolved).lower()
            except OSError as exc:
                logger.debug("cannot read %s: %s", file_path, exc)
                results.append(VerificationResult(entry.path, Outcome.MISSING, entry.digest))
                continue
            outcome = Outcome.OK if actual == entry.digest else Outcome.MISMATCH
            results.append(VerificationResult(entry.path, outcome, entry.digest, actual))

        report = VerificationReport(manifest_path, resolved, tuple(results))
        if report.passed:
            logger.info("verified %d entries in %s", len(results), manifest_path)
            return report

        if now is None:
            now = datetime.now(UTC)
        log_path = _error_log_path(manifest_path, now)
        lines = [f"{r.path}: {r.outcome.value}\n" for r in report.failures]
        atomic_write_text(log_path, "".join(lines))
        logger.info("%d of %d entries failed; log at %s", len(lines), len(results), log_path)
        return VerificationReport(manifest_path, resolved, tuple(results), error_log=log_path)

    def import_foreign_manifest(
        self,
        path: str | Path,
        *,
        confirmed: bool,
        header_lines: int = FOREIGN_HEADER_LINES,
    ) -> ImportResult:
        source = Path(path).absolute()
        try:
            algorithm = HashAlgorithm.from_extension(source)
        except UnsupportedExtension as exc:
            raise InvalidExtension(
                "Invalid extension. Only .md5, or .sha256 are allowed."
            ) from exc

        if not source.is_file():
            raise SourceNotFound(f"File does not exist: {source}")
        if not confirmed:
            raise UserDeclined("Operation cancelled by the user.")

        backup = source.with_name(source.name + BACKUP_SUFFIX)
        if backup.exists():
            raise BackupExists(f"Backup already exists, refusing to replace it: {backup}")

        try:
            text = source.read_bytes().decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ForeignFormatError(f"{source}: not valid UTF-8 ({exc.reason})") from exc

        entries = parse_foreign_text(text, header_lines=header_lines)
        for entry in entries:
            if len(entry.digest) != algorithm.digest_length:
                raise ForeignFormatError(
                    f"{source.name}: {entry.path} has a {len(entry.digest)}-character hash, "
                    f"expected {algorithm.digest_length} for {algorithm.value}"
                )

        # Parse fully before touching the disk; after the rename the backup
        # is the only copy until the converted file lands.
        try:
            source.rename(backup)
        except OSError as exc:
            raise ManifestWriteFailed(f"Cannot rename {source} to {backup}: {exc}") from exc
        logger.info("backed up %s to %s", source, backup)

        atomic_write_text(source, render_manifest(entries))
        logger.info("converted %d entries into %s", len(entries), source)
        return ImportResult(path=source, backup_path=backup, entries=tuple(entries))


__all__ = [
    "HashFunction",
    "ListFiles",
    "GenerateMode",
    "MatchMode",
    "Outcome",
    "GenerateOptions",
    "GenerateResult",
    "VerificationResult",
    "VerificationReport",
    "ImportResult",
    "ManifestEngine",
    "manifest_path_for",
]
