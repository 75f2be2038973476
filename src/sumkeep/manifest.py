from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from sumkeep.errors import ManifestFormatError, ManifestWriteFailed

logger = logging.getLogger(__name__)

# "<digest>  <path>" as written by this tool, plus the "<digest> *<path>"
# binary marker emitted by md5sum/sha256sum.
_LINE_RE = re.compile(r"^(?P<digest>[0-9a-fA-F]{32}|[0-9a-fA-F]{64}) [ *](?P<path>.+)$")


@dataclass(frozen=True, slots=True)
class Entry:
    digest: str
    path: str

    @property
    def basename(self) -> str:
        return PurePosixPath(self.path).name

    def to_line(self) -> str:
        return f"{self.digest}  {self.path}\n"


def make_entry(digest: str, path: str) -> Entry:
    return Entry(digest=digest.lower(), path=path)


def parse_manifest_text(text: str, *, source: str = "manifest") -> list[Entry]:
    entries: list[Entry] = []
    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        if not raw_line.strip():
            continue
        match = _LINE_RE.match(raw_line)
        if match is None:
            raise ManifestFormatError(f"{source}:{lineno}: improperly formatted line: {raw_line!r}")
        entries.append(make_entry(match.group("digest"), match.group("path")))
    return entries


def read_manifest(path: str | Path) -> list[Entry]:
    manifest_path = Path(path)
    try:
        text = manifest_path.read_text(encoding="utf-8-sig", errors="strict")
    except UnicodeDecodeError as exc:
        raise ManifestFormatError(f"{manifest_path}: not valid UTF-8 ({exc.reason})") from exc
    return parse_manifest_text(text, source=str(manifest_path))


def render_manifest(entries: list[Entry]) -> str:
    return "".join(entry.to_line() for entry in entries)


def resolve_entry_path(entry: Entry, base_dir: Path) -> Path:
    candidate = Path(entry.path)
    if candidate.is_absolute():
        return candidate
    return base_dir / candidate


def atomic_write_text(path: str | Path, text: str) -> None:
    """Replace ``path`` with ``text`` in one step (temp file, fsync, os.replace).

    On any error the temporary file is removed and the previous content of
    ``path``, if any, is left untouched. Text that cannot be encoded as UTF-8
    (file names that were not UTF-8 on disk) is refused before anything is
    created.
    """

    dest = Path(path)
    try:
        data = text.encode("utf-8", errors="strict")
    except UnicodeEncodeError as exc:
        bad = text[exc.start : exc.end].encode("utf-8", errors="surrogateescape")
        raise ManifestWriteFailed(
            f"Failed to write {dest}: a file name is not valid UTF-8 (bytes {bad!r})"
        ) from exc

    tmp = dest.with_name(f".{dest.name}.tmp")
    try:
        with tmp.open("wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(str(tmp), str(dest))
    except OSError as exc:
        tmp.unlink(missing_ok=True)
        raise ManifestWriteFailed(f"Failed to write {dest}: {exc}") from exc
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug("wrote %s (%d bytes)", dest, len(data))


__all__ = [
    "Entry",
    "make_entry",
    "parse_manifest_text",
    "read_manifest",
    "render_manifest",
    "resolve_entry_path",
    "atomic_write_text",
]
