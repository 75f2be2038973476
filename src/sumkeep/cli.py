from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from sumkeep.config import (
    resolve_algorithm_name,
    resolve_header_lines,
    resolve_log_level,
    resolve_match_name,
)
from sumkeep.engine import (
    GenerateMode,
    GenerateOptions,
    ManifestEngine,
    MatchMode,
    manifest_path_for,
)
from sumkeep.errors import (
    InvalidExtension,
    SumkeepError,
    TargetNotFound,
    UnsupportedAlgorithm,
    UnsupportedExtension,
    UserDeclined,
)
from sumkeep.hashing import HashAlgorithm
from sumkeep.report import write_report

logger = logging.getLogger("sumkeep")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_VERIFY_FAILED = 2

_ALGORITHM_MENU = {"1": HashAlgorithm.MD5, "2": HashAlgorithm.SHA256}
_EXISTING_MENU = {"1": "append", "2": "overwrite", "3": "exit"}


def _setup_logging(verbose: bool, log_file: str | None) -> None:
    """Console logging to stderr plus an optional DEBUG file log."""
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    level = logging.DEBUG if verbose else getattr(logging, resolve_log_level())
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(file_handler)


def _ask(prompt: str) -> str:
    try:
        return input(prompt).strip()
    except EOFError:
        return ""


def _confirm(prompt: str) -> bool:
    return _ask(prompt).lower() == "y"


def _resolve_algorithm(args: argparse.Namespace, title: str) -> HashAlgorithm:
    name = args.algorithm or resolve_algorithm_name()
    if name:
        return HashAlgorithm.from_name(name)

    print(title)
    print("[1] md5")
    print("[2] sha256")
    choice = _ask("Enter your choice (1/2): ")
    if choice not in _ALGORITHM_MENU:
        raise UnsupportedAlgorithm("That doesn't make any sense. Exiting.")
    return _ALGORITHM_MENU[choice]


def _existing_manifest_choice(manifest: Path) -> str:
    name = manifest.name
    print(f'Testfile "{name}" already exists in the directory.')
    print(f'[1] Hash only new files, add them to existing testfile "{name}" (faster, non-destructive).')
    print(f'[2] Re-hash everything and overwrite testfile "{name}" with new hashes (slower, situational).')
    print(f'[3] Exit without modifying existing testfile "{name}".')
    choice = _ask("Enter your choice (1/2/3): ")
    if choice not in _EXISTING_MENU:
        raise UserDeclined("That doesn't make any sense. Exiting.")
    return _EXISTING_MENU[choice]


def _cmd_hash(args: argparse.Namespace, engine: ManifestEngine) -> int:
    target = Path(args.path)
    if not target.exists():
        raise TargetNotFound(f"Path does not exist: {target}")

    algorithm = _resolve_algorithm(args, "Choose a hashing method:")
    match = MatchMode(args.match or resolve_match_name())
    manifest = manifest_path_for(target, algorithm)

    mode = GenerateMode.CREATE_NEW
    confirmed = False
    if manifest.exists():
        if args.mode:
            choice = args.mode
        elif target.is_dir():
            choice = _existing_manifest_choice(manifest)
        else:
            print(f'Testfile "{manifest.name}" already exists.')
            choice = "overwrite"

        if choice == "exit":
            print("Exited without touching the testfile.")
            return EXIT_OK
        mode = GenerateMode(choice)

        if mode is GenerateMode.OVERWRITE:
            if target.is_dir():
                prompt = (
                    "Are you sure you want to re-hash all the files? "
                    "This will overwrite the existing testfile. (y/n) "
                )
            else:
                prompt = "Do you wish to overwrite it with a new hash? (y/n) "
            confirmed = args.yes or _confirm(prompt)
            if not confirmed:
                raise UserDeclined("You decided against it and exited.")

    result = engine.generate_manifest(
        target,
        GenerateOptions(algorithm=algorithm, mode=mode, confirmed=confirmed, match=match),
    )

    if result.mode is GenerateMode.APPEND_MISSING:
        if not result.written:
            print("No new files have been detected not already in the testfile.")
            print("Testfile update is not needed.")
            return EXIT_OK
        print("Files not present in the testfile:")
        for rel in result.added:
            print(f"  - {rel}")
        print("New files have been hashed and added to the existing testfile.")
        return EXIT_OK

    print(f'New testfile "{result.manifest_path.name}" written successfully.')
    return EXIT_OK


def _cmd_verify(args: argparse.Namespace, engine: ManifestEngine) -> int:
    target = Path(args.path)
    algorithm: HashAlgorithm | None = None
    if target.is_dir():
        algorithm = _resolve_algorithm(args, "Choose a hashing method to verify:")
    elif args.algorithm:
        algorithm = HashAlgorithm.from_name(args.algorithm)

    report = engine.verify(target, algorithm)
    if args.report:
        write_report(args.report, report)

    if report.passed:
        print("Everything is OK.")
        return EXIT_OK

    print(f"Verification errors detected. Check the error log for yourself at: {report.error_log}")
    return EXIT_VERIFY_FAILED


def _cmd_import(args: argparse.Namespace, engine: ManifestEngine) -> int:
    source = Path(args.path)
    try:
        ext = HashAlgorithm.from_extension(source).value
    except UnsupportedExtension as exc:
        raise InvalidExtension("Invalid extension. Only .md5, or .sha256 are allowed.") from exc

    confirmed = args.yes or _confirm(
        f"This function will attempt to convert a TeraCopy {ext} testfile into the native format. "
        f'Original will be renamed "filename.{ext}.backup" without any changes, and a new one will '
        "be created with the name of the original. Would you like to proceed? (y/n): "
    )
    header_lines = args.header_lines if args.header_lines is not None else resolve_header_lines()
    result = engine.import_foreign_manifest(source, confirmed=confirmed, header_lines=header_lines)

    print(
        f'Conversion complete. Original has been renamed to "{result.backup_path}" and a new '
        f'testfile has been created as "{result.path}" ({len(result.entries)} entries).'
    )
    return EXIT_OK


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from None
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


_COMMANDS = {
    "hash": _cmd_hash,
    "verify": _cmd_verify,
    "import": _cmd_import,
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sumkeep",
        description=(
            "Create, extend and verify md5/sha256 testfiles for files and directory trees, "
            "or import a TeraCopy testfile. Exit codes: 0=ok, 1=error or declined, "
            "2=verification found errors."
        ),
    )
    parser.add_argument("action", choices=sorted(_COMMANDS), help="Operation to run")
    parser.add_argument("path", help="File or directory (hash/verify) or testfile (verify/import)")
    parser.add_argument(
        "-a",
        "--algorithm",
        choices=[a.value for a in HashAlgorithm],
        default=None,
        help="Hash algorithm (default: SUMKEEP_ALGORITHM or ask)",
    )
    parser.add_argument(
        "-m",
        "--mode",
        choices=["new", "append", "overwrite", "exit"],
        default=None,
        help="hash: what to do when the testfile already exists (default: ask)",
    )
    parser.add_argument(
        "--match",
        choices=[m.value for m in MatchMode],
        default=None,
        help="hash --mode append: treat a file as listed by basename or by full path "
        "(default: SUMKEEP_MATCH or basename)",
    )
    parser.add_argument("-y", "--yes", action="store_true", help="Confirm destructive steps")
    parser.add_argument("--report", default=None, help="verify: also write a JSON report here")
    parser.add_argument(
        "--header-lines",
        type=_non_negative_int,
        default=None,
        help="import: preamble lines to skip (default: SUMKEEP_HEADER_LINES or 3)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr")
    parser.add_argument("--log-file", default=None, help="Also write a debug log to this file")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        _setup_logging(args.verbose, args.log_file)
        return _COMMANDS[args.action](args, ManifestEngine())
    except UserDeclined as exc:
        print(exc)
        return EXIT_ERROR
    except (SumkeepError, OSError, ValueError) as exc:
        logger.debug("%s failed", args.action, exc_info=True)
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
