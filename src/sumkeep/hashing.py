from __future__ import annotations

import hashlib
from enum import Enum
from pathlib import Path
from typing import BinaryIO

from sumkeep.config import CHUNK_SIZE
from sumkeep.errors import UnsupportedAlgorithm, UnsupportedExtension


class HashAlgorithm(Enum):
    MD5 = "md5"
    SHA256 = "sha256"

    @property
    def extension(self) -> str:
        return f".{self.value}"

    @property
    def digest_length(self) -> int:
        return 32 if self is HashAlgorithm.MD5 else 64

    def new(self):
        return hashlib.new(self.value)

    @classmethod
    def from_name(cls, name: str | HashAlgorithm) -> HashAlgorithm:
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            raise UnsupportedAlgorithm(f"Unsupported hash algorithm: {name!r}") from None

    @classmethod
    def from_extension(cls, path: str | Path) -> HashAlgorithm:
        suffix = Path(path).suffix.lower()
        for algorithm in cls:
            if algorithm.extension == suffix:
                return algorithm
        raise UnsupportedExtension(
            f"Unrecognized manifest extension {suffix or '(none)'!r}; expected .md5 or .sha256"
        )


def hash_stream(stream: BinaryIO, algorithm: HashAlgorithm) -> str:
    digest = algorithm.new()
    for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
        digest.update(chunk)
    return digest.hexdigest()


def hash_file(path: str | Path, algorithm: HashAlgorithm) -> str:
    file_path = Path(path)
    with file_path.open("rb") as f:
        return hash_stream(f, algorithm)


def list_files(root: str | Path) -> list[Path]:
    """Return every regular file under ``root``, ordered by relative POSIX path."""

    root_path = Path(root)
    files = [p for p in root_path.rglob("*") if p.is_file()]
    files.sort(key=lambda p: p.relative_to(root_path).as_posix())
    return files


__all__ = [
    "HashAlgorithm",
    "hash_stream",
    "hash_file",
    "list_files",
]
