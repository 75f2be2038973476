"""Checksum testfiles (md5/sha256 manifests) for files and directory trees."""

from sumkeep.engine import (
    GenerateMode,
    GenerateOptions,
    GenerateResult,
    ImportResult,
    ManifestEngine,
    MatchMode,
    Outcome,
    VerificationReport,
    VerificationResult,
    manifest_path_for,
)
from sumkeep.hashing import HashAlgorithm

__version__ = "1.0.1"

__all__ = [
    "GenerateMode",
    "GenerateOptions",
    "GenerateResult",
    "HashAlgorithm",
    "ImportResult",
    "ManifestEngine",
    "MatchMode",
    "Outcome",
    "VerificationReport",
    "VerificationResult",
    "manifest_path_for",
]
