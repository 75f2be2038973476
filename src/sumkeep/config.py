"""
Runtime defaults for sumkeep.

Values here are module-level constants; the ``resolve_*`` helpers read the
matching ``SUMKEEP_*`` environment variable and fall back to the constant.
"""

from __future__ import annotations

import os

# Read size used when streaming files through a hash function.
CHUNK_SIZE = 1024 * 1024

# Foreign (TeraCopy) manifests carry a fixed preamble before the first entry.
FOREIGN_HEADER_LINES = 3

DEFAULT_ALGORITHM: str | None = None
DEFAULT_MATCH = "basename"
DEFAULT_LOG_LEVEL = "WARNING"

BACKUP_SUFFIX = ".backup"
ERROR_LOG_SUFFIX = ".error.log"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def resolve_algorithm_name() -> str | None:
    value = _env("SUMKEEP_ALGORITHM")
    if value is None:
        return DEFAULT_ALGORITHM
    value = value.lower()
    if value not in {"md5", "sha256"}:
        raise ValueError(f"SUMKEEP_ALGORITHM must be 'md5' or 'sha256', got {value!r}")
    return value


def resolve_match_name() -> str:
    value = _env("SUMKEEP_MATCH")
    if value is None:
        return DEFAULT_MATCH
    value = value.lower()
    if value not in {"basename", "path"}:
        raise ValueError(f"SUMKEEP_MATCH must be 'basename' or 'path', got {value!r}")
    return value


def resolve_header_lines() -> int:
    value = _env("SUMKEEP_HEADER_LINES")
    if value is None:
        return FOREIGN_HEADER_LINES
    try:
        lines = int(value)
    except ValueError:
        raise ValueError(f"SUMKEEP_HEADER_LINES must be an integer, got {value!r}") from None
    if lines < 0:
        raise ValueError(f"SUMKEEP_HEADER_LINES must be >= 0, got {lines}")
    return lines


def resolve_log_level() -> str:
    value = _env("SUMKEEP_LOG_LEVEL")
    if value is None:
        return DEFAULT_LOG_LEVEL
    value = value.upper()
    if value not in _LOG_LEVELS:
        raise ValueError(f"SUMKEEP_LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}, got {value!r}")
    return value


__all__ = [
    "CHUNK_SIZE",
    "FOREIGN_HEADER_LINES",
    "DEFAULT_ALGORITHM",
    "DEFAULT_MATCH",
    "DEFAULT_LOG_LEVEL",
    "BACKUP_SUFFIX",
    "ERROR_LOG_SUFFIX",
    "resolve_algorithm_name",
    "resolve_match_name",
    "resolve_header_lines",
    "resolve_log_level",
]
