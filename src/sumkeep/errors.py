from __future__ import annotations


class SumkeepError(Exception):
    """Base class for every error raised by sumkeep operations."""


class TargetNotFound(SumkeepError, FileNotFoundError):
    """The file or directory to hash or verify does not exist."""


class ManifestNotFound(SumkeepError, FileNotFoundError):
    """A directory was given for verification but holds no testfile."""


class SourceNotFound(SumkeepError, FileNotFoundError):
    """The foreign testfile to import does not exist."""


class UnsupportedAlgorithm(SumkeepError, ValueError):
    """No usable hash algorithm was given."""


class UnsupportedExtension(SumkeepError, ValueError):
    """A testfile name does not end in a known algorithm extension."""


class InvalidExtension(SumkeepError, ValueError):
    """An import source is not named ``.md5`` or ``.sha256``."""


class ManifestFormatError(SumkeepError, ValueError):
    """A testfile has a malformed line or is not valid UTF-8."""


class ForeignFormatError(SumkeepError, ValueError):
    """A foreign testfile line could not be converted."""


class ManifestExists(SumkeepError, FileExistsError):
    """A new testfile was requested but one is already present."""


class BackupExists(SumkeepError, FileExistsError):
    """An import would replace an earlier ``.backup`` file."""


class ManifestWriteFailed(SumkeepError, OSError):
    """A testfile, backup or error log could not be written."""


class HashingFailed(SumkeepError, OSError):
    """A file could not be read while computing its digest."""


class UserDeclined(SumkeepError):
    """A destructive step was not confirmed; nothing was written."""


__all__ = [
    "SumkeepError",
    "TargetNotFound",
    "ManifestNotFound",
    "SourceNotFound",
    "UnsupportedAlgorithm",
    "UnsupportedExtension",
    "InvalidExtension",
    "ManifestFormatError",
    "ForeignFormatError",
    "ManifestExists",
    "BackupExists",
    "ManifestWriteFailed",
    "HashingFailed",
    "UserDeclined",
]
