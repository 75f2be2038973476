"""
Parser for TeraCopy-style checksum files.

Layout handled::

    ; header line 1
    ; header line 2
    ; header line 3
    AB12...EF *subdir\\file.txt

Everything after the fixed preamble is one entry per line: an optional
leading ``*``, the hash, whitespace, an optional ``*`` binary marker and a
Windows-style path. Some writers repeat ``<hash> *`` in front of the
filename; that duplicate is dropped.
"""

from __future__ import annotations

import re

from sumkeep.errors import ForeignFormatError
from sumkeep.manifest import Entry, make_entry

_ENTRY_RE = re.compile(r"^\*?(?P<digest>[0-9a-fA-F]+)\s+\*?(?P<rest>.*)$")
_DUPLICATE_PREFIX_RE = re.compile(r"^[0-9a-fA-F]{32,64} \*")


def parse_foreign_line(line: str, *, lineno: int = 0) -> Entry:
    # Trailing spaces can belong to the file name.
    match = _ENTRY_RE.match(line.rstrip("\r\n").lstrip())
    if match is None:
        raise ForeignFormatError(f"line {lineno}: cannot find a hash in {line!r}")

    digest = match.group("digest")
    if len(digest) not in (32, 64):
        raise ForeignFormatError(
            f"line {lineno}: hash has {len(digest)} hex characters, expected 32 or 64"
        )

    path = match.group("rest").replace("\\", "/")
    path = _DUPLICATE_PREFIX_RE.sub("", path, count=1)
    if not path:
        raise ForeignFormatError(f"line {lineno}: missing file name after hash")
    return make_entry(digest, path)


def parse_foreign_text(text: str, *, header_lines: int = 3) -> list[Entry]:
    if header_lines < 0:
        raise ValueError(f"header_lines must be >= 0, got {header_lines}")
    entries: list[Entry] = []
    lines = text.splitlines()
    for lineno, line in enumerate(lines[header_lines:], start=header_lines + 1):
        if not line.strip():
            continue
        entries.append(parse_foreign_line(line, lineno=lineno))
    return entries


__all__ = ["parse_foreign_line", "parse_foreign_text"]
