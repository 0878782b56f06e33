"""Regular-expression search over symbol names and a registry of source files."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional


def _strcmp_key(name: str) -> bytes:
    return name.encode("utf-8")


def re_search(names: Iterable[Optional[str]], pattern: str) -> list[str]:
    """Return the names matching ``pattern`` case-insensitively.

    Names whose whole text is covered by the match come first; the rest
    follow in byte order.  An empty or invalid pattern matches nothing,
    and unnamed entries (``None``) are skipped.
    """
    if not pattern:
        return []
    try:
        regex = re.compile(pattern, re.IGNORECASE)
    except re.error:
        return []

    matches = []
    for name in names:
        if name is None:
            continue
        found = regex.search(name)
        if found is None:
            continue
        exact = (found.end() - found.start()) == len(name)
        matches.append((not exact, _strcmp_key(name), name))

    matches.sort(key=lambda item: (item[0], item[1]))
    return [name for _, _, name in matches]


@dataclass(eq=False)
class SourceFile:
    """A configuration source file known to the parser."""

    name: str


class FileRegistry:
    """Keeps one ``SourceFile`` per file name, newest first."""

    def __init__(self) -> None:
        self._files: list[SourceFile] = []
        self._by_name: dict[str, SourceFile] = {}

    def lookup(self, name: str) -> SourceFile:
        """Return the file registered under ``name``, registering it if it is new."""
        existing = self._by_name.get(name)
        if existing is not None:
            return existing
        entry = SourceFile(name)
        self._files.insert(0, entry)
        self._by_name[name] = entry
        return entry

    def __iter__(self) -> Iterator[SourceFile]:
        return iter(list(self._files))

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name