"""Glob filtering of emitted artifact names."""

from __future__ import annotations

import fnmatch
import posixpath
from typing import FrozenSet, Iterable, List, Sequence, Tuple

# Always part of the pattern list, so positive patterns never narrow the
# release set; only "!" exclusions remove files.
MATCH_ALL = "**"


def _split_patterns(patterns: Sequence[str]) -> Tuple[List[str], List[str]]:
    include: List[str] = [MATCH_ALL]
    exclude: List[str] = []
    for raw in patterns:
        pattern = raw.strip()
        if not pattern:
            continue
        if pattern.startswith("!"):
            negated = pattern[1:].strip()
            if negated:
                exclude.append(negated)
        else:
            include.append(pattern)
    return include, exclude


def _matches(name: str, pattern: str) -> bool:
    """Match a name against one glob; slash-free patterns match the basename."""
    if fnmatch.fnmatchcase(name, pattern):
        return True
    if "/" not in pattern:
        return fnmatch.fnmatchcase(posixpath.basename(name), pattern)
    return False


def match_files(names: Iterable[str], patterns: Sequence[str] = ()) -> FrozenSet[str]:
    """Reduce the emitted names to the candidate release set."""

    include, exclude = _split_patterns(patterns)
    selected = set()
    for name in names:
        if not any(_matches(name, pattern) for pattern in include):
            continue
        if any(_matches(name, pattern) for pattern in exclude):
            continue
        selected.add(name)
    return frozenset(selected)


__all__ = ["MATCH_ALL", "match_files"]
