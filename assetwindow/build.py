"""Build output discovery: the artifacts a build emitted and where they live."""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Iterator, List, Sequence
from urllib.parse import urljoin

from .sync.matcher import match_files

logger = logging.getLogger("assetwindow.build")

FINGERPRINT_PATTERN = re.compile(r"(?:^|[.\-_])[0-9a-fA-F]{8,}(?=[.\-_]|$)")
IGNORED_DIRS = {".git", ".assetwindow", "__pycache__"}


@dataclass
class BuildOutput:
    """Artifacts emitted by one build, keyed by their emitted name."""

    root: Path
    files: Dict[str, Path] = field(default_factory=dict)

    @property
    def names(self) -> FrozenSet[str]:
        return frozenset(self.files)

    def select(self, patterns: Sequence[str] = ()) -> Dict[str, Path]:
        """Return the release set (name -> local path) after glob filtering."""
        selected = match_files(self.files, patterns)
        return {name: self.files[name] for name in sorted(selected)}


def scan_build_output(directory: Path) -> BuildOutput:
    """Collect every file under ``directory`` as an emitted artifact."""

    root = directory.expanduser().resolve()
    if not root.exists():
        raise FileNotFoundError(f"Build output directory does not exist: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"Build output path is not a directory: {root}")

    output = BuildOutput(root=root)
    for file_path in _iter_files(root):
        name = file_path.relative_to(root).as_posix()
        output.files[name] = file_path

    logger.info("Found %d emitted file(s) under %s", len(output.files), root)
    return output


def _iter_files(root: Path) -> Iterator[Path]:
    for file_path in sorted(root.rglob("*")):
        if not file_path.is_file():
            continue
        relative_parts = file_path.relative_to(root).parts
        if any(part in IGNORED_DIRS for part in relative_parts[:-1]):
            continue
        yield file_path


def resolve_public_path(bucket_domain: str, upload_path: str) -> str:
    """Public base URL artifacts are served from, with a trailing slash."""
    if not bucket_domain:
        return f"/{upload_path}/" if upload_path else "/"
    return urljoin(bucket_domain, upload_path).rstrip("/") + "/"


def is_fingerprinted(name: str) -> bool:
    """True when the file name carries a content hash segment."""
    return bool(FINGERPRINT_PATTERN.search(posixpath.basename(name)))


def unfingerprinted(names: Iterable[str]) -> List[str]:
    """Names that will be treated as immutable even though they have no hash."""
    return sorted(name for name in names if not is_fingerprinted(name))


__all__ = [
    "BuildOutput",
    "is_fingerprinted",
    "resolve_public_path",
    "scan_build_output",
    "unfingerprinted",
]
