"""Transfer exclusion rules, evaluated on paths relative to the transfer root."""

import fnmatch
import os
import posixpath
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

# Never needed on the build machine; some of these get very large
DEFAULT_EXCLUDES = (
    "node_modules",
    ".git",
    "platforms",
    "hooks",
    "nodemon.json",
    ".DS_Store",
    "/demo",
    "/demo-*",
    ".nsremote.config.json",
)

WalkFunction = Callable[[str], Iterator[Tuple[str, List[str], List[str]]]]


class TransferFilter:
    """
    Exclusion predicate for file transfers.

    A pattern without "/" matches any single path component, so "node_modules"
    excludes node_modules/pkg/index.js and src/node_modules/x.js alike.
    A pattern containing "/" is matched against the relative path and each of
    its leading prefixes, so "app/App_Resources/Android" excludes that whole
    subtree only. A leading "/" anchors a single name to the root: "/demo"
    excludes demo/ but not app/views/demo/.
    """

    def __init__(self, patterns: Iterable[str] = DEFAULT_EXCLUDES):
        self.patterns = tuple(p.rstrip("/") for p in patterns if p and p.strip("/"))

    def with_patterns(self, extra: Iterable[str]) -> "TransferFilter":
        return TransferFilter(self.patterns + tuple(extra))

    def excludes(self, relative_path: str) -> bool:
        parts = [p for p in relative_path.replace("\\", "/").split("/") if p and p != "."]
        if not parts:
            return False
        prefixes = ["/".join(parts[:i]) for i in range(1, len(parts) + 1)]
        for pattern in self.patterns:
            if "/" in pattern:
                anchored = pattern.lstrip("/")
                if any(fnmatch.fnmatchcase(prefix, anchored) for prefix in prefixes):
                    return True
            elif any(fnmatch.fnmatchcase(part, pattern) for part in parts):
                return True
        return False

    def __call__(self, relative_path: str) -> bool:
        """True when the path should be transferred."""
        return not self.excludes(relative_path)

    def __repr__(self) -> str:
        return f"TransferFilter({list(self.patterns)!r})"


def walk_tree(
    root: str,
    transfer_filter: Optional[TransferFilter] = None,
    walk: WalkFunction = os.walk
) -> Tuple[List[str], List[str]]:
    """
    Collect the directories and files under root that pass the filter.

    Excluded directories are pruned, never descended into.

    Returns:
        (directories, files) as POSIX paths relative to root, parents first
    """
    transfer_filter = transfer_filter or TransferFilter()
    directories: List[str] = []
    files: List[str] = []

    for current, dirnames, filenames in walk(root):
        rel_dir = Path(current).relative_to(root).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir

        kept = sorted(d for d in dirnames if transfer_filter(posixpath.join(rel_dir, d)))
        dirnames[:] = kept
        directories.extend(posixpath.join(rel_dir, d) for d in kept)

        for name in sorted(filenames):
            rel = posixpath.join(rel_dir, name)
            if transfer_filter(rel):
                files.append(rel)

    return directories, files
