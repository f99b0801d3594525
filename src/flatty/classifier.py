"""
File classification for flatty.

Decides whether a path is eligible for output (fixed default exclusions,
include/exclude globs, .gitignore, text vs. binary) and which type category it
belongs to.
"""

from __future__ import annotations

import fnmatch
from collections.abc import Iterable
from enum import Enum
from pathlib import Path

import pathspec

from .config import (
    DEFAULT_EXCLUDE_DIR_GLOBS,
    DEFAULT_EXCLUDE_DIRS,
    DEFAULT_EXCLUDE_FILES,
    get_category,
)
from .utils import is_binary_content, is_binary_file, normalize_path


class SkipReason(str, Enum):
    """Why a path was rejected."""

    DEFAULT = "default"
    INCLUDE = "include"
    EXCLUDE = "exclude"
    GITIGNORE = "gitignore"
    BINARY = "binary"


def is_default_excluded_dir(name: str) -> bool:
    """Check whether a directory name is always excluded."""
    if name in DEFAULT_EXCLUDE_DIRS:
        return True
    return any(fnmatch.fnmatch(name, pattern) for pattern in DEFAULT_EXCLUDE_DIR_GLOBS)


def is_default_excluded(rel_path: str) -> bool:
    """Check a root-relative path against the fixed default exclusions.

    Args:
        rel_path: Path relative to the scan root, forward slashes.

    Returns:
        True if any directory component or the filename is always excluded.
    """
    parts = normalize_path(rel_path).split("/")
    if parts[-1] in DEFAULT_EXCLUDE_FILES:
        return True
    return any(is_default_excluded_dir(part) for part in parts[:-1])


def _normalize_pattern(pattern: str) -> str:
    pattern = normalize_path(pattern.strip())
    while pattern.startswith("./"):
        pattern = pattern[2:]
    return pattern


def match_glob(rel_path: str, patterns: Iterable[str]) -> str | None:
    """
    Check if a path matches any shell-glob pattern.

    Patterns are tried against the full relative path and against the basename.
    A trailing `/**` matches everything below a directory prefix.

    Returns the matching pattern or None.
    """
    rel_path_normalized = normalize_path(rel_path)
    name = rel_path_normalized.rsplit("/", 1)[-1]

    for pattern in patterns:
        normalized = _normalize_pattern(pattern)
        if not normalized:
            continue
        # Handle directory patterns
        if normalized.endswith("/**"):
            dir_pattern = normalized[:-3]
            if rel_path_normalized.startswith(dir_pattern + "/") or rel_path_normalized == dir_pattern:
                return pattern
            if fnmatch.fnmatch(rel_path_normalized, normalized):
                return pattern
        elif fnmatch.fnmatch(rel_path_normalized, normalized):
            return pattern
        elif fnmatch.fnmatch(name, normalized):
            return pattern

    return None


class GitIgnoreParser:
    """
    Parser for .gitignore files.

    Supports nested .gitignore files in subdirectories.
    """

    def __init__(self, root_path: Path):
        """
        Initialize the parser.

        Args:
            root_path: Root directory of the tree
        """
        self.root_path = root_path.resolve()
        self._specs: dict[Path, pathspec.GitIgnoreSpec] = {}
        self._load_gitignores()

    def _load_gitignores(self) -> None:
        """Load all .gitignore files below the root, skipping excluded directories."""
        for gitignore_path in sorted(self.root_path.rglob(".gitignore")):
            rel_parts = gitignore_path.relative_to(self.root_path).parts[:-1]
            if any(is_default_excluded_dir(part) for part in rel_parts):
                continue
            self._load_gitignore_file(gitignore_path, gitignore_path.parent)

    def _load_gitignore_file(self, gitignore_path: Path, base_path: Path) -> None:
        """Load a single .gitignore file."""
        try:
            with open(gitignore_path, "r", encoding="utf-8", errors="replace") as f:
                patterns = f.read().splitlines()
        except OSError:
            return  # Unreadable .gitignore files are ignored

        # Filter out comments and empty lines
        patterns = [
            p.strip() for p in patterns
            if p.strip() and not p.strip().startswith("#")
        ]

        if patterns:
            self._specs[base_path] = pathspec.GitIgnoreSpec.from_lines(patterns)

    def is_ignored(self, file_path: Path, is_dir: bool = False) -> bool:
        """
        Check if a path is ignored by .gitignore.

        Args:
            file_path: Absolute path to the file or directory
            is_dir: Whether the path is a directory

        Returns:
            True if the path should be ignored
        """
        file_path = file_path.resolve()

        # Check each .gitignore from most specific to least
        for base_path, spec in sorted(
            self._specs.items(),
            key=lambda x: len(x[0].parts),
            reverse=True
        ):
            try:
                rel_path = file_path.relative_to(base_path).as_posix()
            except ValueError:
                continue  # Path is not under this base path
            if spec.match_file(rel_path):
                return True
            if is_dir and spec.match_file(rel_path + "/"):
                return True

        return False


class FileClassifier:
    """
    Decides which files are eligible and how they are categorized.

    Rules are applied in order: fixed default exclusions, include patterns,
    exclude patterns, .gitignore, then text/binary detection.
    """

    def __init__(
        self,
        root_path: Path,
        include_patterns: Iterable[str] = (),
        exclude_patterns: Iterable[str] = (),
        respect_gitignore: bool = True,
    ):
        """
        Initialize the classifier.

        Args:
            root_path: Root directory of the tree
            include_patterns: If non-empty, a path must match at least one
            exclude_patterns: Any match rejects a path
            respect_gitignore: Whether to respect .gitignore files
        """
        self.root_path = root_path.resolve()
        self.include_patterns = tuple(p for p in include_patterns if p.strip())
        self.exclude_patterns = tuple(p for p in exclude_patterns if p.strip())

        self._gitignore: GitIgnoreParser | None = None
        if respect_gitignore:
            self._gitignore = GitIgnoreParser(self.root_path)

    def _relative(self, path: Path) -> str:
        path = Path(path)
        if not path.is_absolute():
            return normalize_path(str(path))
        return path.resolve().relative_to(self.root_path).as_posix()

    def check_dir(self, dir_path: Path) -> SkipReason | None:
        """Get the reason a directory is pruned, or None to walk into it."""
        if is_default_excluded_dir(dir_path.name):
            return SkipReason.DEFAULT
        if self._gitignore is not None and self._gitignore.is_ignored(dir_path, is_dir=True):
            return SkipReason.GITIGNORE
        return None

    def check_rules(self, path: Path) -> SkipReason | None:
        """
        Apply every path-based rule.

        Args:
            path: Absolute path, or a path relative to the root

        Returns:
            The reason the path is rejected, or None if it passes.
        """
        rel_path = self._relative(path)

        if is_default_excluded(rel_path):
            return SkipReason.DEFAULT

        if self.include_patterns and match_glob(rel_path, self.include_patterns) is None:
            return SkipReason.INCLUDE

        if match_glob(rel_path, self.exclude_patterns) is not None:
            return SkipReason.EXCLUDE

        if self._gitignore is not None and self._gitignore.is_ignored(self.root_path / rel_path):
            return SkipReason.GITIGNORE

        return None

    def is_text(self, content: bytes) -> bool:
        """Check already-read content for text-ness."""
        return not is_binary_content(content[:8192])

    def is_eligible(self, path: Path) -> bool:
        """
        Check whether a file is eligible for output.

        Args:
            path: Absolute path, or a path relative to the root

        Returns:
            True if the path passes every rule and looks like text.
        """
        if self.check_rules(path) is not None:
            return False
        abs_path = path if Path(path).is_absolute() else self.root_path / path
        return not is_binary_file(Path(abs_path))

    def category(self, path: Path | str) -> str:
        """Get the type category for a path."""
        return get_category(str(path))
