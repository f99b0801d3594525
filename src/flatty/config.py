"""
Configuration models and defaults for flatty.

Holds the run configuration, the data model shared by the scanner, planner and
renderer, and the fixed tables (default exclusions, type categories).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any

DEFAULT_TOKEN_LIMIT = 100_000
DEFAULT_SEPARATOR = "---"
DEFAULT_OUTPUT_DIR = Path("~/flattened")

# Filenames embed the run timestamp, so it must not contain colons.
TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

# Key used for files that live directly in the scan root (directory mode).
ROOT_GROUP_KEY = "."

# Category for files whose extension is not in EXTENSION_TO_CATEGORY (type mode).
OTHER_CATEGORY = "other"


class FlattyError(Exception):
    """Base error for flatty."""

    pass


class ConfigError(FlattyError):
    """Invalid run configuration. Raised before any output is produced."""

    pass


class GroupMode(str, Enum):
    """Grouping policy used to plan chunks."""

    DIRECTORY = "directory"
    TYPE = "type"
    SIZE = "size"


# Directory names that are never descended into.
# Version control metadata, dependency-manager caches and package metadata.
DEFAULT_EXCLUDE_DIRS: set[str] = {
    # Version control
    ".git",
    ".svn",
    ".hg",
    ".bzr",
    # Dependency managers
    "node_modules",
    "bower_components",
    ".swiftpm",
    "Pods",
    ".gradle",
    "__pycache__",
    ".venv",
    "venv",
    ".tox",
    ".nox",
    ".mypy_cache",
    ".pytest_cache",
    ".ruff_cache",
    # Package metadata
    ".eggs",
}

# Glob patterns for directory names that are never descended into.
DEFAULT_EXCLUDE_DIR_GLOBS: set[str] = {
    "*.egg-info",
    "*.dist-info",
}

# OS artifact files that are always rejected.
DEFAULT_EXCLUDE_FILES: set[str] = {
    ".DS_Store",
    "Thumbs.db",
    "desktop.ini",
    "Icon\r",
}


# Type categories by extension
EXTENSION_TO_CATEGORY: dict[str, str] = {
    ".py": "python",
    ".pyc": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "javascript",
    ".tsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".go": "golang",
    ".rb": "ruby",
    ".java": "java",
    ".class": "java",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".cc": "cpp",
    ".cxx": "cpp",
    ".swift": "swift",
    ".m": "objective-c",
    ".mm": "objective-c",
    ".html": "html",
    ".htm": "html",
    ".css": "css",
    ".scss": "css",
    ".sass": "css",
    ".less": "css",
    ".md": "docs",
    ".markdown": "docs",
    ".rst": "docs",
    ".json": "config",
    ".yaml": "config",
    ".yml": "config",
    ".toml": "config",
    ".sh": "shell",
    ".bash": "shell",
    ".zsh": "shell",
    ".rs": "rust",
}


def get_category(filename: str) -> str:
    """Get the type category for a filename.

    Args:
        filename: File name or path; only the final extension is considered.

    Returns:
        A category label such as `"python"` or `"docs"`, or `"other"`.
    """
    ext = Path(filename).suffix.lower()
    return EXTENSION_TO_CATEGORY.get(ext, OTHER_CATEGORY)


@dataclass(frozen=True)
class FileUnit:
    """A scanned, eligible file.

    Attributes:
        path: Absolute path to the file on disk.
        relative_path: Path relative to the scan root, using forward slashes.
        size_estimate: Estimated size in tokens, derived from content only.
        group_key: Directory or category key; None in size mode.
        size_bytes: Raw content length in bytes.
        category: Type category (always computed, used for reporting).
    """

    path: Path
    relative_path: str
    size_estimate: int
    group_key: str | None = None
    size_bytes: int = 0
    category: str = OTHER_CATEGORY

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "category": self.category,
            "group_key": self.group_key,
            "path": self.relative_path,
            "size_bytes": self.size_bytes,
            "size_estimate": self.size_estimate,
        }


@dataclass
class GroupBucket:
    """All files sharing a grouping key, with their summed size.

    Members stay in insertion (scan) order and `total_size` is updated
    incrementally as they are added.
    """

    key: str
    total_size: int = 0
    members: list[FileUnit] = field(default_factory=list)

    def add(self, unit: FileUnit) -> None:
        """Append a file and account for its size."""
        self.members.append(unit)
        self.total_size += unit.size_estimate


@dataclass(frozen=True)
class Manifest:
    """The complete, read-only result of one scan.

    Attributes:
        root: Scan root directory.
        mode: Grouping mode the keys were assigned for.
        files: Every eligible file, in scan order.
        buckets: Group buckets by key, in first-seen order. Empty in size mode.
        total_size: Sum of all file size estimates.
    """

    root: Path
    mode: GroupMode
    files: tuple[FileUnit, ...] = ()
    buckets: Mapping[str, GroupBucket] = field(default_factory=dict)
    total_size: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "files", tuple(self.files))
        object.__setattr__(self, "buckets", MappingProxyType(dict(self.buckets)))

    @property
    def is_empty(self) -> bool:
        return not self.files

    def __len__(self) -> int:
        return len(self.files)


@dataclass(frozen=True)
class ChunkPlan:
    """An ordered, finalized set of files that becomes one output document.

    Attributes:
        ordinal: 1-based sequence number within the run.
        group_keys: Keys of the groups contributing files (empty in size mode).
        files: Files in output order.
        total_size: Sum of the files' size estimates.
        mode: Grouping mode that produced the plan.
        escalated: True when produced by oversize escalation.
        whole_corpus: True when the whole corpus fit in this single plan.
        part: 1-based index within an escalated group, 0 otherwise.
    """

    ordinal: int
    group_keys: tuple[str, ...]
    files: tuple[FileUnit, ...]
    total_size: int
    mode: GroupMode = GroupMode.DIRECTORY
    escalated: bool = False
    whole_corpus: bool = False
    part: int = 0

    @property
    def file_count(self) -> int:
        return len(self.files)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "escalated": self.escalated,
            "files": [f.relative_path for f in self.files],
            "group_keys": list(self.group_keys),
            "mode": self.mode.value,
            "ordinal": self.ordinal,
            "part": self.part,
            "total_size": self.total_size,
            "whole_corpus": self.whole_corpus,
        }


@dataclass
class ScanStats:
    """Statistics from scanning a directory tree.

    Attributes:
        files_scanned: Total file paths visited during traversal.
        files_included: Files that made it into the manifest.
        files_skipped_default: Files rejected by the fixed default exclusions.
        files_skipped_include: Files matching no include pattern.
        files_skipped_exclude: Files matching an exclude pattern.
        files_skipped_gitignore: Files ignored by `.gitignore`.
        files_skipped_binary: Files detected as binary.
        files_skipped_unreadable: Files skipped because they could not be read.
        dirs_skipped_gitignore: Directories pruned by `.gitignore` (their files
            are never visited, so they are not in `files_skipped_gitignore`).
        total_bytes_included: Raw bytes across included files.
        total_tokens_estimated: Sum of size estimates across included files.
        categories_detected: File counts per type category.
    """

    files_scanned: int = 0
    files_included: int = 0
    files_skipped_default: int = 0
    files_skipped_include: int = 0
    files_skipped_exclude: int = 0
    files_skipped_gitignore: int = 0
    files_skipped_binary: int = 0
    files_skipped_unreadable: int = 0
    dirs_skipped_gitignore: int = 0
    total_bytes_included: int = 0
    total_tokens_estimated: int = 0
    categories_detected: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization.

        Output is deterministic: all dicts are sorted by key.
        """
        return {
            "categories_detected": dict(
                sorted(self.categories_detected.items(), key=lambda x: (-x[1], x[0]))
            ),
            "dirs_skipped_gitignore": self.dirs_skipped_gitignore,
            "files_included": self.files_included,
            "files_scanned": self.files_scanned,
            "files_skipped": {
                "binary": self.files_skipped_binary,
                "default": self.files_skipped_default,
                "exclude": self.files_skipped_exclude,
                "gitignore": self.files_skipped_gitignore,
                "include": self.files_skipped_include,
                "unreadable": self.files_skipped_unreadable,
            },
            "total_bytes_included": self.total_bytes_included,
            "total_tokens_estimated": self.total_tokens_estimated,
        }


@dataclass
class RunConfig:
    """Main configuration for a flatty run.

    Attributes:
        root: Directory tree to flatten.
        output_dir: Directory the chunk files are written into.
        mode: Grouping mode (`directory`, `type`, or `size`).
        token_limit: Target token budget per chunk.
        include_patterns: Glob patterns; if any are set a file must match one.
        exclude_patterns: Glob patterns; any match rejects a file.
        separator: Delimiter line written around each file path.
        respect_gitignore: Whether `.gitignore` rules should be applied.
        skip_unreadable: Skip unreadable files with a warning instead of aborting.
        verbose: Whether to print per-file progress.
    """

    root: Path = field(default_factory=Path.cwd)
    output_dir: Path = DEFAULT_OUTPUT_DIR
    mode: GroupMode = GroupMode.DIRECTORY
    token_limit: int = DEFAULT_TOKEN_LIMIT
    include_patterns: tuple[str, ...] = ()
    exclude_patterns: tuple[str, ...] = ()
    separator: str = DEFAULT_SEPARATOR
    respect_gitignore: bool = True
    skip_unreadable: bool = False
    verbose: bool = False

    def __post_init__(self) -> None:
        """Validate and normalize configuration after initialization.

        Raises:
            ConfigError: If the mode is unknown, the token limit is not a positive
                integer, or the root is not an existing directory.
        """
        try:
            self.mode = GroupMode(self.mode)
        except ValueError:
            valid = ", ".join(m.value for m in GroupMode)
            raise ConfigError(f"Invalid grouping mode: {self.mode!r} (expected one of: {valid})")

        if isinstance(self.token_limit, bool) or not isinstance(self.token_limit, int):
            raise ConfigError(f"Token limit must be an integer, got {self.token_limit!r}")
        if self.token_limit <= 0:
            raise ConfigError(f"Token limit must be positive, got {self.token_limit}")

        if not self.separator or "\n" in self.separator:
            raise ConfigError("Separator must be a non-empty single line")

        self.root = Path(self.root).expanduser().resolve()
        if not self.root.exists():
            raise ConfigError(f"Path does not exist: {self.root}")
        if not self.root.is_dir():
            raise ConfigError(f"Path is not a directory: {self.root}")

        self.output_dir = Path(self.output_dir).expanduser().resolve()
        self.include_patterns = tuple(self.include_patterns)
        self.exclude_patterns = tuple(self.exclude_patterns)


@dataclass(frozen=True)
class RunContext:
    """Per-run ambient values passed explicitly to naming and rendering.

    Attributes:
        project_name: Name used in headers and filenames (the root's basename).
        timestamp: Run timestamp, shared by every chunk of the run.
        output_dir: Directory chunk files are written into.
        separator: Delimiter line written around each file path.
    """

    project_name: str
    timestamp: datetime
    output_dir: Path
    separator: str = DEFAULT_SEPARATOR

    @property
    def timestamp_label(self) -> str:
        """Filename-safe form of the run timestamp."""
        return self.timestamp.strftime(TIMESTAMP_FORMAT)

    @classmethod
    def from_config(cls, config: RunConfig, now: datetime | None = None) -> RunContext:
        """Build the run context for a configuration.

        Args:
            config: Validated run configuration.
            now: Run timestamp; defaults to the current local time.

        Returns:
            A `RunContext` for the run.
        """
        return cls(
            project_name=config.root.name or "root",
            timestamp=now if now is not None else datetime.now().replace(microsecond=0),
            output_dir=config.output_dir,
            separator=config.separator,
        )
