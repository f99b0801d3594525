"""
Corpus scanner module for flatty.

Walks the tree once in a deterministic order, classifies every file, estimates
its size and assigns its grouping key, producing the run's Manifest.
"""

from __future__ import annotations

import os
import posixpath
from collections.abc import Callable
from pathlib import Path

from .classifier import FileClassifier, SkipReason
from .config import (
    ROOT_GROUP_KEY,
    FileUnit,
    FlattyError,
    GroupBucket,
    GroupMode,
    Manifest,
    RunConfig,
    ScanStats,
)
from .utils import estimate_tokens, is_relative_to


class ScanError(FlattyError):
    """Error reading a file during the scan."""

    pass


def group_key_for(rel_path: str, mode: GroupMode, category: str) -> str | None:
    """
    Get the grouping key for a file.

    Directory mode keys on the direct parent directory only; ancestors never
    receive a descendant's size.
    """
    if mode is GroupMode.DIRECTORY:
        parent = posixpath.dirname(rel_path)
        return parent or ROOT_GROUP_KEY
    if mode is GroupMode.TYPE:
        return category
    return None


class CorpusScanner:
    """
    Builds the Manifest for a directory tree.

    Handles traversal, classification, size estimation and key assignment.
    """

    def __init__(
        self,
        root_path: Path,
        classifier: FileClassifier,
        mode: GroupMode = GroupMode.DIRECTORY,
        output_dir: Path | None = None,
        skip_unreadable: bool = False,
        on_file: Callable[[FileUnit], None] | None = None,
        on_skip: Callable[[str, Exception], None] | None = None,
    ):
        """
        Initialize the scanner.

        Args:
            root_path: Root directory to scan
            classifier: Eligibility and category rules
            mode: Grouping mode used to assign keys
            output_dir: Output directory, excluded when it lies inside the root
            skip_unreadable: Skip unreadable files instead of raising ScanError
            on_file: Called for every file added to the manifest
            on_skip: Called with (relative path, error) for skipped unreadable files
        """
        self.root_path = root_path.resolve()
        self.classifier = classifier
        self.mode = GroupMode(mode)
        self.output_dir = output_dir.resolve() if output_dir is not None else None
        if self.output_dir == self.root_path:
            self.output_dir = None
        self.skip_unreadable = skip_unreadable
        self.on_file = on_file
        self.on_skip = on_skip
        self.stats = ScanStats()

    def scan(self) -> Manifest:
        """
        Scan the tree and build the manifest.

        Returns:
            The Manifest for this run.

        Raises:
            ScanError: If an eligible file cannot be read and skip_unreadable is off.
        """
        files: list[FileUnit] = []
        buckets: dict[str, GroupBucket] = {}
        total_size = 0

        for rel_path in self._walk_files():
            self.stats.files_scanned += 1
            file_path = self.root_path / rel_path

            reason = self.classifier.check_rules(Path(rel_path))
            if reason is not None:
                self._count_skip(reason)
                continue

            try:
                content = file_path.read_bytes()
            except OSError as e:
                if not self.skip_unreadable:
                    raise ScanError(f"Failed to read {rel_path}: {e}") from e
                self.stats.files_skipped_unreadable += 1
                if self.on_skip is not None:
                    self.on_skip(rel_path, e)
                continue

            if not self.classifier.is_text(content):
                self._count_skip(SkipReason.BINARY)
                continue

            category = self.classifier.category(rel_path)
            unit = FileUnit(
                path=file_path,
                relative_path=rel_path,
                size_estimate=estimate_tokens(content),
                group_key=group_key_for(rel_path, self.mode, category),
                size_bytes=len(content),
                category=category,
            )

            files.append(unit)
            total_size += unit.size_estimate
            if unit.group_key is not None:
                bucket = buckets.get(unit.group_key)
                if bucket is None:
                    bucket = buckets[unit.group_key] = GroupBucket(key=unit.group_key)
                bucket.add(unit)

            self.stats.files_included += 1
            self.stats.total_bytes_included += unit.size_bytes
            self.stats.categories_detected[category] = (
                self.stats.categories_detected.get(category, 0) + 1
            )

            if self.on_file is not None:
                self.on_file(unit)

        self.stats.total_tokens_estimated = total_size

        return Manifest(
            root=self.root_path,
            mode=self.mode,
            files=tuple(files),
            buckets=buckets,
            total_size=total_size,
        )

    def _count_skip(self, reason: SkipReason) -> None:
        if reason is SkipReason.DEFAULT:
            self.stats.files_skipped_default += 1
        elif reason is SkipReason.INCLUDE:
            self.stats.files_skipped_include += 1
        elif reason is SkipReason.EXCLUDE:
            self.stats.files_skipped_exclude += 1
        elif reason is SkipReason.GITIGNORE:
            self.stats.files_skipped_gitignore += 1
        elif reason is SkipReason.BINARY:
            self.stats.files_skipped_binary += 1

    def _walk_files(self) -> list[str]:
        """
        Collect every regular file below the root.

        Returns:
            Root-relative posix paths in lexicographic order.
        """
        found: list[str] = []
        dirs_to_process = [self.root_path]

        while dirs_to_process:
            current_dir = dirs_to_process.pop()

            try:
                with os.scandir(current_dir) as entries:
                    entries_list = sorted(entries, key=lambda e: e.name)
            except OSError as e:
                if current_dir == self.root_path or not self.skip_unreadable:
                    raise ScanError(f"Failed to list {current_dir}: {e}") from e
                if self.on_skip is not None:
                    self.on_skip(current_dir.relative_to(self.root_path).as_posix(), e)
                continue

            for entry in entries_list:
                if entry.is_symlink():
                    continue

                entry_path = Path(entry.path)

                if entry.is_dir():
                    if self.output_dir is not None and is_relative_to(entry_path, self.output_dir):
                        continue
                    reason = self.classifier.check_dir(entry_path)
                    if reason is SkipReason.GITIGNORE:
                        self.stats.dirs_skipped_gitignore += 1
                    if reason is not None:
                        continue
                    dirs_to_process.append(entry_path)

                elif entry.is_file():
                    found.append(entry_path.relative_to(self.root_path).as_posix())

        found.sort()
        return found


def scan_corpus(
    config: RunConfig,
    on_file: Callable[[FileUnit], None] | None = None,
    on_skip: Callable[[str, Exception], None] | None = None,
) -> tuple[Manifest, ScanStats]:
    """
    Convenience function to scan the tree described by a run configuration.

    Returns:
        Tuple of (Manifest, ScanStats)
    """
    classifier = FileClassifier(
        root_path=config.root,
        include_patterns=config.include_patterns,
        exclude_patterns=config.exclude_patterns,
        respect_gitignore=config.respect_gitignore,
    )
    scanner = CorpusScanner(
        root_path=config.root,
        classifier=classifier,
        mode=config.mode,
        output_dir=config.output_dir,
        skip_unreadable=config.skip_unreadable,
        on_file=on_file,
        on_skip=on_skip,
    )

    manifest = scanner.scan()
    return manifest, scanner.stats
