"""
Chunk planner module for flatty.

Partitions a Manifest into an ordered stream of ChunkPlans that respect the
token budget wherever a single file or group allows it.

Strategies:
- directory: greedy first-fit over directory buckets sorted by size, with
  file-level sub-chunking for directories that alone exceed the budget
- type: scan order, new chunk on category change or budget overflow
- size: scan order, new chunk on budget overflow
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from itertools import count

from .config import ChunkPlan, ConfigError, FileUnit, GroupMode, Manifest


def sub_chunk_files(files: Sequence[FileUnit], budget: int) -> list[list[FileUnit]]:
    """Split an ordered file sequence into budget-sized runs.

    Files keep their order and are never split. A new run starts when adding the
    next file would exceed the budget and the current run already holds tokens,
    so a file larger than the budget ends up alone in its own run.

    Args:
        files: Files in the order they must be emitted.
        budget: Target tokens per run.

    Returns:
        Non-empty runs of files; every input file appears in exactly one run.
    """
    runs: list[list[FileUnit]] = []
    current: list[FileUnit] = []
    current_size = 0

    for unit in files:
        if current and current_size > 0 and current_size + unit.size_estimate > budget:
            runs.append(current)
            current = []
            current_size = 0
        current.append(unit)
        current_size += unit.size_estimate

    if current:
        runs.append(current)

    return runs


def _total(files: Sequence[FileUnit]) -> int:
    return sum(f.size_estimate for f in files)


class ChunkStrategy:
    """Base class for planning strategies.

    Subclasses implement `_plan`; ordinals are assigned here so numbering is
    contiguous and depends only on the order plans are finalized in.
    """

    mode: GroupMode

    def __init__(self, budget: int):
        self.budget = budget
        self._ordinals = count(1)

    def plan(self, manifest: Manifest) -> Iterator[ChunkPlan]:
        """Yield plans one at a time, each finalized before the next begins."""
        if manifest.is_empty:
            return
        yield from self._plan(manifest)

    def _plan(self, manifest: Manifest) -> Iterator[ChunkPlan]:
        raise NotImplementedError

    def _finalize(
        self,
        files: Sequence[FileUnit],
        group_keys: Sequence[str] = (),
        escalated: bool = False,
        whole_corpus: bool = False,
        part: int = 0,
    ) -> ChunkPlan:
        return ChunkPlan(
            ordinal=next(self._ordinals),
            group_keys=tuple(group_keys),
            files=tuple(files),
            total_size=_total(files),
            mode=self.mode,
            escalated=escalated,
            whole_corpus=whole_corpus,
            part=part,
        )


class DirectoryStrategy(ChunkStrategy):
    """Packs whole directories into chunks, largest first."""

    mode = GroupMode.DIRECTORY

    def _plan(self, manifest: Manifest) -> Iterator[ChunkPlan]:
        buckets = manifest.buckets

        # Whole corpus fits: one chunk, grouped by directory
        if manifest.total_size <= self.budget:
            keys = sorted(buckets)
            files = [unit for key in keys for unit in buckets[key].members]
            yield self._finalize(files, keys, whole_corpus=True)
            return

        # Ties broken by key so unchanged trees give identical boundaries
        ordered = sorted(buckets.values(), key=lambda b: (-b.total_size, b.key))

        current_keys: list[str] = []
        current_files: list[FileUnit] = []
        current_size = 0

        for bucket in ordered:
            if current_size + bucket.total_size <= self.budget:
                current_keys.append(bucket.key)
                current_files.extend(bucket.members)
                current_size += bucket.total_size
                continue

            if current_keys:
                yield self._finalize(current_files, current_keys)
                current_keys, current_files, current_size = [], [], 0

            if bucket.total_size > self.budget:
                # Directory alone cannot fit an empty chunk; split it by file
                runs = sub_chunk_files(bucket.members, self.budget)
                for part, run in enumerate(runs, start=1):
                    yield self._finalize(run, [bucket.key], escalated=True, part=part)
            else:
                current_keys = [bucket.key]
                current_files = list(bucket.members)
                current_size = bucket.total_size

        if current_keys:
            yield self._finalize(current_files, current_keys)


class TypeStrategy(ChunkStrategy):
    """Keeps runs of same-category files together, in scan order."""

    mode = GroupMode.TYPE

    def _plan(self, manifest: Manifest) -> Iterator[ChunkPlan]:
        current_key: str | None = None
        current_files: list[FileUnit] = []
        current_size = 0

        for unit in manifest.files:
            if current_files and (
                unit.group_key != current_key
                or (current_size > 0 and current_size + unit.size_estimate > self.budget)
            ):
                yield self._plan_for(current_files, current_key)
                current_files, current_size = [], 0

            current_key = unit.group_key
            current_files.append(unit)
            current_size += unit.size_estimate

        if current_files:
            yield self._plan_for(current_files, current_key)

    def _plan_for(self, files: list[FileUnit], key: str | None) -> ChunkPlan:
        keys = [key] if key is not None else []
        return self._finalize(files, keys, escalated=_total(files) > self.budget)


class SizeStrategy(ChunkStrategy):
    """Splits the ungrouped scan-ordered sequence by budget only."""

    mode = GroupMode.SIZE

    def _plan(self, manifest: Manifest) -> Iterator[ChunkPlan]:
        if manifest.total_size <= self.budget:
            yield self._finalize(manifest.files, whole_corpus=True)
            return

        for run in sub_chunk_files(manifest.files, self.budget):
            yield self._finalize(run, escalated=_total(run) > self.budget)


STRATEGIES: dict[GroupMode, type[ChunkStrategy]] = {
    GroupMode.DIRECTORY: DirectoryStrategy,
    GroupMode.TYPE: TypeStrategy,
    GroupMode.SIZE: SizeStrategy,
}


def get_strategy(mode: GroupMode | str, budget: int) -> ChunkStrategy:
    """Create the planning strategy for a grouping mode.

    Raises:
        ConfigError: If the mode is unknown or the budget is not a positive integer.
    """
    try:
        mode = GroupMode(mode)
    except ValueError:
        raise ConfigError(f"Invalid grouping mode: {mode!r}")

    if isinstance(budget, bool) or not isinstance(budget, int) or budget <= 0:
        raise ConfigError(f"Token limit must be a positive integer, got {budget!r}")

    return STRATEGIES[mode](budget)


def plan_chunks(
    manifest: Manifest, budget: int, mode: GroupMode | str | None = None
) -> Iterator[ChunkPlan]:
    """Plan the chunks for a manifest.

    The strategy is validated eagerly, so configuration errors surface before
    the first plan is requested.

    Args:
        manifest: Scan result; its keys must match the grouping mode.
        budget: Target tokens per chunk.
        mode: Grouping mode; defaults to the mode the manifest was scanned with.

    Returns:
        An iterator of ChunkPlans in ordinal order.

    Raises:
        ConfigError: If the mode is unknown, differs from the manifest's, or the
            budget is invalid.
    """
    strategy = get_strategy(manifest.mode if mode is None else mode, budget)
    if strategy.mode is not manifest.mode:
        raise ConfigError(
            f"Manifest was scanned for {manifest.mode.value!r} mode, "
            f"cannot plan in {strategy.mode.value!r} mode"
        )
    return strategy.plan(manifest)
