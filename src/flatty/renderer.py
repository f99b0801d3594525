"""
Chunk renderer for flatty.

Serializes a ChunkPlan into a plain-text document: `#` metadata header, an
optional whole-corpus directory listing, a `---` delimiter, then one delimited
block per file.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path

from .config import ROOT_GROUP_KEY, ChunkPlan, FlattyError, GroupMode, Manifest, RunContext
from .naming import chunk_filename
from .utils import atomic_write_text, read_text

HEADER_DELIMITER = "---"
GENERATED_FORMAT = "%Y-%m-%d %H:%M:%S"


class RenderError(FlattyError):
    """Error reading file content or writing a chunk."""

    pass


def render_structure(manifest: Manifest) -> list[str]:
    """Render the directory listing shown in directory-mode headers.

    Every directory bucket is listed in sorted order, indented by depth, with
    its own (non-cumulative) token total.

    Args:
        manifest: Directory-mode manifest.

    Returns:
        Header lines, each starting with `#`.
    """
    lines = [
        "# Complete Repository Structure:",
        "# (showing all directories and their token counts)",
    ]

    for key in sorted(manifest.buckets):
        bucket = manifest.buckets[key]
        if key == ROOT_GROUP_KEY:
            lines.append(f"# ./ (~{bucket.total_size} tokens)")
            continue
        parts = key.split("/")
        indent = "  " * (len(parts) - 1)
        lines.append(f"# {indent}{parts[-1]}/ (~{bucket.total_size} tokens)")

    return lines


def render_header(plan: ChunkPlan, manifest: Manifest, context: RunContext) -> list[str]:
    """Build the metadata header lines for a chunk."""
    lines = [
        f"# Project: {context.project_name}",
        f"# Generated: {context.timestamp.strftime(GENERATED_FORMAT)}",
        f"# Mode: {plan.mode.value}",
    ]

    if not plan.whole_corpus:
        lines.append(f"# Part: {plan.ordinal}")

    if plan.mode is GroupMode.TYPE and plan.group_keys:
        lines.append(f"# Type: {plan.group_keys[0]}")

    if plan.part > 0:
        note = "exceeds token limit, splitting files" if plan.part == 1 else "continuation"
        lines.append(f"# Directory: {plan.group_keys[0]} ({note})")

    lines.append(f"# Total Tokens: ~{plan.total_size}")
    lines.append(f"# Files: {plan.file_count}")

    if plan.mode is GroupMode.DIRECTORY:
        lines.append("#")
        lines.extend(render_structure(manifest))
        if plan.part == 0:
            lines.append("#")
            lines.append("# Directories included in this chunk:")
            for key in plan.group_keys:
                bucket = manifest.buckets.get(key)
                size = bucket.total_size if bucket is not None else 0
                lines.append(f"#   {key} (~{size} tokens)")

    lines.append(HEADER_DELIMITER)
    return lines


def render_file_block(rel_path: str, content: str, separator: str) -> str:
    """Render one file as a delimited block."""
    return f"{separator}\n{rel_path}\n{separator}\n{content}\n"


def render_chunk(plan: ChunkPlan, manifest: Manifest, context: RunContext) -> str:
    """
    Render a chunk document.

    Args:
        plan: Finalized plan to render.
        manifest: Manifest the plan was produced from (for the structure listing).
        context: Run-wide values (project name, timestamp, separator).

    Returns:
        The complete document text.

    Raises:
        RenderError: If a file's content cannot be read.
    """
    parts = ["\n".join(render_header(plan, manifest, context)) + "\n"]

    current_key: str | None = None
    for unit in plan.files:
        if plan.mode is GroupMode.DIRECTORY and unit.group_key != current_key:
            current_key = unit.group_key
            parts.append(f"\n## Directory: {current_key}\n")

        try:
            content = read_text(unit.path)
        except OSError as e:
            raise RenderError(f"Failed to read {unit.relative_path}: {e}") from e

        parts.append(render_file_block(unit.relative_path, content, context.separator))

    return "".join(parts)


def write_chunk(plan: ChunkPlan, manifest: Manifest, context: RunContext) -> Path:
    """
    Render a plan and write it into the output directory.

    Returns:
        Path of the written file.

    Raises:
        RenderError: If content cannot be read or the file cannot be written.
    """
    text = render_chunk(plan, manifest, context)
    output_path = context.output_dir / chunk_filename(plan, context)

    try:
        context.output_dir.mkdir(parents=True, exist_ok=True)
        atomic_write_text(output_path, text)
    except OSError as e:
        raise RenderError(f"Failed to write {output_path}: {e}") from e

    return output_path


def write_chunks(
    plans: Iterable[ChunkPlan],
    manifest: Manifest,
    context: RunContext,
    on_written: Callable[[ChunkPlan, Path], None] | None = None,
) -> list[Path]:
    """
    Write every plan as soon as it is produced.

    Args:
        plans: Plans in ordinal order (may be a lazy iterator).
        manifest: Manifest the plans were produced from.
        context: Run-wide values.
        on_written: Called with each plan and its output path.

    Returns:
        Output paths in ordinal order.
    """
    written = []
    for plan in plans:
        path = write_chunk(plan, manifest, context)
        written.append(path)
        if on_written is not None:
            on_written(plan, path)
    return written
