"""
Output filename derivation for flatty.

Names are a pure function of the project, the run timestamp, the chunk ordinal
and the chunk's group keys.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from .config import ROOT_GROUP_KEY, ChunkPlan, RunContext

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._+\-]")
_WHITESPACE = re.compile(r"\s+")


def sanitize_key(key: str) -> str:
    """Make a group key safe to embed in a filename.

    Path separators become dashes, whitespace is dropped and anything else
    outside `[A-Za-z0-9._+-]` becomes an underscore. The root directory key
    maps to `root`.
    """
    if key in (ROOT_GROUP_KEY, ""):
        return "root"
    safe = key.replace("\\", "/").strip("/").replace("/", "-")
    safe = _WHITESPACE.sub("", safe)
    safe = _UNSAFE_CHARS.sub("_", safe)
    return safe or "root"


def build_chunk_filename(
    project_name: str,
    timestamp: str,
    ordinal: int,
    group_keys: Sequence[str] = (),
    sub: bool = False,
    whole_corpus: bool = False,
) -> str:
    """Build the filename for one chunk.

    Args:
        project_name: Project name (the scan root's basename).
        timestamp: Filename-safe run timestamp.
        ordinal: 1-based chunk number.
        group_keys: Keys of the groups in the chunk, in chunk order.
        sub: Whether the chunk is part of a split oversized directory.
        whole_corpus: Whether the chunk holds the entire corpus.

    Returns:
        A bare filename such as `proj-2024-01-01_10-00-00-part2-src+docs.txt`.
    """
    base = f"{sanitize_key(project_name)}-{timestamp}"
    if whole_corpus:
        return f"{base}.txt"

    name = f"{base}-part{ordinal}"
    keys = [sanitize_key(k) for k in group_keys]

    if len(keys) == 1:
        name += f"-{keys[0]}"
    elif len(keys) == 2:
        name += f"-{keys[0]}+{keys[1]}"
    elif len(keys) > 2:
        name += f"-{keys[0]}+{keys[1]}+and{len(keys) - 2}more"

    if sub:
        name += "-sub"

    return f"{name}.txt"


def chunk_filename(plan: ChunkPlan, context: RunContext) -> str:
    """Build the filename for a plan within a run."""
    return build_chunk_filename(
        project_name=context.project_name,
        timestamp=context.timestamp_label,
        ordinal=plan.ordinal,
        group_keys=plan.group_keys,
        sub=plan.part > 0,
        whole_corpus=plan.whole_corpus,
    )
