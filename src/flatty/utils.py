"""
Utility functions for flatty.

Includes token estimation, binary detection, encoding detection and decoding,
path normalization and atomic file writes.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import chardet

# Rough estimate: ~4 bytes per token
BYTES_PER_TOKEN = 4

BINARY_SAMPLE_SIZE = 8192


def estimate_tokens(content: bytes) -> int:
    """Estimate the token count for raw file content.

    The estimate is intentionally approximate: a pure function of the content
    length, so repeated runs over unchanged content always agree.

    Args:
        content: Raw file bytes.

    Returns:
        Estimated number of tokens (`len(content) // 4`).
    """
    return len(content) // BYTES_PER_TOKEN


def is_binary_content(sample: bytes) -> bool:
    """Heuristically determine whether a byte sample is binary.

    Uses a fast null-byte check first (strong binary signal), then falls back to a
    ratio of printable ASCII bytes.

    Args:
        sample: Leading bytes of a file.

    Returns:
        True if the sample is likely binary, otherwise False.
    """
    if not sample:
        return False

    # Check for null bytes (strong indicator of binary)
    if b"\x00" in sample:
        return True

    # UTF-8 text with many non-ASCII characters is still text
    try:
        sample.decode("utf-8")
        return False
    except UnicodeDecodeError as e:
        # A multi-byte sequence cut off at the sample boundary is fine
        if e.start >= len(sample) - 3 and e.reason == "unexpected end of data":
            return False

    # Text files typically have >70% printable ASCII
    printable_count = sum(
        1
        for b in sample
        if 32 <= b <= 126 or b in (9, 10, 12, 13)  # printable + tab, newline, FF, CR
    )

    return printable_count / len(sample) < 0.70


def is_binary_file(file_path: Path, sample_size: int = BINARY_SAMPLE_SIZE) -> bool:
    """Heuristically determine whether a file is binary.

    Args:
        file_path: Path to the file to test.
        sample_size: Number of bytes to sample from the file start.

    Returns:
        True if the file is likely binary or cannot be read, otherwise False.
    """
    try:
        with open(file_path, "rb") as f:
            sample = f.read(sample_size)
    except OSError:
        return True  # Assume binary if we can't read it

    return is_binary_content(sample)


def detect_encoding(content: bytes) -> str:
    """Detect a likely text encoding for raw content.

    Prefers UTF-8 and only uses `chardet` when strict UTF-8 decoding fails, so that
    UTF-8 files are never misdetected as Latin-1/CP1252.

    Args:
        content: Raw bytes (a leading sample is enough).

    Returns:
        A normalized encoding label (e.g., `"utf-8"`, `"utf-8-sig"`, `"utf-16-le"`).
    """
    if not content:
        return "utf-8"

    # Check for BOM markers first (most reliable)
    if content.startswith(b"\xef\xbb\xbf"):
        return "utf-8-sig"
    if content.startswith(b"\xff\xfe"):
        return "utf-16-le"
    if content.startswith(b"\xfe\xff"):
        return "utf-16-be"

    try:
        content.decode("utf-8")
        return "utf-8"
    except UnicodeDecodeError:
        pass

    result = chardet.detect(content[:65536])
    encoding_any = result.get("encoding")

    if not isinstance(encoding_any, str) or not encoding_any:
        return "utf-8"

    encoding = encoding_any.lower()
    if encoding in ("ascii", "utf-8", "utf8"):
        return "utf-8"

    return encoding


def decode_content(content: bytes) -> str:
    """Decode raw file content to text without ever failing.

    Args:
        content: Raw file bytes.

    Returns:
        Decoded text; undecodable bytes are replaced.
    """
    encoding = detect_encoding(content)
    try:
        return content.decode(encoding, errors="replace")
    except LookupError:
        # chardet can report encodings Python does not know about
        return content.decode("utf-8", errors="replace")


def read_text(file_path: Path) -> str:
    """Read a file as text for output.

    Line endings are kept exactly as stored; only the encoding is normalized
    (the chunk document is UTF-8).

    Raises:
        OSError: If the file cannot be read.
    """
    return decode_content(file_path.read_bytes())


def normalize_path(path: str) -> str:
    """Normalize a path for consistent cross-platform comparisons.

    Args:
        path: Path string that may contain platform-specific separators.

    Returns:
        Normalized path using forward slashes.
    """
    return path.replace("\\", "/")


def is_relative_to(path: Path, other: Path) -> bool:
    """Return whether `path` is `other` or lies below it."""
    try:
        path.relative_to(other)
        return True
    except ValueError:
        return False


def atomic_write_text(path: Path, text: str) -> None:
    """Write text to `path` via a temporary file and `os.replace`.

    A crash mid-write never leaves a half-written chunk behind.

    Raises:
        OSError: If the file cannot be written.
    """
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
