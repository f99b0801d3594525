"""Tests for the naming module."""

from datetime import datetime
from pathlib import Path

from flatty.config import ChunkPlan, GroupMode, RunContext
from flatty.naming import build_chunk_filename, chunk_filename, sanitize_key

TS = "2024-05-01_10-00-00"


class TestSanitizeKey:
    """Tests for group key sanitizing."""

    def test_slashes_become_dashes(self):
        assert sanitize_key("src/core/util") == "src-core-util"

    def test_whitespace_removed(self):
        assert sanitize_key("My Docs/Read Me") == "MyDocs-ReadMe"

    def test_root_key(self):
        assert sanitize_key(".") == "root"

    def test_unsafe_characters(self):
        assert sanitize_key("a:b*c") == "a_b_c"


class TestBuildChunkFilename:
    """Tests for build_chunk_filename."""

    def test_whole_corpus(self):
        """Test the single-file name."""
        assert build_chunk_filename("proj", TS, 1, ["src", "docs"], whole_corpus=True) == (
            "proj-2024-05-01_10-00-00.txt"
        )

    def test_no_keys(self):
        """Test size-mode names."""
        assert build_chunk_filename("proj", TS, 3) == "proj-2024-05-01_10-00-00-part3.txt"

    def test_one_key(self):
        """Test a single-directory name."""
        assert build_chunk_filename("proj", TS, 1, ["src/core"]) == (
            "proj-2024-05-01_10-00-00-part1-src-core.txt"
        )

    def test_two_keys(self):
        """Test that two keys are joined."""
        assert build_chunk_filename("proj", TS, 2, ["A", "B"]) == (
            "proj-2024-05-01_10-00-00-part2-A+B.txt"
        )

    def test_more_keys(self):
        """Test that extra keys are summarized by count."""
        assert build_chunk_filename("proj", TS, 4, ["a", "b", "c", "d", "e"]) == (
            "proj-2024-05-01_10-00-00-part4-a+b+and3more.txt"
        )

    def test_sub_chunk(self):
        """Test the suffix for split directories."""
        assert build_chunk_filename("proj", TS, 5, ["big"], sub=True) == (
            "proj-2024-05-01_10-00-00-part5-big-sub.txt"
        )

    def test_pure(self):
        """Test that identical inputs give identical names."""
        first = build_chunk_filename("proj", TS, 7, ["x", "y", "z"])
        second = build_chunk_filename("proj", TS, 7, ["x", "y", "z"])
        assert first == second


class TestChunkFilename:
    """Tests for naming a plan within a run."""

    def test_uses_context_and_plan(self):
        """Test that plan and run context feed the name."""
        context = RunContext(
            project_name="proj",
            timestamp=datetime(2024, 5, 1, 10, 0, 0),
            output_dir=Path("/out"),
        )
        plan = ChunkPlan(
            ordinal=2,
            group_keys=("src",),
            files=(),
            total_size=0,
            mode=GroupMode.DIRECTORY,
            escalated=True,
            part=1,
        )

        assert chunk_filename(plan, context) == "proj-2024-05-01_10-00-00-part2-src-sub.txt"
