"""Tests for the renderer module."""

from datetime import datetime

import pytest

from flatty.classifier import FileClassifier
from flatty.config import GroupMode, RunContext
from flatty.planner import plan_chunks
from flatty.renderer import RenderError, render_chunk, render_structure, write_chunk, write_chunks
from flatty.scanner import CorpusScanner


@pytest.fixture
def tree(tmp_path):
    """Create a small tree with known sizes."""
    root = tmp_path / "proj"
    (root / "src" / "core").mkdir(parents=True)
    (root / "docs").mkdir()
    (root / "README.md").write_text("# Proj\n")
    (root / "src" / "a.py").write_text("a" * 400 + "\n")
    (root / "src" / "core" / "b.py").write_text("b" * 800 + "\n")
    (root / "docs" / "guide.md").write_bytes(b"line one\r\nline two\r\n")
    return root


@pytest.fixture
def context(tmp_path):
    return RunContext(
        project_name="proj",
        timestamp=datetime(2024, 5, 1, 10, 0, 0),
        output_dir=tmp_path / "out",
    )


def scan(root, mode):
    classifier = FileClassifier(root, respect_gitignore=False)
    return CorpusScanner(root, classifier, mode=mode).scan()


class TestRenderStructure:
    """Tests for the directory listing."""

    def test_lists_every_directory_with_sizes(self, tree):
        """Test that every bucket appears, indented by depth."""
        manifest = scan(tree, GroupMode.DIRECTORY)
        lines = render_structure(manifest)

        assert lines[0] == "# Complete Repository Structure:"
        assert "# ./ (~1 tokens)" in lines
        assert "# src/ (~100 tokens)" in lines
        assert "#   core/ (~200 tokens)" in lines
        assert "# docs/ (~5 tokens)" in lines


class TestRenderChunk:
    """Tests for render_chunk."""

    def test_whole_corpus_document(self, tree, context):
        """Test the header and file blocks of a single-file run."""
        manifest = scan(tree, GroupMode.DIRECTORY)
        (plan,) = plan_chunks(manifest, 100000)
        text = render_chunk(plan, manifest, context)
        header, _, body = text.partition("\n---\n")

        assert header.startswith("# Project: proj\n# Generated: 2024-05-01 10:00:00\n")
        assert "# Part:" not in header
        assert f"# Total Tokens: ~{manifest.total_size}" in header
        assert "# Files: 4" in header
        assert all(line.startswith("#") for line in header.splitlines())

        assert "\n## Directory: src\n---\nsrc/a.py\n---\n" in body
        assert "---\ndocs/guide.md\n---\nline one\r\nline two\r\n\n" in body

    def test_file_blocks_follow_plan_order(self, tree, context):
        """Test that files are written in plan order."""
        manifest = scan(tree, GroupMode.SIZE)
        (plan,) = plan_chunks(manifest, 100000)
        text = render_chunk(plan, manifest, context)

        positions = [text.index(f"---\n{f.relative_path}\n---\n") for f in plan.files]
        assert positions == sorted(positions)
        assert "## Directory" not in text

    def test_custom_separator(self, tree, tmp_path):
        """Test that the separator is configurable."""
        context = RunContext(
            project_name="proj",
            timestamp=datetime(2024, 5, 1),
            output_dir=tmp_path / "out",
            separator="=====",
        )
        manifest = scan(tree, GroupMode.SIZE)
        (plan,) = plan_chunks(manifest, 100000)
        text = render_chunk(plan, manifest, context)

        assert "=====\nREADME.md\n=====\n# Proj\n" in text

    def test_type_header(self, tree, context):
        """Test that type chunks name their category."""
        manifest = scan(tree, GroupMode.TYPE)
        plans = list(plan_chunks(manifest, 100000))
        text = render_chunk(plans[0], manifest, context)

        assert "# Type: docs" in text
        assert "# Part: 1" in text

    def test_split_directory_header(self, tree, context):
        """Test the headers of an oversized directory's sub-chunks."""
        (tree / "src" / "c.py").write_text("c" * 400 + "\n")
        manifest = scan(tree, GroupMode.DIRECTORY)
        plans = [p for p in plan_chunks(manifest, 150) if p.group_keys == ("src",)]

        assert len(plans) == 2
        first = render_chunk(plans[0], manifest, context)
        second = render_chunk(plans[1], manifest, context)
        assert "# Directory: src (exceeds token limit, splitting files)" in first
        assert "# Directory: src (continuation)" in second
        assert "# Complete Repository Structure:" in first

    def test_raw_line_endings_are_kept(self, tree, context):
        """Test that CRLF and lone CR bytes reach the document unchanged."""
        (tree / "win.txt").write_bytes(b"line1\r\nline2\rline3\n")
        manifest = scan(tree, GroupMode.SIZE)
        (plan,) = plan_chunks(manifest, 100000)
        text = render_chunk(plan, manifest, context)

        assert "---\nwin.txt\n---\nline1\r\nline2\rline3\n\n" in text

    def test_missing_file_raises(self, tree, context):
        """Test that a file vanishing before rendering is an error."""
        manifest = scan(tree, GroupMode.SIZE)
        (plan,) = plan_chunks(manifest, 100000)
        (tree / "README.md").unlink()

        with pytest.raises(RenderError):
            render_chunk(plan, manifest, context)


class TestWriteChunks:
    """Tests for writing chunk files."""

    def test_writes_one_file_per_plan(self, tree, context):
        """Test that each plan becomes one named file."""
        manifest = scan(tree, GroupMode.DIRECTORY)
        plans = list(plan_chunks(manifest, 250))
        written = write_chunks(plans, manifest, context)

        assert len(written) == len(plans)
        assert all(p.exists() and p.parent == context.output_dir for p in written)
        assert sorted(context.output_dir.iterdir()) == sorted(written)

    def test_single_file_for_small_corpus(self, tree, context):
        """Test the whole-corpus output name."""
        manifest = scan(tree, GroupMode.DIRECTORY)
        (plan,) = plan_chunks(manifest, 100000)
        path = write_chunk(plan, manifest, context)

        assert path.name == "proj-2024-05-01_10-00-00.txt"

    def test_written_file_keeps_raw_bytes(self, tree, context):
        """Test that line endings survive the write to disk."""
        (tree / "win.txt").write_bytes(b"line1\r\nline2\rline3\n")
        manifest = scan(tree, GroupMode.SIZE)
        (plan,) = plan_chunks(manifest, 100000)
        path = write_chunk(plan, manifest, context)

        assert b"---\nwin.txt\n---\nline1\r\nline2\rline3\n\n" in path.read_bytes()

    def test_rerun_is_byte_identical(self, tree, context, tmp_path):
        """Test that two runs over an unchanged tree give identical output."""
        outputs = []
        for run in ("one", "two"):
            run_context = RunContext(
                project_name=context.project_name,
                timestamp=context.timestamp,
                output_dir=tmp_path / run,
            )
            manifest = scan(tree, GroupMode.DIRECTORY)
            written = write_chunks(plan_chunks(manifest, 150), manifest, run_context)
            outputs.append({p.name: p.read_bytes() for p in written})

        assert outputs[0] == outputs[1]

    def test_on_written_callback(self, tree, context):
        """Test that the callback sees every plan in order."""
        manifest = scan(tree, GroupMode.SIZE)
        seen = []
        write_chunks(
            plan_chunks(manifest, 150), manifest, context,
            on_written=lambda plan, path: seen.append(plan.ordinal),
        )

        assert seen == list(range(1, len(seen) + 1))
        assert len(seen) > 1
