"""End-to-end tests for the flatty CLI."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from flatty import __version__
from flatty.cli import app

runner = CliRunner()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    (root / "src" / "core").mkdir(parents=True)
    (root / "docs").mkdir()
    (root / "README.md").write_text("# Project\n")
    (root / "src" / "app.py").write_text("print('hello')\n" * 40)
    (root / "src" / "core" / "model.py").write_text("x = 1\n" * 200)
    (root / "docs" / "guide.md").write_text("Guide text.\n" * 30)
    return root


def test_version() -> None:
    result = runner.invoke(app, ["flatten", "--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_flatten_single_file(project: Path, tmp_path: Path) -> None:
    out = tmp_path / "out"
    result = runner.invoke(app, ["flatten", "--path", str(project), "-o", str(out)])

    assert result.exit_code == 0, result.output
    written = list(out.iterdir())
    assert len(written) == 1
    assert written[0].name.startswith("project-")
    assert "-part" not in written[0].name

    text = written[0].read_text()
    assert "# Project: project" in text
    assert "---\nsrc/core/model.py\n---\n" in text
    assert "Processing complete" in result.output


def test_flatten_multiple_chunks(project: Path, tmp_path: Path) -> None:
    out = tmp_path / "out"
    result = runner.invoke(
        app, ["flatten", "--path", str(project), "-o", str(out), "--tokens", "200"]
    )

    assert result.exit_code == 0, result.output
    names = sorted(p.name for p in out.iterdir())
    assert len(names) > 1
    assert all("-part" in name for name in names)


def test_flatten_type_mode(project: Path, tmp_path: Path) -> None:
    out = tmp_path / "out"
    result = runner.invoke(
        app, ["flatten", "--path", str(project), "-o", str(out), "--group-by", "type"]
    )

    assert result.exit_code == 0, result.output
    contents = [p.read_text() for p in out.iterdir()]
    assert any("# Type: python" in text for text in contents)
    assert any("# Type: docs" in text for text in contents)


def test_empty_tree_writes_nothing(tmp_path: Path) -> None:
    root = tmp_path / "empty"
    root.mkdir()
    out = tmp_path / "out"
    result = runner.invoke(app, ["flatten", "--path", str(root), "-o", str(out)])

    assert result.exit_code == 0
    assert "No files found" in result.output
    assert not out.exists() or not any(out.iterdir())


def test_invalid_group_by_is_rejected(project: Path, tmp_path: Path) -> None:
    out = tmp_path / "out"
    result = runner.invoke(
        app, ["flatten", "--path", str(project), "-o", str(out), "--group-by", "alphabetical"]
    )

    assert result.exit_code == 2
    assert not out.exists()


def test_invalid_config_file(project: Path, tmp_path: Path) -> None:
    (project / "flatty.toml").write_text('group_by = "alphabetical"\n')
    out = tmp_path / "out"
    result = runner.invoke(app, ["flatten", "--path", str(project), "-o", str(out)])

    assert result.exit_code == 1
    assert "Error" in result.output
    assert not out.exists()


def test_config_file_is_applied(project: Path) -> None:
    (project / "flatty.toml").write_text('[flatty]\ninclude = ["*.md"]\n')
    result = runner.invoke(app, ["plan", "--path", str(project), "--json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    (chunk,) = data["chunks"]
    assert chunk["files"] == ["README.md", "docs/guide.md"]


def test_positional_patterns_are_includes(project: Path) -> None:
    result = runner.invoke(app, ["plan", "*.py", "--path", str(project), "--json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    files = [f for chunk in data["chunks"] for f in chunk["files"]]
    assert files == ["src/app.py", "src/core/model.py"]


def test_plan_json_matches_flatten(project: Path, tmp_path: Path) -> None:
    out = tmp_path / "out"
    planned = runner.invoke(
        app, ["plan", "--path", str(project), "--tokens", "200", "--json"]
    )
    flattened = runner.invoke(
        app, ["flatten", "--path", str(project), "-o", str(out), "--tokens", "200"]
    )

    assert planned.exit_code == 0, planned.output
    assert flattened.exit_code == 0, flattened.output
    data = json.loads(planned.output)
    assert data["mode"] == "directory"
    assert data["token_limit"] == 200
    assert [c["ordinal"] for c in data["chunks"]] == list(range(1, len(data["chunks"]) + 1))
    assert len(data["chunks"]) == len(list(out.iterdir()))


def test_output_dir_inside_root_is_not_rescanned(project: Path) -> None:
    out = project / "flattened"
    for _ in range(2):
        result = runner.invoke(app, ["flatten", "--path", str(project), "-o", str(out)])
        assert result.exit_code == 0, result.output

    for chunk in out.iterdir():
        assert "\nflattened/" not in chunk.read_text()


def test_summary_reports_gitignore_skips(project: Path, tmp_path: Path) -> None:
    (project / ".gitignore").write_text("docs/\n*.log\n")
    (project / "debug.log").write_text("noise\n")
    out = tmp_path / "out"
    result = runner.invoke(app, ["flatten", "--path", str(project), "-o", str(out)])

    assert result.exit_code == 0, result.output
    assert "Skipped by .gitignore: 1 files, 1 directories" in result.output

    text = next(out.iterdir()).read_text()
    assert "docs/guide.md" not in text
    assert "debug.log" not in text


def test_summary_omits_gitignore_line_when_disabled(project: Path, tmp_path: Path) -> None:
    (project / ".gitignore").write_text("docs/\n")
    out = tmp_path / "out"
    result = runner.invoke(
        app, ["flatten", "--path", str(project), "-o", str(out), "--no-gitignore"]
    )

    assert result.exit_code == 0, result.output
    assert "Skipped by .gitignore" not in result.output
    assert "docs/guide.md" in next(out.iterdir()).read_text()
