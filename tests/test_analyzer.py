"""Tests for the project analyzer."""
import pytest

from coder_cli.context.analyzer import MAX_CODE_CHARS, analyze_project, prepare_file_context
from coder_cli.core.errors import ProjectAnalysisError


@pytest.fixture
def project(tmp_path):
    (tmp_path / "package.json").write_text('{"name": "demo"}')
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.js").write_text("export default 1;\n")
    (tmp_path / "src" / "logo.png").write_bytes(b"\x89PNG")
    (tmp_path / "node_modules" / "dep").mkdir(parents=True)
    (tmp_path / "node_modules" / "dep" / "index.js").write_text("ignored")
    return tmp_path


def test_analyze_project_structure(project):
    analysis = analyze_project(project)

    assert analysis.directories == ["src"]
    assert analysis.files == ["package.json", "src/app.js", "src/logo.png"]
    assert [c.path for c in analysis.config_files] == ["package.json"]
    assert analysis.code_files == ["package.json", "src/app.js"]
    assert "Configuration Files (1):" in analysis.summary
    assert "  - package.json" in analysis.summary
    assert "Code Files: 2 files" in analysis.summary


def test_long_code_files_are_truncated(tmp_path):
    (tmp_path / "big.py").write_text("x" * (MAX_CODE_CHARS + 50))

    analysis = analyze_project(tmp_path)

    assert analysis.code_content["big.py"] == "x" * MAX_CODE_CHARS + "..."


def test_missing_and_non_directory_paths(tmp_path):
    with pytest.raises(ProjectAnalysisError, match="does not exist"):
        analyze_project(tmp_path / "nope")

    file_path = tmp_path / "file.txt"
    file_path.write_text("x")
    with pytest.raises(ProjectAnalysisError, match="not a directory"):
        analyze_project(file_path)


def test_prepare_file_context_default_and_selected(project):
    analysis = analyze_project(project)

    everything = prepare_file_context(analysis)
    selected = prepare_file_context(analysis, ["src/app.js", "missing.js"])

    assert everything.startswith('File: package.json\n```\n{"name": "demo"}\n```')
    assert "File: src/app.js" in everything
    assert selected == "File: src/app.js\n```\nexport default 1;\n\n```\n"
