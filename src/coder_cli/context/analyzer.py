"""
Project Analyzer - Summarizes a local project for the AI conversation.

Collects:
1. Project structure (directories and files)
2. Well-known config files at the root (package.json, Dockerfile, ...)
3. Code file contents (truncated)

The summary and config files become the opening messages of a chat.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from coder_cli.core.errors import ProjectAnalysisError

logger = logging.getLogger(__name__)

CODE_EXTENSIONS = {
    ".js", ".ts", ".jsx", ".tsx", ".py", ".java", ".cpp", ".c", ".cs",
    ".go", ".rs", ".rb", ".php", ".html", ".css", ".scss", ".sql",
    ".json", ".yaml", ".yml", ".md", ".sh", ".bash", ".zsh",
}

IMPORTANT_FILES = (
    "package.json", "requirements.txt", "setup.py", "Dockerfile",
    "Makefile", "README.md", "CHANGELOG.md", "LICENSE",
    "requirements-dev.txt", "Gemfile", "Cargo.toml", "go.mod",
    "pom.xml", "build.gradle", ".gitignore", "tsconfig.json", "webpack.config.js",
)

EXCLUDED_DIRS = {
    # Version control
    ".git", ".svn", ".hg",
    # Dependencies
    "node_modules", "vendor",
    # Build outputs
    "dist", "build", "coverage", ".next", ".nuxt", "target",
    "__pycache__", ".pytest_cache",
    # IDE
    ".vscode", ".idea",
    # Misc
    "tmp", "temp",
}

# Max characters kept per code file
MAX_CODE_CHARS = 10000

# Max entries listed per section of the summary
SUMMARY_LIST_LIMIT = 10


@dataclass
class FileContent:
    """A file with its content."""
    path: str
    content: str


@dataclass
class ProjectAnalysis:
    """Structure and key contents of a project directory."""
    path: str
    directories: List[str] = field(default_factory=list)
    files: List[str] = field(default_factory=list)
    config_files: List[FileContent] = field(default_factory=list)
    code_files: List[str] = field(default_factory=list)
    code_content: Dict[str, str] = field(default_factory=dict)
    summary: str = ""


def analyze_project(project_path: str | Path) -> ProjectAnalysis:
    """
    Scan a project directory.

    Raises:
        ProjectAnalysisError: if the path is missing or not a directory
    """
    root = Path(project_path)
    logger.info(f"Analyzing project at: {root}")

    if not root.exists():
        raise ProjectAnalysisError(f"Project path does not exist: {root}")
    if not root.is_dir():
        raise ProjectAnalysisError(f"Project path is not a directory: {root}")

    directories, files = _scan(root)
    config_files = _read_config_files(root)
    code_files = [f for f in files if Path(f).suffix.lower() in CODE_EXTENSIONS]
    code_content = _read_code_content(root, code_files)

    logger.info(f"Found {len(directories)} directories and {len(files)} files")

    analysis = ProjectAnalysis(
        path=str(root),
        directories=directories,
        files=files,
        config_files=config_files,
        code_files=code_files,
        code_content=code_content,
    )
    analysis.summary = summarize(analysis)
    return analysis


def _scan(root: Path) -> tuple[List[str], List[str]]:
    directories: List[str] = []
    files: List[str] = []

    for current, dirs, filenames in os.walk(root):
        dirs[:] = [d for d in dirs if d not in EXCLUDED_DIRS]
        current_path = Path(current)

        for d in dirs:
            directories.append((current_path / d).relative_to(root).as_posix())
        for name in filenames:
            files.append((current_path / name).relative_to(root).as_posix())

    return sorted(directories), sorted(files)


def _read_config_files(root: Path) -> List[FileContent]:
    config_files = []
    for name in IMPORTANT_FILES:
        path = root / name
        if not path.is_file():
            continue
        try:
            config_files.append(FileContent(path=name, content=path.read_text(encoding="utf-8")))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read config file {path}: {e}")
    return config_files


def _read_code_content(root: Path, code_files: Sequence[str]) -> Dict[str, str]:
    content: Dict[str, str] = {}
    for rel_path in code_files:
        try:
            text = (root / rel_path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read code file {rel_path}: {e}")
            continue
        if len(text) > MAX_CODE_CHARS:
            text = text[:MAX_CODE_CHARS] + "..."
        content[rel_path] = text
    return content


def _listing(items: List[str]) -> List[str]:
    lines = [f"    {', '.join(items[:SUMMARY_LIST_LIMIT])}"]
    if len(items) > SUMMARY_LIST_LIMIT:
        lines.append(f"    ... and {len(items) - SUMMARY_LIST_LIMIT} more")
    return lines


def summarize(analysis: ProjectAnalysis) -> str:
    """Plain-text overview sent as the first message of a session."""
    lines = ["Project Structure:"]
    lines.append(f"  Directories ({len(analysis.directories)}):")
    lines.extend(_listing(analysis.directories))
    lines.append(f"  Files ({len(analysis.files)}):")
    lines.extend(_listing(analysis.files))

    lines.append(f"\nConfiguration Files ({len(analysis.config_files)}):")
    for config_file in analysis.config_files:
        lines.append(f"  - {config_file.path}")

    total_size = sum(len(c) for c in analysis.code_content.values())
    lines.append(f"\nCode Files: {len(analysis.code_content)} files, ~{total_size} characters")
    return "\n".join(lines)


def _file_block(path: str, content: str) -> List[str]:
    return [f"File: {path}", "```", content, "```", ""]


def prepare_file_context(
    analysis: ProjectAnalysis,
    file_paths: Optional[Sequence[str]] = None,
) -> str:
    """
    Render file contents as fenced blocks.

    Without ``file_paths``: every config file plus the first five code files.
    """
    lines: List[str] = []

    if file_paths is None:
        for config_file in analysis.config_files:
            lines.extend(_file_block(config_file.path, config_file.content))
        for path, content in list(analysis.code_content.items())[:5]:
            lines.extend(_file_block(path, content))
        return "\n".join(lines)

    configs = {c.path: c.content for c in analysis.config_files}
    for path in file_paths:
        if path in analysis.code_content:
            lines.extend(_file_block(path, analysis.code_content[path]))
        elif path in configs:
            lines.extend(_file_block(path, configs[path]))
        else:
            logger.debug(f"No content collected for {path}")
    return "\n".join(lines)
