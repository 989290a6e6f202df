"""coder-cli context - local project analysis."""

from coder_cli.context.analyzer import (
    FileContent,
    ProjectAnalysis,
    analyze_project,
    prepare_file_context,
)

__all__ = ["FileContent", "ProjectAnalysis", "analyze_project", "prepare_file_context"]
