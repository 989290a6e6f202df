"""coder-cli UI - Rich terminal interface."""

from coder_cli.ui.console import CoderConsole

__all__ = ["CoderConsole"]
