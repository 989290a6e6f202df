"""
coder-cli - AI coding assistant for the terminal.

Sends your request (plus a summary of the local project) to the hosted
coder-ai backend and applies the file edits it suggests to your project.

Flow:
- CLI: Collects project context and the conversation transcript
- Backend: Generates the reply (streamed when possible)
- CLI: Parses file edits out of the reply and applies them after confirmation

Usage:
    coder-cli init                           # Configure API key
    coder-cli chat --project .               # Interactive chat
    coder-cli fix . --issue "crash on save"  # Fix an issue
    coder-cli new my-app --tech react        # Scaffold a project
"""

__version__ = "1.0.0"
__author__ = "Coder CLI Team"
