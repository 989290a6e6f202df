"""
Project generation and page redesign.

Both ask the backend for a complete set of files in one request and write
them through the ModificationApplier.
"""
from __future__ import annotations

import json
import logging
import re
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional

from coder_cli.client.api_client import AiClient
from coder_cli.client.models import ChatMode
from coder_cli.executor.applier import ModificationApplier
from coder_cli.executor.models import CodeModification, ModificationResult, ModificationType
from coder_cli.ui.console import CoderConsole

logger = logging.getLogger(__name__)

PROJECT_SYSTEM_PROMPT = (
    "You are CoDa, helpful AI coding assistant that generates complete project files. "
    "Return the files in a structured JSON format with file paths and content. "
    'Format: {"files": [{"path": "file/path", "content": "file content"}]}'
)

JSON_FENCE_PATTERN = re.compile(r"```json\n(.*)\n```", re.DOTALL)

DEFAULT_REDESIGN_DIR = "redesigned-page"


def _valid_files(items: Any) -> List[Dict[str, str]]:
    if not isinstance(items, list):
        return []
    return [
        {"path": item["path"], "content": item["content"]}
        for item in items
        if isinstance(item, dict)
        and isinstance(item.get("path"), str)
        and isinstance(item.get("content"), str)
    ]


def extract_generated_files(data: Dict[str, Any]) -> List[Dict[str, str]]:
    """
    Files from a generation response.

    Either a top-level ``files`` list, or a JSON document (optionally in a
    ```json fence) carried as a string in ``response``.
    """
    files = _valid_files(data.get("files"))
    if files or not isinstance(data.get("response"), str):
        return files

    content = data["response"]
    match = JSON_FENCE_PATTERN.search(content)
    if match:
        content = match.group(1)
    try:
        nested = json.loads(content)
    except ValueError:
        logger.debug("AI response did not contain a parsable file structure")
        return []
    return _valid_files(nested.get("files")) if isinstance(nested, dict) else []


def write_files(root: Path, files: List[Dict[str, str]]) -> ModificationResult:
    return ModificationApplier(root).apply(
        CodeModification(type=ModificationType.CREATE, file_path=f["path"], content=f["content"])
        for f in files
    )


def project_specification(technology: Optional[str], specification: Optional[str]) -> str:
    spec = f"Create a new {technology or 'web'} project."
    if specification:
        spec += f" The user wants: {specification}."
    else:
        spec += " Include basic structure and functionality."
    return spec + " Provide all necessary files, code, and configuration."


class ProjectGenerator:
    """Scaffold a new project directory from a single AI request."""

    def __init__(self, client: AiClient, ui: CoderConsole):
        self.client = client
        self.ui = ui

    async def create(
        self,
        name: str,
        technology: Optional[str] = None,
        specification: Optional[str] = None,
        parent: Optional[Path] = None,
    ) -> Optional[ModificationResult]:
        """Generate project ``name`` under ``parent``. None if cancelled or empty."""
        project_path = (parent or Path.cwd()) / name

        if project_path.exists():
            if not self.ui.confirm(
                f"Directory {project_path} already exists. Do you want to overwrite it? "
                "This will delete all existing files.",
                default=False,
            ):
                self.ui.print_warning("Project creation cancelled.")
                return None
            self.ui.print_info(f"Removing existing directory: {project_path}")
            shutil.rmtree(project_path)

        project_path.mkdir(parents=True)
        self.ui.print_info(f"Created directory: {project_path}")

        payload = {
            "messages": [
                {"role": "system", "content": PROJECT_SYSTEM_PROMPT},
                {"role": "user", "content": project_specification(technology, specification)},
            ],
            "mode": ChatMode.PROJECT.value,
            "technology": technology,
        }

        with self.ui.thinking("Generating project files with AI..."):
            data = await self.client.request_json(
                self.client.endpoint_for(ChatMode.PROJECT),
                payload,
                self.client.config.timeout_for(ChatMode.PROJECT.value),
            )

        files = extract_generated_files(data)
        if not files:
            self.ui.print_warning("No files generated by AI.")
            return None

        result = write_files(project_path, files)
        self.ui.print_modification_result(result)
        if result.success:
            self.ui.print_success(f"Project {name} created successfully!")
        return result


class RedesignSession:
    """Request a redesign of a web page and save the returned files."""

    def __init__(self, client: AiClient, ui: CoderConsole):
        self.client = client
        self.ui = ui

    async def run(self, url: str, cwd: Optional[Path] = None) -> Optional[ModificationResult]:
        self.ui.print_info(f"Starting AI re-design session for: {url}")

        with self.ui.thinking("Sending re-design request to AI..."):
            data = await self.client.request_json(
                self.client.endpoint_for(ChatMode.REDESIGN),
                {"input": url},
                self.client.config.timeout_for(ChatMode.REDESIGN.value),
            )

        files = extract_generated_files(data)
        if not files:
            self.ui.print_warning("AI did not generate any files for re-design.")
            return None

        self.ui.print_success(f"AI generated {len(files)} files for re-design.")
        if not self.ui.confirm("Do you want to save these re-designed files to a local directory?"):
            self.ui.print_warning("File saving skipped.")
            return None

        target_name = ""
        while not target_name.strip():
            target_name = self.ui.ask_text(
                "Enter the target directory to save the files",
                default=DEFAULT_REDESIGN_DIR,
            )
        target = (cwd or Path.cwd()) / target_name.strip()

        if target.exists():
            if not self.ui.confirm(
                f'Directory "{target_name}" already exists. Overwrite its contents?',
                default=False,
            ):
                self.ui.print_warning("File saving cancelled.")
                return None
            _empty_directory(target)

        result = write_files(target, files)
        self.ui.print_modification_result(result)
        if result.success:
            self.ui.print_success(f"Successfully saved re-designed files to: {target}")
        return result


def _empty_directory(path: Path):
    for child in path.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()
