"""
Modification applier - write parsed edits to the project tree.

Each item is applied on its own: a failure is recorded against that file and
the batch carries on. Nothing is rolled back.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from coder_cli.core.errors import CodeModificationError
from coder_cli.executor.models import (
    CodeModification,
    ModificationMethod,
    ModificationResult,
    ModificationType,
)

logger = logging.getLogger(__name__)


def merge_content(current: str, new: str) -> str:
    """Append ``new`` unless it is already present verbatim (trimmed)."""
    if not current:
        return new
    if not new:
        return current
    if new.strip() in current:
        return current
    return f"{current}\n\n{new}"


def combine_content(current: str, new: str, method: ModificationMethod) -> str:
    if method == ModificationMethod.APPEND:
        return current + new
    if method == ModificationMethod.PREPEND:
        return new + current
    if method == ModificationMethod.MERGE:
        return merge_content(current, new)
    return new


class ModificationApplier:
    """
    Apply CodeModifications under a project root.

    Paths must be relative and stay inside the root; intermediate
    directories are created as needed.
    """

    def __init__(self, project_root: Path):
        self.project_root = Path(project_root).resolve()

    def resolve(self, file_path: str) -> Path:
        """Absolute path for ``file_path``, refusing anything outside the root."""
        if Path(file_path).is_absolute():
            raise CodeModificationError(f"Absolute paths are not allowed: {file_path}")
        target = (self.project_root / file_path).resolve()
        if not target.is_relative_to(self.project_root):
            raise CodeModificationError(f"Path escapes the project directory: {file_path}")
        return target

    def apply(self, modifications: Iterable[CodeModification]) -> ModificationResult:
        result = ModificationResult(success=True, message="")

        for mod in modifications:
            try:
                if self._apply_one(mod, result):
                    result.modified_files.append(mod.file_path)
            except Exception as e:
                logger.error(f"Error modifying {mod.file_path}: {e}")
                result.errors.append(f"Error modifying {mod.file_path}: {e}")
                result.success = False

        if result.success:
            result.message = f"Successfully modified {len(result.modified_files)} file(s)"
        else:
            result.message = f"Partially completed: {len(result.errors)} error(s) occurred"
        return result

    def _apply_one(self, mod: CodeModification, result: ModificationResult) -> bool:
        """Apply a single edit. Returns False when nothing was changed."""
        if mod.type in (ModificationType.CREATE, ModificationType.UPDATE) and mod.content is None:
            raise CodeModificationError(f"Content is required for {mod.type.value} operation")

        target = self.resolve(mod.file_path)

        if mod.type == ModificationType.DELETE:
            if mod.content:
                result.warnings.append(f"Content ignored for delete operation: {mod.file_path}")
            if not target.exists():
                logger.warning(f"File to delete does not exist: {mod.file_path}")
                result.warnings.append(f"File to delete does not exist: {mod.file_path}")
                return False
            target.unlink()
            return True

        target.parent.mkdir(parents=True, exist_ok=True)

        if mod.type == ModificationType.CREATE:
            target.write_text(mod.content, encoding="utf-8")
            return True

        current = target.read_text(encoding="utf-8") if target.exists() else ""
        target.write_text(combine_content(current, mod.content, mod.method), encoding="utf-8")
        return True
