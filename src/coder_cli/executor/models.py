"""File edit operations extracted from AI output."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel


class ModificationType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ModificationMethod(str, Enum):
    """How update content is combined with the existing file."""
    REPLACE = "replace"
    APPEND = "append"
    PREPEND = "prepend"
    MERGE = "merge"


class CodeModification(BaseModel):
    """One file-level edit, relative to the project root."""
    type: ModificationType
    file_path: str
    content: Optional[str] = None
    method: ModificationMethod = ModificationMethod.REPLACE


@dataclass
class ModificationResult:
    """Outcome of a batch. ``success`` is False if any item failed."""
    success: bool
    message: str
    modified_files: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
