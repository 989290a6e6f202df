"""coder-cli Executor - parse AI file edits and apply them locally."""

from coder_cli.executor.applier import ModificationApplier
from coder_cli.executor.models import (
    CodeModification,
    ModificationMethod,
    ModificationResult,
    ModificationType,
)
from coder_cli.executor.parser import parse_modifications

__all__ = [
    "ModificationApplier",
    "CodeModification",
    "ModificationMethod",
    "ModificationResult",
    "ModificationType",
    "parse_modifications",
]
