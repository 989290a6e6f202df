"""
Modification parser - find file edits in free-form AI output.

Three independent scans over the whole text:
- a fenced block whose fence is followed by a path   -> update (replace)
- ``Create file "<path>" with content:`` + fence     -> create
- ``Delete file "<path>"``                           -> delete

A reply can match several scans; results are not deduplicated.
"""
from __future__ import annotations

import re
from typing import List

from coder_cli.executor.models import CodeModification, ModificationMethod, ModificationType

FENCED_FILE_PATTERN = re.compile(r"```([\w./-]+)\n(.*?)```", re.DOTALL)
CREATE_FILE_PATTERN = re.compile(
    r'Create file "([^"]+)" with content:\s*```(?:\w+)?\n(.*?)```',
    re.IGNORECASE | re.DOTALL,
)
DELETE_FILE_PATTERN = re.compile(r'Delete file "([^"]+)"', re.IGNORECASE)


def parse_modifications(text: str) -> List[CodeModification]:
    """Extract every edit operation from one AI response."""
    modifications: List[CodeModification] = []

    for match in FENCED_FILE_PATTERN.finditer(text):
        modifications.append(CodeModification(
            type=ModificationType.UPDATE,
            file_path=match.group(1),
            content=match.group(2),
            method=ModificationMethod.REPLACE,
        ))

    for match in CREATE_FILE_PATTERN.finditer(text):
        modifications.append(CodeModification(
            type=ModificationType.CREATE,
            file_path=match.group(1),
            content=match.group(2),
        ))

    for match in DELETE_FILE_PATTERN.finditer(text):
        modifications.append(CodeModification(
            type=ModificationType.DELETE,
            file_path=match.group(1),
        ))

    return modifications
