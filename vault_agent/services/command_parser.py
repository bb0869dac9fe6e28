"""Extraction of file operation commands from generative backend replies.

Command markup:

    [CREATE_FILE:path/to/file.md]
    content
    [/FILE]

EDIT_FILE and APPEND_FILE share the same shape. The marker must be followed by
a newline; blocks may be wrapped in a fenced code block, which is unwrapped
before matching.
"""

import logging
import re

from vault_agent.models.file_operation import FileOperationRequest, FileOperationType
from vault_agent.services.path_validator import validate_path

logger = logging.getLogger(__name__)

# Marker, optional trailing spaces/tabs, newline, lazy content, closing tag
FILE_OP_PATTERN = re.compile(
    r"\[(CREATE_FILE|EDIT_FILE|APPEND_FILE):([^\]]+)\][ \t]*\r?\n([\s\S]*?)\[/FILE\]"
)

# A fenced code block whose only content is a single command
CODE_FENCE_WRAP_PATTERN = re.compile(
    r"```\w*\r?\n(\[(?:CREATE_FILE|EDIT_FILE|APPEND_FILE):[\s\S]*?\[/FILE\])\r?\n```"
)

_TRAILING_NEWLINE = re.compile(r"\r?\n\Z")
_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")

COMMAND_TYPE_MAP: dict[str, FileOperationType] = {
    "CREATE_FILE": FileOperationType.CREATE,
    "EDIT_FILE": FileOperationType.EDIT,
    "APPEND_FILE": FileOperationType.APPEND,
}


def strip_code_fence_wraps(text: str) -> str:
    """Remove code fences that wrap file operation commands, keeping the commands."""
    return CODE_FENCE_WRAP_PATTERN.sub(r"\1", text)


def parse_file_operations(response_text: str) -> list[FileOperationRequest]:
    """Parse file operation commands out of a reply.

    Matches with an invalid path are dropped. When several commands target the
    same path only the last one is kept, since the model retried within one
    reply and the final attempt wins.

    Args:
        response_text: Raw text produced by the backend.

    Returns:
        Pending operations in document order.
    """
    operations: list[FileOperationRequest] = []

    for match in FILE_OP_PATTERN.finditer(strip_code_fence_wraps(response_text)):
        command_type, raw_path, content = match.groups()
        target_path = raw_path.strip()

        if not validate_path(target_path):
            logger.warning(f"Skipped invalid path in file operation: {target_path!r}")
            continue

        operations.append(
            FileOperationRequest(
                type=COMMAND_TYPE_MAP[command_type],
                target_path=target_path,
                content=_TRAILING_NEWLINE.sub("", content, count=1),
            )
        )

    if len(operations) <= 1:
        return operations

    last_index_by_path = {op.target_path: i for i, op in enumerate(operations)}
    return [op for i, op in enumerate(operations) if last_index_by_path[op.target_path] == i]


def strip_file_operation_commands(response_text: str) -> str:
    """Return the reply with all command blocks removed, as shown to the user."""
    cleaned = FILE_OP_PATTERN.sub("", strip_code_fence_wraps(response_text))
    return _EXCESS_BLANK_LINES.sub("\n\n", cleaned).strip()
