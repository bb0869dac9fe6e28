"""Applies parsed file operations to the notes vault on disk."""

import asyncio
import logging
from pathlib import Path

from vault_agent.exceptions import FileOperationError
from vault_agent.models.file_operation import FileOperationRequest, FileOperationType
from vault_agent.services.path_validator import validate_path

logger = logging.getLogger(__name__)


class FileOperationService:
    """File store for a vault rooted at a local directory.

    Semantics per operation type:
    - create: fails if the target exists, creates missing parent folders
    - edit: replaces the full content, fails if the target is missing
    - append: existing content, one newline, new content; fails if missing

    Blocking file I/O runs in worker threads.
    """

    def __init__(self, vault_path: str | Path):
        """Initialize the service.

        Args:
            vault_path: Root directory of the vault.
        """
        self.vault_path = Path(vault_path)

    def resolve(self, target_path: str) -> Path:
        """Map a vault-relative path to a filesystem path.

        Raises:
            FileOperationError: If the path fails validation.
        """
        if not validate_path(target_path):
            raise FileOperationError(f"Invalid path: {target_path}")
        return self.vault_path / target_path

    def exists(self, target_path: str) -> bool:
        """Whether a file exists at a valid vault path."""
        return validate_path(target_path) and (self.vault_path / target_path).is_file()

    async def execute(self, operation: FileOperationRequest) -> None:
        """Apply one operation.

        Args:
            operation: The operation to apply. Its status is left to the caller.

        Raises:
            FileOperationError: If the path is invalid or the store refuses it.
        """
        path = self.resolve(operation.target_path)

        if operation.type == FileOperationType.CREATE:
            await asyncio.to_thread(self._create_file, path, operation.content)
        elif operation.type == FileOperationType.EDIT:
            await asyncio.to_thread(self._edit_file, path, operation.content)
        elif operation.type == FileOperationType.APPEND:
            await asyncio.to_thread(self._append_to_file, path, operation.content)
        else:
            raise FileOperationError(f"Unknown operation type: {operation.type}")

        logger.info(f"Applied {operation.type.value} to {operation.target_path}")

    def _create_file(self, path: Path, content: str) -> None:
        parent = path.parent
        if parent.exists() and not parent.is_dir():
            raise FileOperationError(f"{self._relative(parent)} exists but is not a folder")
        if path.exists():
            raise FileOperationError(f"File already exists: {self._relative(path)}")

        try:
            parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise FileOperationError(f"Could not create {self._relative(path)}: {e}") from e

    def _edit_file(self, path: Path, content: str) -> None:
        if not path.is_file():
            raise FileOperationError(f"File not found: {self._relative(path)}")

        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise FileOperationError(f"Could not update {self._relative(path)}: {e}") from e

    def _append_to_file(self, path: Path, content: str) -> None:
        if not path.is_file():
            raise FileOperationError(f"File not found: {self._relative(path)}")

        try:
            existing = path.read_text(encoding="utf-8")
            path.write_text(existing + "\n" + content, encoding="utf-8")
        except OSError as e:
            raise FileOperationError(f"Could not append to {self._relative(path)}: {e}") from e

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.vault_path).as_posix()
