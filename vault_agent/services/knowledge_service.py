"""Reference context built from vault files attached to a session."""

import logging
from pathlib import Path

from vault_agent.services.path_validator import validate_path

logger = logging.getLogger(__name__)

CONTEXT_PREAMBLE = (
    "The following files from the user's vault are provided as reference context. "
    "Use them to inform your responses when relevant."
)


class KnowledgeService:
    """Reads attached vault files into a planning context block."""

    def __init__(self, vault_path: str | Path):
        self.vault_path = Path(vault_path)

    def _file(self, path: str) -> Path | None:
        if not validate_path(path):
            return None
        candidate = self.vault_path / path
        return candidate if candidate.is_file() else None

    def filter_existing_paths(self, paths: list[str]) -> list[str]:
        """Drop paths that no longer point at a file in the vault."""
        return [p for p in paths if self._file(p) is not None]

    def build_context(self, paths: list[str]) -> str:
        """Render the given files as reference sections.

        Missing or unreadable files are skipped.

        Returns:
            The context block, or "" when no file could be read.
        """
        sections = []
        for path in paths:
            file = self._file(path)
            if file is None:
                continue
            try:
                content = file.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Skipping unreadable knowledge file {path}: {e}")
                continue
            sections.append(f"--- Reference: {path} ---\n{content}\n--- End: {path} ---")

        if not sections:
            return ""

        return CONTEXT_PREAMBLE + "\n\n" + "\n\n".join(sections)
