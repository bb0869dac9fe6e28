"""Vault path safety check applied before any file mutation."""

import re

_DRIVE_LETTER = re.compile(r"^[A-Za-z]:")


def validate_path(path: str) -> bool:
    """Check that a target path stays inside the vault.

    Rejects blank paths, parent traversal (any ``..``), absolute paths
    (leading ``/`` or a drive letter), NUL bytes and hidden segments
    (any ``/``-separated segment starting with ``.``).

    Args:
        path: Vault-relative path proposed by the model.

    Returns:
        True if the path may be written, False otherwise.
    """
    if not path or not path.strip():
        return False
    if ".." in path:
        return False
    if path.startswith("/") or _DRIVE_LETTER.match(path):
        return False
    if "\0" in path:
        return False

    return not any(segment.startswith(".") for segment in path.split("/"))
