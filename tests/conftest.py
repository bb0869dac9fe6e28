"""Pytest configuration and shared fixtures for vault agent tests."""

import pytest

from vault_agent.services.event_bus import reset_event_bus
from vault_agent.services.file_operation_service import FileOperationService


@pytest.fixture
def vault(tmp_path):
    """An empty vault directory."""
    path = tmp_path / "vault"
    path.mkdir()
    return path


@pytest.fixture
def file_operations(vault):
    return FileOperationService(vault)


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset module singletons between tests."""
    reset_event_bus()
    yield
    reset_event_bus()
