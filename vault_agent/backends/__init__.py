"""Generative text backends."""

from vault_agent.backends.base import GenerativeBackend
from vault_agent.backends.openrouter import OpenRouterBackend

__all__ = [
    "GenerativeBackend",
    "OpenRouterBackend",
]
