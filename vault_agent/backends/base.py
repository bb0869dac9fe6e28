"""Abstract base class for generative text backends.

Defines the interface the planner and step executor stream replies from.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from vault_agent.cancellation import AbortSignal
from vault_agent.models.chat import ChatMessage


class GenerativeBackend(ABC):
    """Abstract interface for generative text backends.

    A backend turns a prompt plus chat history into a finite stream of text
    chunks. Streams are not restartable: regenerating needs a fresh call.
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier (e.g., 'openrouter')."""

    @abstractmethod
    def stream_response(
        self,
        prompt: str,
        history: list[ChatMessage],
        signal: AbortSignal | None = None,
    ) -> AsyncIterator[str]:
        """Stream a reply to the prompt.

        Args:
            prompt: The user turn to answer.
            history: Earlier chat messages, oldest first.
            signal: Once aborted, no further chunks are yielded.

        Yields:
            Text chunks in order.

        Raises:
            BackendError: If the reply cannot be produced.
        """


async def collect_response(
    backend: GenerativeBackend,
    prompt: str,
    history: list[ChatMessage],
    signal: AbortSignal | None = None,
) -> str:
    """Buffer a full streamed reply.

    Raises:
        StepAbortedError: If the signal is aborted between chunks.
    """
    parts: list[str] = []
    async for chunk in backend.stream_response(prompt, history, signal):
        if signal is not None:
            signal.raise_if_aborted()
        parts.append(chunk)
    if signal is not None:
        signal.raise_if_aborted()
    return "".join(parts)
