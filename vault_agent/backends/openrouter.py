"""OpenRouter streaming backend.

Streams OpenAI-compatible chat completions over server-sent events. Blocking
``requests`` reads run in worker threads so the event loop stays free between
chunks, which is where abort signals are honored.
"""

import asyncio
import json
import logging
import os
from collections.abc import AsyncIterator

import requests

from vault_agent.backends.base import GenerativeBackend
from vault_agent.cancellation import AbortSignal
from vault_agent.exceptions import BackendError
from vault_agent.models.chat import ChatMessage
from vault_agent.models.config import BackendConfig
from vault_agent.services.prompts import FILE_OPERATION_INSTRUCTIONS

logger = logging.getLogger(__name__)

_DONE = "[DONE]"


class OpenRouterBackend(GenerativeBackend):
    """Generative backend for the OpenRouter chat completions API."""

    def __init__(
        self,
        config: BackendConfig | None = None,
        api_key: str | None = None,
    ):
        """Initialize the backend.

        Args:
            config: Model, endpoint and system prompt settings.
            api_key: OpenRouter API key. If not provided, reads from OPENROUTER_API_KEY.
        """
        self.config = config or BackendConfig()
        self.api_key = api_key or os.environ.get("OPENROUTER_API_KEY", "")

    @property
    def backend_name(self) -> str:
        return "openrouter"

    def build_messages(self, prompt: str, history: list[ChatMessage]) -> list[dict]:
        """Build the chat completions message list.

        The system message carries the configured system prompt followed by the
        file operation instructions.
        """
        system_prompt = "\n\n".join([self.config.system_prompt, FILE_OPERATION_INSTRUCTIONS])
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": m.role.value, "content": m.content} for m in history)
        messages.append({"role": "user", "content": prompt})
        return messages

    async def stream_response(
        self,
        prompt: str,
        history: list[ChatMessage],
        signal: AbortSignal | None = None,
    ) -> AsyncIterator[str]:
        if not self.api_key:
            raise BackendError("No API key configured")

        messages = self.build_messages(prompt, history)
        response = await asyncio.to_thread(self._open_stream, messages)
        try:
            lines = response.iter_lines(decode_unicode=True)
            while signal is None or not signal.aborted:
                line = await asyncio.to_thread(_next_line, lines)
                if line is None:
                    break
                payload = self.parse_sse_line(line)
                if payload == _DONE:
                    break
                if payload:
                    yield payload
        except requests.RequestException as e:
            raise BackendError(f"Stream interrupted: {e}") from e
        finally:
            response.close()

    def _open_stream(self, messages: list[dict]) -> requests.Response:
        """Issue the streaming POST and check the status code."""
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": "Vault Agent",
        }
        payload = {
            "model": self.config.model,
            "messages": messages,
            "stream": True,
        }

        try:
            response = requests.post(
                self.config.api_url,
                headers=headers,
                json=payload,
                stream=True,
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as e:
            raise BackendError(f"Request failed: {e}") from e

        if response.status_code != 200:
            body = response.text
            response.close()
            raise BackendError(f"API error: {response.status_code} {body[:200]}")

        # Event streams are UTF-8 whatever charset the headers declare
        response.encoding = "utf-8"
        logger.debug(f"Opened stream for model {self.config.model} ({len(messages)} messages)")
        return response

    @staticmethod
    def parse_sse_line(line: str) -> str | None:
        """Extract the text delta from one server-sent event line.

        Returns:
            The delta text, the "[DONE]" sentinel, or None for comments,
            keep-alives and events without content.
        """
        if not line or not line.startswith("data:"):
            return None

        data = line[len("data:") :].strip()
        if data == _DONE:
            return _DONE

        try:
            event = json.loads(data)
        except json.JSONDecodeError:
            logger.debug(f"Ignoring malformed stream event: {data[:80]}")
            return None

        if "error" in event:
            error = event["error"]
            message = error.get("message", "unknown error") if isinstance(error, dict) else error
            raise BackendError(f"Backend reported an error: {message}")

        choices = event.get("choices") or [{}]
        return choices[0].get("delta", {}).get("content") or None


def _next_line(lines) -> str | None:
    return next(lines, None)
