"""LLM client — HTTP connection to a text-generation backend.

The narrator and outline collaborators call an LLM matching the protocol:

    async def __call__(self, stage: str, system: str, prompt: str) -> str: ...

`stage` identifies the caller ("narrator", "outline") and is used for
logging; `system` carries the tone/length rules, `prompt` the turn context.

HttpLLM supports two wire formats, selected by provider_format:

    "openai"     — POST /v1/chat/completions with system + user messages
    "koboldcpp"  — POST /api/v1/generate; system and prompt are joined

Production code constructs an HttpLLM from Settings. Tests use StubLLM
(defined in conftest.py) instead.
"""

from __future__ import annotations

import logging
from typing import Literal, Protocol

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol — every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, stage: str, system: str, prompt: str) -> str: ...


# ---------------------------------------------------------------------------
# HttpLLM — connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["openai", "koboldcpp"]


class HttpLLM:
    """Async HTTP client for text-generation backends.

    Supported formats:
      "openai"     — POST /v1/chat/completions
                     {"model": ..., "messages": [...], "max_tokens": ...}
                     Response: {"choices": [{"message": {"content": "..."}}]}
      "koboldcpp"  — POST /api/v1/generate  {"prompt": ..., "max_length": ...}
                     Response: {"results": [{"text": "..."}]}

    Args:
        provider_url:    Base URL of the backend, e.g. "https://api.openai.com".
        api_key:         Bearer token, or empty string if not required.
        provider_format: Wire format to use. Defaults to "openai".
        model:           Model identifier, used only by the openai format.
        max_tokens:      Completion length cap sent with every request.
        timeout:         HTTP timeout in seconds. Defaults to 60.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "openai",
        model: str = "",
        max_tokens: int = 380,
        timeout: float = 60.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._max_tokens = max_tokens
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, system: str, prompt: str) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        if self._format == "openai":
            url = f"{self._base_url}/v1/chat/completions"
            body: dict = {
                "messages": [
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                "max_tokens": self._max_tokens,
            }
            if self._model:
                body["model"] = self._model
            return url, body

        # koboldcpp
        url = f"{self._base_url}/api/v1/generate"
        text = f"{system}\n\n{prompt}" if system else prompt
        return url, {"prompt": text, "max_length": self._max_tokens}

    def _parse_response(self, data: object) -> str:
        """Extract the completion text from the response body."""
        if not isinstance(data, dict):
            raise LLMError(f"Unexpected response format: {type(data).__name__} body")

        if self._format == "openai":
            choices = data.get("choices")
            first = choices[0] if isinstance(choices, list) and choices else None
            message = first.get("message") if isinstance(first, dict) else None
            if not isinstance(message, dict) or not isinstance(message.get("content"), str):
                raise LLMError("Unexpected response format from OpenAI-compatible backend")
            return message["content"]

        results = data.get("results")
        first = results[0] if isinstance(results, list) and results else None
        if not isinstance(first, dict) or not isinstance(first.get("text"), str):
            raise LLMError("Unexpected response format from KoboldCpp backend")
        return first["text"]

    async def __call__(self, stage: str, system: str, prompt: str) -> str:
        url, body = self._build_request(system, prompt)
        logger.debug("llm call stage=%s url=%s prompt_len=%d", stage, url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise LLMError(f"LLM request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise LLMError("LLM backend returned a non-JSON body") from e
        text = self._parse_response(data)
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text


# ---------------------------------------------------------------------------
# LLMError — raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
