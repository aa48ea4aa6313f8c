from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from requests import Response, Session
from requests.exceptions import RequestException

from .prompts import ModeConfig

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT_URL = "https://dev.felidae.network/api/chatgpt/chat_completion"
KNOWN_MODELS = ("gpt-4", "gpt-4.1-nano")
_RETRYABLE_STATUS = {408, 409, 425, 429, 500, 502, 503, 504, 520, 521, 522, 524}


class CompletionError(RuntimeError):
    """Raised when a chunk cannot be turned into completion text."""

    def __init__(self, message: str, *, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class TransportFailure(CompletionError):
    """Network failure or non-success HTTP status from the completion service."""


class MalformedResponse(CompletionError):
    """Response body lacks the choices/message structure."""


@dataclass(slots=True)
class CompletionSettings:
    model: str
    endpoint_url: str = DEFAULT_ENDPOINT_URL
    timeout: float = 120.0
    max_attempts: int = 1
    encode_messages: bool = True


def unwrap_envelope(payload: Any) -> str:
    """Return choices[0].message.content from a top-level or `data`-nested envelope."""
    body = payload
    if isinstance(payload, dict):
        nested = payload.get("data")
        if isinstance(nested, dict) and nested:
            body = nested
    try:
        content = body["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise MalformedResponse(
            f"Unexpected response format: {CompletionClient._clip_text(json.dumps(payload, default=str))}"
        ) from exc
    if not isinstance(content, str):
        raise MalformedResponse(f"Completion content is not text: {type(content).__name__}")
    return content


class CompletionClient:
    def __init__(self, settings: CompletionSettings, session: Optional[Session] = None):
        if not (settings.endpoint_url or "").strip():
            raise ValueError("Completion endpoint URL is required.")
        if not (settings.model or "").strip():
            raise ValueError("Model identifier is required.")
        self.settings = settings
        self._session = session or requests.Session()
        self._max_attempts = max(1, int(settings.max_attempts or 1))

    def build_payload(
        self,
        config: ModeConfig,
        chunk: str,
        *,
        knowledge_base: str = "",
        schema_tool: str = "",
    ) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": config.system_prompt},
            {"role": "user", "content": config.user_prompt(chunk)},
        ]
        return {
            "model": self.settings.model,
            # The hosted endpoint expects the conversation as a JSON string.
            "messages": json.dumps(messages) if self.settings.encode_messages else messages,
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
            "knowledge_base": knowledge_base or "",
            "schema_tool": schema_tool or "",
        }

    def complete(
        self,
        config: ModeConfig,
        chunk: str,
        *,
        knowledge_base: str = "",
        schema_tool: str = "",
    ) -> str:
        payload = self.build_payload(config, chunk, knowledge_base=knowledge_base, schema_tool=schema_tool)
        data = self._post(payload)
        return unwrap_envelope(data)

    def _post(self, payload: dict) -> Any:
        url = self.settings.endpoint_url
        attempt = 1
        last_error: Optional[CompletionError] = None
        while attempt <= self._max_attempts:
            try:
                response: Response = self._session.post(
                    url, json=payload, headers=self._headers(), timeout=self.settings.timeout
                )
            except RequestException as exc:
                retryable = self._should_retry(attempt)
                error = TransportFailure(f"Failed to reach completion service: {exc}", retryable=retryable)
                if not retryable:
                    raise error from exc
                last_error = error
                self._backoff(attempt, error)
                attempt += 1
                continue

            if response.status_code >= 400:
                retryable = self._should_retry(attempt, response.status_code)
                error = TransportFailure(
                    f"Completion service error {response.status_code}: {self._clip_text(response.text)}",
                    retryable=retryable,
                )
                if not retryable:
                    raise error
                last_error = error
                self._backoff(attempt, error)
                attempt += 1
                continue

            try:
                return response.json()
            except ValueError as exc:
                raise MalformedResponse(
                    f"Invalid JSON response from completion service: {self._clip_text(response.text)}"
                ) from exc
        if last_error:
            raise last_error
        raise TransportFailure("Completion request failed.")

    def _headers(self) -> dict:
        return {"Content-Type": "application/json"}

    def _backoff(self, attempt: int, error: CompletionError) -> None:
        delay = self._retry_delay(attempt)
        logger.warning("%s Retrying in %.1fs (attempt %s/%s).", error, delay, attempt + 1, self._max_attempts)
        self._sleep(delay)

    @staticmethod
    def _retry_delay(attempt: int) -> float:
        return min(5.0, 0.5 * attempt)

    def _should_retry(self, attempt: int, status_code: Optional[int] = None) -> bool:
        if attempt >= self._max_attempts:
            return False
        if status_code is None:
            return True
        if status_code in _RETRYABLE_STATUS:
            return True
        return 500 <= status_code < 600

    def _sleep(self, seconds: float) -> None:
        time.sleep(seconds)

    @staticmethod
    def _clip_text(text: str, limit: int = 800) -> str:
        snippet = (text or "").strip()
        if not snippet:
            return "<empty response>"
        if len(snippet) <= limit:
            return snippet
        return f"{snippet[:limit]}…"


def validate_completion_settings(endpoint_url: str, model: str) -> tuple[bool, str]:
    missing: list[str] = []
    if not (endpoint_url or "").strip():
        missing.append("endpoint URL")
    if not (model or "").strip():
        missing.append("model")
    if missing:
        return False, f"Completion settings incomplete: {', '.join(missing)} required."
    return True, ""
