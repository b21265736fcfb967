"""OpenAI-compatible chat-completions client with Server-Sent-Events decoding."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

import httpx

from pr_reviewer.config import ModelSettings
from pr_reviewer.logger import get_logger
from pr_reviewer.schema import ChatMessage

logger = get_logger()

TEMPERATURE = 0.2
ERROR_BODY_LIMIT = 2000
EMPTY_RESPONSE_PLACEHOLDER = "(model returned empty response)"
SSE_DATA_PREFIX = "data:"
SSE_DONE_TOKEN = "[DONE]"


class ModelApiError(RuntimeError):
    """Raised when the model endpoint returns a non-success status."""

    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


def build_model_client(
    settings: ModelSettings,
    *,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Build an HTTP client for the model endpoint.

    A positive ``timeout_seconds`` replaces httpx's short default because
    completions can take minutes.
    """
    headers = {"Accept": "application/json, text/event-stream"}
    if settings.api_key and settings.api_key.strip():
        headers["Authorization"] = f"Bearer {settings.api_key}"
    timeout = httpx.Timeout(settings.timeout_seconds) if settings.timeout_seconds > 0 else None
    kwargs: dict[str, Any] = {"headers": headers, "transport": transport}
    if timeout is not None:
        kwargs["timeout"] = timeout
    return httpx.Client(**kwargs)


def build_payload(settings: ModelSettings, messages: Sequence[ChatMessage]) -> dict[str, Any]:
    """Return the chat-completions request body."""
    payload: dict[str, Any] = {
        "model": settings.model,
        "messages": [message.to_payload() for message in messages],
        "temperature": TEMPERATURE,
        "max_tokens": settings.max_tokens,
    }
    if settings.stream:
        payload["stream"] = True
    return payload


def _truncate_body(body: str) -> str:
    if len(body) <= ERROR_BODY_LIMIT:
        return body
    return body[:ERROR_BODY_LIMIT] + "..."


def _error_message_from_body(body: str) -> str | None:
    """Return the message of a structured ``{"error": ...}`` body, if any."""
    try:
        payload = json.loads(body)
    except ValueError:
        return None
    if not isinstance(payload, dict) or "error" not in payload:
        return None
    error = payload["error"]
    if isinstance(error, dict):
        message = error.get("message")
        return message if isinstance(message, str) else json.dumps(error)
    return str(error)


def _raise_model_error(response: httpx.Response) -> None:
    body = response.text
    prefix = f"Model request failed: {response.status_code} {response.reason_phrase}."
    structured = _error_message_from_body(body)
    if structured is not None:
        message = f"{prefix} Error: {structured}"
    else:
        message = f"{prefix} Body: {_truncate_body(body)}"
    raise ModelApiError(message, status_code=response.status_code)


def _choice_text(choice: Any) -> str | None:
    """Read incremental or final text from one choice object."""
    if not isinstance(choice, dict):
        return None
    delta = choice.get("delta")
    if isinstance(delta, dict) and isinstance(delta.get("content"), str):
        return delta["content"]
    if isinstance(choice.get("text"), str):
        return choice["text"]
    message = choice.get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    return None


def _first_choice(chunk: Any) -> Any:
    if not isinstance(chunk, dict):
        return None
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    return choices[0]


def decode_event_stream(body: str) -> str:
    """Concatenate the text fragments of an OpenAI-style SSE body.

    Comment lines and non-data lines are ignored; ``data: [DONE]`` ends the
    stream. Lines that are not valid JSON are skipped.
    """
    fragments: list[str] = []
    for line in body.splitlines():
        if line.startswith(":") or not line.startswith(SSE_DATA_PREFIX):
            continue
        data = line[len(SSE_DATA_PREFIX) :].strip()
        if data.upper() == SSE_DONE_TOKEN:
            break
        if not data:
            continue
        try:
            chunk = json.loads(data)
        except ValueError:
            logger.debug("Skipping malformed stream chunk: {}", data[:200])
            continue
        piece = _choice_text(_first_choice(chunk))
        if piece:
            fragments.append(piece)
    return "".join(fragments)


def is_event_stream(content_type: str, body: str) -> bool:
    """Return whether a response should be decoded as Server-Sent Events."""
    if "event-stream" in content_type.lower():
        return True
    return body.lstrip().lower().startswith(SSE_DATA_PREFIX)


def extract_completion_text(body: str) -> str:
    """Return the message text of a non-streamed completion, else the body itself."""
    try:
        payload = json.loads(body)
    except ValueError:
        return body
    text = _choice_text(_first_choice(payload))
    return text if text is not None else body


def request_review(
    *,
    client: httpx.Client,
    settings: ModelSettings,
    messages: Sequence[ChatMessage],
) -> str:
    """Send the prompt and return the decoded review text (never empty)."""
    response = client.post(settings.endpoint, json=build_payload(settings, messages))
    body = response.text
    if response.status_code >= 400:
        _raise_model_error(response)

    content_type = response.headers.get("content-type", "")
    if is_event_stream(content_type, body):
        text = decode_event_stream(body)
        if not text.strip():
            logger.warning("Stream decode produced no text; returning raw body")
            text = body
    else:
        text = extract_completion_text(body)

    if not text.strip():
        return EMPTY_RESPONSE_PLACEHOLDER
    return text
