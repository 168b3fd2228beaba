"""Client utilities for the Gemini generateContent API.

An `ExtractionSession` keeps the conversation as an explicit transcript and
every `send` replays it, so "find more" requests see the rows already
returned in the same search.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from clientscout.core.config import Settings, get_settings, require_api_key
from clientscout.core.prompts import SYSTEM_INSTRUCTION

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

# Live lookup capabilities the agent needs for the Maps search and enrichment steps.
TOOLS = ({"googleMaps": {}}, {"googleSearch": {}})


class BackendError(RuntimeError):
    """Raised when the backend call fails or returns no text."""


@dataclass
class ExtractionSession:
    model: str
    system_instruction: str
    max_output_tokens: int
    tools: List[Dict[str, Any]] = field(default_factory=lambda: [dict(tool) for tool in TOOLS])
    transcript: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def turns(self) -> int:
        return len(self.transcript)


def open_session(settings: Optional[Settings] = None) -> ExtractionSession:
    """Create a fresh conversational context for one search.

    Fails with ConfigError before any network traffic when the API key is missing.
    """
    settings = settings or get_settings()
    require_api_key(settings)
    return ExtractionSession(
        model=settings.gemini_model,
        system_instruction=SYSTEM_INSTRUCTION,
        max_output_tokens=settings.max_output_tokens,
    )


def build_payload(session: ExtractionSession, prompt_text: str) -> Dict[str, Any]:
    contents = list(session.transcript)
    contents.append(_turn("user", prompt_text))
    return {
        "systemInstruction": {"parts": [{"text": session.system_instruction}]},
        "contents": contents,
        "tools": session.tools,
        "generationConfig": {"maxOutputTokens": session.max_output_tokens},
    }


def send(session: ExtractionSession, prompt_text: str, settings: Optional[Settings] = None) -> str:
    """Send one instruction on the session and return the reply text.

    The transcript is only extended after a successful round trip. A reply cut
    at the output-token limit is returned as-is and logged, since the table it
    contains is usually still usable.
    """
    settings = settings or get_settings()
    api_key = require_api_key(settings)
    payload = build_payload(session, prompt_text)

    logger.info("Calling Gemini model=%s turns=%d", session.model, session.turns)
    try:
        response = _SESSION.post(
            f"{_BASE_URL}/{session.model}:generateContent",
            headers={"x-goog-api-key": api_key},
            json=payload,
            timeout=settings.request_timeout,
        )
    except requests.RequestException as exc:
        logger.error("Gemini request failed: %s", exc)
        raise BackendError(f"Gemini request failed: {exc}") from exc

    if not (200 <= response.status_code < 300):
        message = _error_message(response)
        logger.error("Gemini returned status=%s: %s", response.status_code, message)
        raise BackendError(message)

    try:
        body = response.json()
    except ValueError as exc:
        logger.error("Gemini returned a non-JSON body: %s", response.text[:200])
        raise BackendError("Gemini returned a non-JSON response") from exc
    if not isinstance(body, dict):
        logger.error("Gemini returned an unexpected payload type: %s", type(body).__name__)
        raise BackendError("Gemini returned an unexpected response payload")

    text = _extract_text(body)
    logger.debug("Gemini reply: %s", text)

    session.transcript.append(_turn("user", prompt_text))
    session.transcript.append(_turn("model", text))
    return text


def _turn(role: str, text: str) -> Dict[str, Any]:
    return {"role": role, "parts": [{"text": text}]}


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error") or {}
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
    return response.text[:500] or f"Gemini returned HTTP {response.status_code}"


def _extract_text(body: Dict[str, Any]) -> str:
    candidates = body.get("candidates") or []
    if not candidates:
        block_reason = (body.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            raise BackendError(f"Gemini blocked the request: {block_reason}")
        raise BackendError("No text response received from Gemini.")

    candidate = candidates[0]
    if candidate.get("finishReason") == "MAX_TOKENS":
        logger.warning("Gemini reply hit the output token limit; results may be partial.")

    parts = (candidate.get("content") or {}).get("parts") or []
    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
    if not text.strip():
        raise BackendError("No text response received from Gemini.")
    return text
