"""Gemini REST client: plain text and schema-constrained JSON generation.

Two model tiers, both configurable:
  - chat: GEMINI_CHAT_MODEL (gemini-2.5-flash) for conversational replies
  - analysis: GEMINI_ANALYSIS_MODEL (gemini-2.5-pro) for structured business analysis

Usage:
    from insightbi.services import gemini_client
    text = gemini_client.generate(
        model=current_app.config["GEMINI_CHAT_MODEL"],
        contents=[{"role": "user", "parts": [{"text": "Hola"}]}],
        system_instruction="Eres un analista de negocios.",
    )
"""
from __future__ import annotations

import json
import logging
from typing import Any

import httpx
from flask import current_app

log = logging.getLogger("insightbi.gemini")

API_BASE = "https://generativelanguage.googleapis.com/v1beta"


class AIServiceError(Exception):
    """The model could not be reached or returned an unusable answer."""


def api_key() -> str:
    return current_app.config.get("GEMINI_API_KEY") or ""


def _headers() -> dict:
    return {
        "x-goog-api-key": api_key(),
        "content-type": "application/json",
    }


def generate(
    *,
    model: str,
    contents: list[dict],
    system_instruction: str = "",
    response_schema: dict | None = None,
    temperature: float = 0.7,
) -> str | dict:
    """Call generateContent.

    Args:
        model: Gemini model name
        contents: Gemini-format turns [{"role": "user"|"model", "parts": [{"text": ...}]}]
        system_instruction: System prompt
        response_schema: When given, the reply is constrained to this JSON schema and parsed

    Returns:
        The reply text, or the parsed dict when response_schema is set

    Raises:
        AIServiceError: missing key, transport failure, non-200 status or empty reply
    """
    if not api_key():
        raise AIServiceError("GEMINI_API_KEY is not configured")

    body: dict[str, Any] = {
        "contents": contents,
        "generationConfig": {"temperature": temperature},
    }
    if system_instruction:
        body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
    if response_schema is not None:
        body["generationConfig"]["responseMimeType"] = "application/json"
        body["generationConfig"]["responseSchema"] = response_schema

    timeout = current_app.config.get("GEMINI_TIMEOUT_SECONDS", 60)
    try:
        with httpx.Client(timeout=timeout) as client:
            resp = client.post(
                f"{API_BASE}/models/{model}:generateContent",
                headers=_headers(),
                json=body,
            )
    except httpx.HTTPError as e:
        log.warning("Gemini request failed: %s", e)
        raise AIServiceError("AI service unavailable") from e

    if resp.status_code != 200:
        log.warning("Gemini API %s: %s", resp.status_code, resp.text[:200])
        raise AIServiceError(f"AI service returned {resp.status_code}")

    text = _extract_text(resp.json())
    if not text:
        log.warning("Gemini response had no text candidate")
        raise AIServiceError("Empty response from AI service")

    if response_schema is None:
        return text
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        log.warning("Gemini structured output was not valid JSON: %s", text[:200])
        raise AIServiceError("AI service returned malformed JSON") from e


def _extract_text(data: dict) -> str:
    for candidate in data.get("candidates") or []:
        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(p.get("text", "") for p in parts)
        if text.strip():
            return text.strip()
    return ""
