import json
import re
from typing import Optional

import httpx

from app.core.config import (
    GEMINI_API_KEY,
    GEMINI_BASE_URL,
    GEMINI_MODEL,
    GEMINI_VISION_MODEL,
    GEMINI_TIMEOUT_SECONDS,
)
from app.core.exceptions import GeminiError
from app.utils.logger import get_logger

logger = get_logger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def extract_json(text: str) -> dict:
    """Pull the first JSON object out of free model text.

    Code fences are stripped; anything before the first ``{`` and after the
    last ``}`` is ignored. Raises ``GeminiError`` when nothing parses.
    """
    if not text:
        raise GeminiError("Empty response from model")

    cleaned = _FENCE_RE.sub("", text).strip()
    match = _OBJECT_RE.search(cleaned)
    if not match:
        raise GeminiError("No JSON object found in model response")

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise GeminiError(f"Invalid JSON in model response: {exc}") from exc

    if not isinstance(data, dict):
        raise GeminiError("Model response JSON is not an object")
    return data


class GeminiClient:
    """Thin async wrapper over the ``generateContent`` REST endpoint."""

    def __init__(
        self,
        api_key: str = GEMINI_API_KEY,
        *,
        base_url: str = GEMINI_BASE_URL,
        model: str = GEMINI_MODEL,
        vision_model: str = GEMINI_VISION_MODEL,
        timeout: float = GEMINI_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.vision_model = vision_model
        self.timeout = timeout

    @property
    def is_ready(self) -> bool:
        return bool(self.api_key)

    def endpoint(self, model: str) -> str:
        return f"{self.base_url}/models/{model}:generateContent"

    async def generate_content(
        self,
        prompt: str,
        *,
        image_base64: Optional[str] = None,
        mime_type: str = "image/jpeg",
        model: Optional[str] = None,
        temperature: float = 0.2,
        max_output_tokens: int = 1024,
    ) -> str:
        if not self.is_ready:
            raise GeminiError("Gemini API key not configured")

        parts: list[dict] = [{"text": prompt}]
        if image_base64:
            parts.append({"inline_data": {"mime_type": mime_type, "data": image_base64}})

        payload = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_output_tokens,
            },
        }
        model = model or (self.vision_model if image_base64 else self.model)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                resp = await client.post(
                    self.endpoint(model),
                    params={"key": self.api_key},
                    json=payload,
                )
            except httpx.HTTPError as exc:
                logger.warning("Gemini request failed: %s", exc)
                raise GeminiError(f"Gemini request failed: {exc}") from exc

        if resp.status_code >= 400:
            try:
                message = resp.json().get("error", {}).get("message")
            except ValueError:
                message = None
            logger.warning("Gemini API error %s: %s", resp.status_code, message)
            raise GeminiError(f"Gemini API error: {message or resp.reason_phrase}")

        try:
            data = resp.json()
            return data["candidates"][0]["content"]["parts"][0].get("text", "")
        except (ValueError, KeyError, IndexError, TypeError):
            return ""

    async def generate_json(self, prompt: str, **kwargs) -> dict:
        text = await self.generate_content(prompt, **kwargs)
        return extract_json(text)
