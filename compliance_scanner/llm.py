"""Text-generation collaborator backed by Google Gemini (google-genai SDK)."""
from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from .config import ScannerSettings
from .errors import ModelErrorCategory, TextGenerationError, classify_model_error, model_error_reason

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """Anything that turns a system + user instruction into free text."""

    def generate(self, system_prompt: str, user_prompt: str) -> str: ...


class GeminiTextGenerator:
    def __init__(
        self,
        api_key: str,
        model: str = "gemini-3-flash-preview",
        temperature: float = 0.3,
        max_output_tokens: int = 4096,
        timeout_ms: int = 60000,
    ):
        if not api_key:
            raise TextGenerationError(
                model_error_reason(ModelErrorCategory.NOT_CONFIGURED),
                category=ModelErrorCategory.NOT_CONFIGURED,
            )
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout_ms = timeout_ms
        self._client: Any = None

    @property
    def client(self) -> Any:
        """Lazily created SDK client."""
        if self._client is None:
            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=self.timeout_ms),
            )
        return self._client

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        config = types.GenerateContentConfig(
            system_instruction=system_prompt,
            response_mime_type="application/json",
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
        )
        contents = [
            types.Content(
                role="user",
                parts=[types.Part.from_text(text=user_prompt)],
            )
        ]

        logger.debug("Invoking model %s (%d prompt chars)", self.model, len(user_prompt))
        try:
            resp = self.client.models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )
        except (genai_errors.APIError, httpx.HTTPError) as e:
            category = classify_model_error(e)
            logger.error("Model %s call failed [%s]: %s", self.model, category.value, e)
            raise TextGenerationError(f"{model_error_reason(category)}: {e}", category=category) from e

        text = (getattr(resp, "text", None) or "").strip()
        logger.debug("Model %s returned %d chars", self.model, len(text))
        return text


def build_text_generator(settings: ScannerSettings) -> TextGenerator | None:
    """Gemini generator from settings, or ``None`` when no API key is configured."""
    if not settings.gemini_api_key:
        return None
    return GeminiTextGenerator(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        temperature=settings.llm_temperature,
        max_output_tokens=settings.llm_max_tokens,
        timeout_ms=max(settings.timeout_ms, 60000),
    )
