"""
GeminiChecker: Checker backed by Google Gemini with native JSON-schema output.

Requires:
- GEMINI_API_KEY env var (or the variable named by model.api_key_env).
"""

from __future__ import annotations

from typing import Any, Optional

import google.generativeai as genai

from imaging import NormalizedImage

from .base_checker import BaseChecker


class GeminiChecker(BaseChecker):
    """Inline image part + instruction text, ``response_schema`` in the generation config."""

    provider = "gemini"
    MODEL_ID = "gemini-2.5-flash"
    include_schema_in_prompt = False

    def __init__(self, model_id: Optional[str] = None, api_key: Optional[str] = None, **kwargs: Any):
        super().__init__(model_id=model_id or self.MODEL_ID, api_key=api_key, **kwargs)

    def _call_api(self, prompt: str, image: NormalizedImage) -> str:
        genai.configure(api_key=self.api_key)
        model = genai.GenerativeModel(self.model_id)

        response = model.generate_content(
            [
                {"mime_type": image.mime_type, "data": image.data},
                prompt,
            ],
            generation_config={
                "temperature": self.temperature,
                "max_output_tokens": self.max_tokens,
                "response_mime_type": "application/json",
                "response_schema": self.contract.gemini_schema(),
            },
            request_options={"timeout": self.timeout_s},
        )
        return response.text
