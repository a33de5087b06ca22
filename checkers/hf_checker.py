"""
HFChecker: Checker backed by a vision-language model on Hugging Face Inference
Providers (Qwen2.5-VL by default).

Requires:
- HF_TOKEN env var (or the variable named by model.api_key_env) with
  permission to call Inference Providers.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from huggingface_hub import InferenceClient

from imaging import NormalizedImage

from .base_checker import BaseChecker


class HFChecker(BaseChecker):
    """
    Sends the normalized table photo as a base64 data URL through the chat
    completions endpoint. The output schema is always included in the prompt;
    ``structured_output=True`` additionally sends it as ``response_format``
    for providers that enforce JSON schemas.
    """

    provider = "huggingface"
    MODEL_ID = "Qwen/Qwen2.5-VL-72B-Instruct"

    def __init__(
        self,
        model_id: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        structured_output: bool = False,
        **kwargs: Any,
    ):
        super().__init__(model_id=model_id or self.MODEL_ID, api_key=api_key, **kwargs)
        self.structured_output = structured_output
        self._client: Optional[InferenceClient] = None

    def _get_client(self) -> InferenceClient:
        # Built lazily so a missing key is reported by analyze(), not at construction.
        if self._client is None:
            self._client = InferenceClient(api_key=self.api_key, timeout=self.timeout_s)
        return self._client

    def _call_api(self, prompt: str, image: NormalizedImage) -> str:
        messages = [
            {
                "role": "user",
                "content": [
                    {
                        "type": "image_url",
                        "image_url": {"url": image.to_data_url()},
                    },
                    {
                        "type": "text",
                        "text": prompt,
                    },
                ],
            }
        ]

        kwargs: Dict[str, Any] = dict(
            model=self.model_id,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        if self.structured_output:
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": "meter_checks",
                    "schema": self.contract.response_schema(),
                },
            }

        completion = self._get_client().chat_completion(**kwargs)
        content = completion.choices[0].message.content
        return content if isinstance(content, str) else str(content)
