from __future__ import annotations

from typing import Optional

from config import AppConfig

from .base_checker import AnalysisResult, BaseChecker, FailureKind, strip_result_suffix
from .gemini_checker import GeminiChecker
from .hf_checker import HFChecker


def load_checker_from_config(config: AppConfig, api_key: Optional[str] = None) -> BaseChecker:
    """
    Build the checker backend named by ``config.model.provider``.

    ``api_key`` overrides the environment lookup (the Streamlit view passes
    the value from ``st.secrets`` when the env var is unset). A missing key is
    not an error here: analyze() reports it as a ConfigurationError.
    """
    mc = config.model
    common = dict(
        model_id=mc.model_id,
        api_key=api_key if api_key is not None else mc.api_key(),
        max_edge=config.image.max_edge,
        quality=config.image.quality,
        temperature=mc.temperature,
        max_tokens=mc.max_tokens,
        timeout_s=mc.timeout_s,
    )

    if mc.provider == "huggingface":
        return HFChecker(structured_output=mc.structured_output, **common)
    if mc.provider == "gemini":
        return GeminiChecker(**common)
    raise ValueError(f"Unsupported model provider in config: {mc.provider}")


__all__ = [
    "AnalysisResult",
    "BaseChecker",
    "FailureKind",
    "GeminiChecker",
    "HFChecker",
    "load_checker_from_config",
    "strip_result_suffix",
]
