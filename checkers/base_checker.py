"""
BaseChecker: Abstract base class for the model backends that check a meter table.
Defines the contract every backend must fulfil.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from errors import ConfigurationError, MalformedResponseError, MeterCheckError, TransportError
from imaging import NormalizedImage, normalize_image
from imaging.normalizer import ImageSource
from prompts import REQUIRED_FIELDS, UNREADABLE_SENTINEL, MeterContract

logger = logging.getLogger(__name__)

Value = Union[str, int, float]


# ---------------------------------------------------------------------------
# Data model for one verdict row
# ---------------------------------------------------------------------------

class FailureKind(str, Enum):
    PASSED = "passed"
    MISMATCH = "mismatch"        # values were read, arithmetic does not hold
    UNREADABLE = "unreadable"    # at least one value could not be read


@dataclass
class AnalysisResult:
    """One arithmetic rule check returned by the model."""

    condition: str                      # e.g. "007+008+009 = 006"
    calculation: str                    # operands only, e.g. "402+396+559"
    actual_result: Value
    expected_value: Value
    status: bool
    reason: Optional[str] = None        # set only for UNREADABLE failures

    @property
    def failure_kind(self) -> FailureKind:
        if self.status:
            return FailureKind.PASSED
        if self.reason:
            return FailureKind.UNREADABLE
        return FailureKind.MISMATCH

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "condition": self.condition,
            "calculation": self.calculation,
            "actualResult": self.actual_result,
            "expectedValue": self.expected_value,
            "status": self.status,
        }
        if self.reason:
            d["reason"] = self.reason
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AnalysisResult":
        """Lenient loader for rows already validated once (e.g. from saved sessions)."""
        status = bool(d.get("status", False))
        return cls(
            condition=str(d.get("condition", "")),
            calculation=strip_result_suffix(str(d.get("calculation", ""))),
            actual_result=d.get("actualResult", ""),
            expected_value=d.get("expectedValue", ""),
            status=status,
            reason=normalize_reason(status, d.get("reason")),
        )


def strip_result_suffix(calculation: str) -> str:
    """'402+396+559 = 1357' -> '402+396+559'."""
    return calculation.split("=", 1)[0].strip()


def normalize_reason(status: bool, reason: Any) -> Optional[str]:
    """
    Keep ``reason`` only when it marks an unreadable value.
    A passing row or a plain mismatch never carries a reason.
    """
    if status or not isinstance(reason, str):
        return None
    reason = reason.strip()
    if UNREADABLE_SENTINEL in reason:
        return reason
    return None


# ---------------------------------------------------------------------------
# Abstract base class
# ---------------------------------------------------------------------------

class BaseChecker(ABC):
    """
    Abstract checker. Subclasses implement `_call_api` to hit a specific
    provider. The base class handles the credential check, image normalization,
    prompt building, strict JSON parsing and post-processing.

    No retries: a failed call surfaces to the user, who retries manually.
    """

    provider = "base"
    # Backends without native structured output get the schema inside the prompt.
    include_schema_in_prompt = True

    def __init__(
        self,
        model_id: str,
        api_key: Optional[str],
        *,
        contract: Optional[MeterContract] = None,
        max_edge: int = 1024,
        quality: float = 0.7,
        temperature: float = 0.1,
        max_tokens: int = 2048,
        timeout_s: float = 120.0,
    ):
        self.model_id = model_id
        self.api_key = api_key
        self.contract = contract or MeterContract()
        self.max_edge = max_edge
        self.quality = quality
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_s = timeout_s

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    async def analyze(self, image: ImageSource, filename: Optional[str] = None) -> List[AnalysisResult]:
        """
        Check one table photo. All-or-nothing: either every row parses or an
        error is raised.

        Raises:
            ConfigurationError:      no credential (raised before any other work).
            ImageNormalizationError: the upload is not a usable image.
            TransportError:          the provider call failed.
            MalformedResponseError:  the answer does not match the schema.
        """
        if not (self.api_key or "").strip():
            raise ConfigurationError(detail=f"missing API key for provider '{self.provider}'")

        normalized = normalize_image(image, max_edge=self.max_edge, quality=self.quality, filename=filename)
        prompt = self.build_prompt()

        logger.info(
            "Sending %s (%dx%d, %d bytes) to %s model %s",
            normalized.filename, normalized.width, normalized.height,
            len(normalized.data), self.provider, self.model_id,
        )
        try:
            raw = await asyncio.to_thread(self._call_api, prompt, normalized)
        except MeterCheckError:
            raise
        except Exception as exc:
            logger.error("Model call to %s failed: %s", self.provider, exc)
            raise TransportError(
                f"{TransportError.default_message}: {exc}",
                detail=type(exc).__name__,
            ) from exc

        results = self.parse_response(raw)
        logger.info(
            "Model returned %d rows (%d failed)",
            len(results), sum(1 for r in results if not r.status),
        )
        return results

    def build_prompt(self) -> str:
        return self.contract.build_prompt(include_schema=self.include_schema_in_prompt)

    # ------------------------------------------------------------------
    # Subclass contract
    # ------------------------------------------------------------------

    @abstractmethod
    def _call_api(self, prompt: str, image: NormalizedImage) -> str:
        """
        Call the provider and return the raw text response.
        Runs in a worker thread; may block.
        """
        ...

    # ------------------------------------------------------------------
    # JSON parsing
    # ------------------------------------------------------------------

    def parse_response(self, raw: Optional[str]) -> List[AnalysisResult]:
        """Parse and validate the model answer into AnalysisResult rows."""
        if not isinstance(raw, str) or not raw.strip():
            raise MalformedResponseError(detail="empty response")

        json_str = self._extract_json(raw)
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as exc:
            logger.warning("Unparseable model output: %.200s", raw)
            raise MalformedResponseError(detail=f"JSON decode error: {exc}") from exc

        if not isinstance(data, list):
            raise MalformedResponseError(detail=f"expected a JSON array, got {type(data).__name__}")

        return [self._parse_row(i, item) for i, item in enumerate(data)]

    @staticmethod
    def _parse_row(index: int, item: Any) -> AnalysisResult:
        if not isinstance(item, dict):
            raise MalformedResponseError(detail=f"row {index} is not an object")

        missing = [f for f in REQUIRED_FIELDS if f not in item]
        if missing:
            raise MalformedResponseError(detail=f"row {index} is missing {missing}")

        for key in ("condition", "calculation"):
            if not isinstance(item[key], str):
                raise MalformedResponseError(detail=f"row {index}: '{key}' must be a string")
        for key in ("actualResult", "expectedValue"):
            value = item[key]
            if isinstance(value, bool) or not isinstance(value, (str, int, float)):
                raise MalformedResponseError(detail=f"row {index}: '{key}' must be a string or number")
        if not isinstance(item["status"], bool):
            raise MalformedResponseError(detail=f"row {index}: 'status' must be a boolean")
        reason = item.get("reason")
        if reason is not None and not isinstance(reason, str):
            raise MalformedResponseError(detail=f"row {index}: 'reason' must be a string")

        status = item["status"]
        return AnalysisResult(
            condition=item["condition"].strip(),
            calculation=strip_result_suffix(item["calculation"]),
            actual_result=item["actualResult"],
            expected_value=item["expectedValue"],
            status=status,
            reason=normalize_reason(status, reason),
        )

    @staticmethod
    def _extract_json(text: str) -> str:
        """
        Strip whitespace and markdown code fences around the JSON payload.
        Handles models that wrap the array in ```json ... ``` despite the schema.
        """
        text = text.strip()
        fenced = re.match(r"^```(?:json)?\s*(.*?)\s*```$", text, re.DOTALL)
        if fenced:
            return fenced.group(1)
        return text
