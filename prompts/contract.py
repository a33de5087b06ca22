"""
contract.py

Prompt + output-schema contract for the meter-table checker.

This module loads:
- The instruction template (Markdown) listing the arithmetic rules to check
- The JSON schema describing the array of verdict rows the model must return

Expected placeholders in the instruction template:
  {output_schema}, {unreadable_sentinel}

The rule text is a deployment fact: a site with a different table layout only
needs its own ``meter_rules.md`` (point CONTRACT_TEMPLATES_DIR at it). The
schema is the wire contract parsed by ``checkers.base_checker`` and should only
change together with that parser.
"""

from __future__ import annotations

import json
import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from errors import ConfigurationError

PathLike = Union[str, Path]

# Literal the model is told to put in ``reason`` when a value cannot be read.
UNREADABLE_SENTINEL = "ไม่สามารถอ่านค่าได้"

REQUIRED_FIELDS = ("condition", "calculation", "actualResult", "expectedValue", "status")
OPTIONAL_FIELDS = ("reason",)

# JSON-schema keywords Gemini's response_schema does not accept.
_GEMINI_UNSUPPORTED_KEYS = {"$schema", "title", "additionalProperties", "default"}


class ContractError(ConfigurationError):
    """Raised for template loading/formatting errors."""

    default_message = "ไม่สามารถโหลดเทมเพลตคำสั่งสำหรับโมเดลได้"


def _to_path(p: PathLike) -> Path:
    return p if isinstance(p, Path) else Path(p)


def _resolve_templates_dir(templates_dir: Optional[PathLike]) -> Path:
    """
    Resolve the templates directory in a predictable way.

    Precedence:
      1) explicit templates_dir argument
      2) environment variable CONTRACT_TEMPLATES_DIR
      3) <this_file_dir>/templates
    """
    if templates_dir is not None:
        base = _to_path(templates_dir).expanduser().resolve()
        if not base.is_dir():
            raise ContractError(detail=f"templates_dir does not exist or is not a directory: {base}")
        return base

    env = os.getenv("CONTRACT_TEMPLATES_DIR")
    if env:
        base = Path(env).expanduser().resolve()
        if not base.is_dir():
            raise ContractError(detail=f"CONTRACT_TEMPLATES_DIR does not exist or is not a directory: {base}")
        return base

    return (Path(__file__).parent / "templates").resolve()


def _read_text(path: Path, encoding: str = "utf-8") -> str:
    if not path.is_file():
        raise ContractError(detail=f"Missing template file: {path}")
    return path.read_text(encoding=encoding).strip()


def _pretty_json(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=2, sort_keys=False)


class MeterContract:
    """Loads the instruction template and output schema shared by every checker backend."""

    def __init__(
        self,
        templates_dir: Optional[PathLike] = None,
        prompt_filename: str = "meter_rules.md",
        schema_filename: str = "output_schema.json",
        *,
        encoding: str = "utf-8",
    ) -> None:
        self.templates_dir: Path = _resolve_templates_dir(templates_dir)
        self.prompt_path = self.templates_dir / prompt_filename
        self.schema_path = self.templates_dir / schema_filename

        self._prompt_template: str = _read_text(self.prompt_path, encoding=encoding)
        schema_text = _read_text(self.schema_path, encoding=encoding)
        try:
            self._schema: Dict[str, Any] = json.loads(schema_text)
        except json.JSONDecodeError as e:
            raise ContractError(detail=f"Invalid JSON in output schema template: {self.schema_path}") from e

        self._validate_schema()

    # ---------------------------
    # Public API
    # ---------------------------

    def response_schema(self) -> Dict[str, Any]:
        """JSON schema (array of verdict objects) in plain JSON-Schema form."""
        return deepcopy(self._schema)

    def gemini_schema(self) -> Dict[str, Any]:
        """The same schema in the OpenAPI subset Gemini accepts (upper-case types)."""
        return _to_gemini(self._schema)

    def build_prompt(self, *, include_schema: bool = True) -> str:
        """
        Format the instruction template.

        Backends with native structured output can pass ``include_schema=False``
        since the schema travels in the request config instead.
        """
        schema_text = _pretty_json(self._schema) if include_schema else ""
        try:
            prompt = self._prompt_template.format(
                output_schema=schema_text,
                unreadable_sentinel=UNREADABLE_SENTINEL,
            )
        except (KeyError, IndexError) as e:
            raise ContractError(detail=(
                f"Unknown placeholder in {self.prompt_path.name}: {e}. "
                "Only {output_schema} and {unreadable_sentinel} are supported."
            )) from e
        if not include_schema:
            prompt = prompt.replace("### Output schema", "")
        return prompt.rstrip() + "\n"

    # ---------------------------
    # Internals
    # ---------------------------

    def _validate_schema(self) -> None:
        if self._schema.get("type") != "array" or not isinstance(self._schema.get("items"), dict):
            raise ContractError(detail="Output schema must describe an array of objects")
        props = self._schema["items"].get("properties", {})
        missing: List[str] = [f for f in REQUIRED_FIELDS + OPTIONAL_FIELDS if f not in props]
        if missing:
            raise ContractError(detail=f"Output schema is missing properties: {missing}")


def _to_gemini(node: Any) -> Any:
    if isinstance(node, dict):
        out: Dict[str, Any] = {}
        for key, value in node.items():
            if key in _GEMINI_UNSUPPORTED_KEYS:
                continue
            if key == "type" and isinstance(value, str):
                out[key] = value.upper()
            else:
                out[key] = _to_gemini(value)
        return out
    if isinstance(node, list):
        return [_to_gemini(v) for v in node]
    return node
