"""
Application configuration loaded from ``configs/app.yaml``.

Every key has a default, so a partial YAML file (or none at all) still yields
a usable config. Credentials are never stored in the file: ``model.api_key_env``
names the environment variable that holds the key.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from errors import ConfigurationError

CONFIG_PATH = Path(__file__).parent / "configs" / "app.yaml"
CONFIG_ENV = "METER_CHECK_CONFIG"
LOG_FORMAT = "[meter-check] %(levelname)s %(name)s: %(message)s"

DEFAULT_MODELS = {
    "huggingface": "Qwen/Qwen2.5-VL-72B-Instruct",
    "gemini": "gemini-2.5-flash",
}
DEFAULT_KEY_ENVS = {
    "huggingface": "HF_TOKEN",
    "gemini": "GEMINI_API_KEY",
}


@dataclass
class ModelConfig:
    provider: str = "huggingface"
    model_id: Optional[str] = None
    temperature: float = 0.1
    max_tokens: int = 2048
    timeout_s: float = 120.0
    structured_output: bool = False
    api_key_env: Optional[str] = None

    def __post_init__(self) -> None:
        self.provider = self.provider.strip().lower()
        if self.model_id is None:
            self.model_id = DEFAULT_MODELS.get(self.provider)
        if self.api_key_env is None:
            self.api_key_env = DEFAULT_KEY_ENVS.get(self.provider, "API_KEY")

    def api_key(self) -> Optional[str]:
        """Credential from the environment; falls back to the generic API_KEY variable."""
        for name in (self.api_key_env, "API_KEY"):
            value = os.getenv(name or "", "").strip()
            if value:
                return value
        return None


@dataclass
class ImageConfig:
    max_edge: int = 1024
    quality: float = 0.7
    thumbnail_max_edge: int = 800
    thumbnail_quality: float = 0.7


@dataclass
class StorageConfig:
    sessions_file: Path = Path("data/sessions.json")


@dataclass
class AppConfig:
    model: ModelConfig = field(default_factory=ModelConfig)
    image: ImageConfig = field(default_factory=ImageConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    log_level: str = "INFO"
    language: str = "th"


def load_config(path: Optional[str | Path] = None) -> AppConfig:
    """
    Load the YAML config.

    Precedence for the file location:
      1) explicit ``path`` argument
      2) environment variable METER_CHECK_CONFIG
      3) configs/app.yaml next to this module (optional)
    """
    explicit = path or os.getenv(CONFIG_ENV)
    cfg_path = Path(explicit) if explicit else CONFIG_PATH

    if not cfg_path.is_file():
        if explicit:
            raise ConfigurationError(
                "ไม่พบไฟล์การตั้งค่า", detail=f"config file not found: {cfg_path}"
            )
        return AppConfig()

    with open(cfg_path, encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError("ไฟล์การตั้งค่าไม่ถูกต้อง", detail=str(exc)) from exc

    if not isinstance(raw, dict):
        raise ConfigurationError("ไฟล์การตั้งค่าไม่ถูกต้อง", detail=f"{cfg_path} must contain a mapping")
    return config_from_dict(raw)


def config_from_dict(raw: Dict[str, Any]) -> AppConfig:
    model_cfg = raw.get("model") or {}
    image_cfg = raw.get("image") or {}
    storage_cfg = raw.get("storage") or {}
    logging_cfg = raw.get("logging") or {}
    ui_cfg = raw.get("ui") or {}

    try:
        model = ModelConfig(
            provider=str(model_cfg.get("provider", "huggingface")),
            model_id=model_cfg.get("model_id"),
            temperature=float(model_cfg.get("temperature", 0.1)),
            max_tokens=int(model_cfg.get("max_tokens", 2048)),
            timeout_s=float(model_cfg.get("timeout_s", 120.0)),
            structured_output=bool(model_cfg.get("structured_output", False)),
            api_key_env=model_cfg.get("api_key_env"),
        )
        image = ImageConfig(
            max_edge=int(image_cfg.get("max_edge", 1024)),
            quality=float(image_cfg.get("quality", 0.7)),
            thumbnail_max_edge=int(image_cfg.get("thumbnail_max_edge", 800)),
            thumbnail_quality=float(image_cfg.get("thumbnail_quality", 0.7)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError("ไฟล์การตั้งค่าไม่ถูกต้อง", detail=str(exc)) from exc
    _validate_image(image)

    storage = StorageConfig(
        sessions_file=Path(storage_cfg.get("sessions_file", "data/sessions.json")),
    )
    return AppConfig(
        model=model,
        image=image,
        storage=storage,
        log_level=str(logging_cfg.get("level", "INFO")).upper(),
        language=str(ui_cfg.get("language", "th")),
    )


def _validate_image(image: ImageConfig) -> None:
    """JPEG quality is a fraction in (0, 1], edges are whole pixels >= 1."""
    problems = []
    for key in ("quality", "thumbnail_quality"):
        value = getattr(image, key)
        if not 0.0 < value <= 1.0:
            problems.append(f"image.{key} must be in (0, 1], got {value}")
    for key in ("max_edge", "thumbnail_max_edge"):
        value = getattr(image, key)
        if value < 1:
            problems.append(f"image.{key} must be >= 1, got {value}")
    if problems:
        raise ConfigurationError("ไฟล์การตั้งค่าไม่ถูกต้อง", detail="; ".join(problems))


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach one stream handler to the root logger (idempotent across Streamlit reruns)."""
    root = logging.getLogger()
    if not any(getattr(h, "_meter_check", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._meter_check = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return root
