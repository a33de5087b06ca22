import logging
from pathlib import Path

import pytest

import config
from config import AppConfig, ModelConfig, configure_logging, load_config
from errors import ConfigurationError


def test_missing_default_file_gives_defaults(monkeypatch, tmp_path):
    monkeypatch.delenv("METER_CHECK_CONFIG", raising=False)
    monkeypatch.setattr(config, "CONFIG_PATH", tmp_path / "absent.yaml")
    cfg = load_config()
    assert cfg == AppConfig()
    assert cfg.model.provider == "huggingface"
    assert cfg.model.model_id == "Qwen/Qwen2.5-VL-72B-Instruct"
    assert cfg.image.max_edge == 1024
    assert cfg.image.quality == 0.7


def test_bundled_config_loads(monkeypatch):
    monkeypatch.delenv("METER_CHECK_CONFIG", raising=False)
    cfg = load_config()
    assert cfg.model.api_key_env == "HF_TOKEN"
    assert cfg.image.thumbnail_max_edge == 800
    assert cfg.language == "th"


def test_yaml_overrides(tmp_path):
    p = tmp_path / "app.yaml"
    p.write_text(
        "model:\n"
        "  provider: Gemini\n"
        "  temperature: 0\n"
        "image:\n"
        "  max_edge: 800\n"
        "storage:\n"
        "  sessions_file: /tmp/s.json\n"
        "logging:\n"
        "  level: debug\n"
        "ui:\n"
        "  language: en\n",
        encoding="utf-8",
    )
    cfg = load_config(p)
    assert cfg.model.provider == "gemini"
    assert cfg.model.model_id == "gemini-2.5-flash"
    assert cfg.model.api_key_env == "GEMINI_API_KEY"
    assert cfg.model.temperature == 0.0
    assert cfg.image.max_edge == 800
    assert cfg.image.quality == 0.7
    assert cfg.storage.sessions_file == Path("/tmp/s.json")
    assert cfg.log_level == "DEBUG"
    assert cfg.language == "en"


def test_env_var_selects_file(tmp_path, monkeypatch):
    p = tmp_path / "custom.yaml"
    p.write_text("image:\n  max_edge: 512\n", encoding="utf-8")
    monkeypatch.setenv("METER_CHECK_CONFIG", str(p))
    assert load_config().image.max_edge == 512


def test_explicit_missing_file_raises(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / "nope.yaml")


def test_invalid_yaml_raises(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("model: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(p)


def test_non_mapping_yaml_raises(tmp_path):
    p = tmp_path / "list.yaml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(p)


def test_bad_numeric_value_raises(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("image:\n  max_edge: huge\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(p)


@pytest.mark.parametrize(
    "image",
    [
        {"quality": 70},
        {"quality": 0},
        {"thumbnail_quality": 1.5},
        {"max_edge": 0},
        {"thumbnail_max_edge": -1},
    ],
)
def test_out_of_range_image_values_raise(image):
    with pytest.raises(ConfigurationError, match="image\\."):
        config.config_from_dict({"image": image})


def test_api_key_lookup(monkeypatch):
    monkeypatch.delenv("HF_TOKEN", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)
    mc = ModelConfig()
    assert mc.api_key() is None

    monkeypatch.setenv("API_KEY", "generic")
    assert mc.api_key() == "generic"

    monkeypatch.setenv("HF_TOKEN", "  hf_specific  ")
    assert mc.api_key() == "hf_specific"


def test_configure_logging_is_idempotent():
    root = logging.getLogger()
    before = len(root.handlers)
    configure_logging("debug")
    configure_logging("info")
    tagged = [h for h in root.handlers if getattr(h, "_meter_check", False)]
    assert len(tagged) == 1
    assert len(root.handlers) <= before + 1
    assert root.level == logging.INFO
    root.removeHandler(tagged[0])
