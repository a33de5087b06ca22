import json

import pytest

from checkers import load_checker_from_config
from config import config_from_dict
from errors import ConfigurationError
from prompts import REQUIRED_FIELDS, UNREADABLE_SENTINEL, ContractError, MeterContract


def test_prompt_lists_rules_sentinel_and_schema():
    prompt = MeterContract().build_prompt()
    for row in ("006", "010", "015"):
        assert row in prompt
    assert UNREADABLE_SENTINEL in prompt
    assert "### Output schema" in prompt
    assert '"expectedValue"' in prompt
    assert "{" + "output_schema}" not in prompt


def test_prompt_without_schema():
    prompt = MeterContract().build_prompt(include_schema=False)
    assert UNREADABLE_SENTINEL in prompt
    assert "### Output schema" not in prompt
    assert '"expectedValue"' not in prompt


def test_response_schema_is_a_copy():
    contract = MeterContract()
    schema = contract.response_schema()
    assert schema["type"] == "array"
    assert set(REQUIRED_FIELDS) <= set(schema["items"]["required"])
    schema["items"]["properties"].clear()
    assert contract.response_schema()["items"]["properties"]


def test_gemini_schema_uses_upper_case_types():
    schema = MeterContract().gemini_schema()
    assert schema["type"] == "ARRAY"
    props = schema["items"]["properties"]
    assert props["status"]["type"] == "BOOLEAN"
    assert props["condition"]["type"] == "STRING"
    assert "$schema" not in schema


def _write_templates(dirpath, prompt="Check rows. {unreadable_sentinel}\n{output_schema}"):
    schema = MeterContract().response_schema()
    (dirpath / "meter_rules.md").write_text(prompt, encoding="utf-8")
    (dirpath / "output_schema.json").write_text(json.dumps(schema), encoding="utf-8")


def test_templates_dir_env_override(tmp_path, monkeypatch):
    _write_templates(tmp_path, prompt="Custom layout rules. {unreadable_sentinel}\n{output_schema}")
    monkeypatch.setenv("CONTRACT_TEMPLATES_DIR", str(tmp_path))
    contract = MeterContract()
    assert contract.templates_dir == tmp_path.resolve()
    assert contract.build_prompt().startswith("Custom layout rules.")


def test_missing_template_raises(tmp_path):
    with pytest.raises(ContractError, match="Missing template"):
        MeterContract(templates_dir=tmp_path)


def test_missing_templates_dir_raises(tmp_path):
    with pytest.raises(ContractError):
        MeterContract(templates_dir=tmp_path / "nope")


def test_bad_templates_dir_is_a_configuration_error(tmp_path, monkeypatch):
    monkeypatch.setenv("CONTRACT_TEMPLATES_DIR", str(tmp_path / "gone"))
    with pytest.raises(ConfigurationError) as exc_info:
        load_checker_from_config(config_from_dict({}), api_key="k")
    assert exc_info.value.message == ContractError.default_message
    assert "CONTRACT_TEMPLATES_DIR" in exc_info.value.detail


def test_unknown_placeholder_raises(tmp_path):
    _write_templates(tmp_path, prompt="Rules {table_layout}")
    contract = MeterContract(templates_dir=tmp_path)
    with pytest.raises(ContractError, match="placeholder"):
        contract.build_prompt()


def test_schema_without_required_property_is_rejected(tmp_path):
    _write_templates(tmp_path)
    schema = json.loads((tmp_path / "output_schema.json").read_text(encoding="utf-8"))
    del schema["items"]["properties"]["status"]
    (tmp_path / "output_schema.json").write_text(json.dumps(schema), encoding="utf-8")
    with pytest.raises(ContractError, match="status"):
        MeterContract(templates_dir=tmp_path)
