"""Tests for configuration loading."""

import pytest

from chat_exporter.config import (
    ExportConfig,
    RetryPolicy,
    convert_date_tokens,
    deep_merge,
    load_config,
    load_file,
)


@pytest.fixture(autouse=True)
def isolated_user_dir(tmp_path, monkeypatch):
    """Keep a real per-user config.yaml out of the tests."""
    monkeypatch.delenv("APPDATA", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))


def test_defaults_from_packaged_yaml(tmp_path):
    config = load_config(base_dir=tmp_path)
    assert config.scroll == RetryPolicy(60, 1.2, 4)
    assert config.clipboard.max_attempts == 15
    assert config.clipboard.hover_delay == 0.2
    assert config.output.format == "md"
    assert config.output.toc is True
    assert config.date_format == "%Y-%m-%d_%H%M%S"
    assert config.noise_patterns == ("Show thinking",)
    assert config.selectors.model_response == "model-response"
    assert config.base_dir == tmp_path


def test_user_overrides_are_merged(tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text(
        "output:\n"
        "  format: html\n"
        "  toc: 'false'\n"
        "timing:\n"
        "  scroll:\n"
        "    delay: 0\n"
        "date_format: yyyyMMdd\n"
        "labels:\n"
        "  assistant: Bard\n"
        "removes:\n"
        "  - Regenerate\n",
        encoding="utf-8",
    )
    config = load_config(path, base_dir=tmp_path)
    assert config.output.format == "html"
    assert config.output.toc is False
    assert config.output.mode == "file"
    assert config.scroll.delay == 0.0
    assert config.scroll.max_attempts == 60
    assert config.date_format == "%Y%m%d"
    assert config.labels.assistant == "Bard"
    assert config.labels.user == "You"
    assert config.noise_patterns == ("Show thinking", "Regenerate")


def test_local_config_is_picked_up(tmp_path):
    (tmp_path / "config.yaml").write_text("selection: ai\n", encoding="utf-8")
    assert load_config(base_dir=tmp_path).selection == "ai"


def test_invalid_values_fall_back(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("output:\n  format: pdf\n  mode: fax\n  theme: neon\n", encoding="utf-8")
    config = load_config(path, base_dir=tmp_path)
    assert (config.output.format, config.output.mode, config.output.theme) == ("md", "file", "auto")


def test_broken_yaml_is_ignored(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("output: [unclosed\n", encoding="utf-8")
    assert load_file(path) == {}
    assert load_config(path, base_dir=tmp_path).output.format == "md"


def test_missing_file(tmp_path):
    assert load_file(tmp_path / "nope.yaml") == {}


def test_retry_policy_is_clamped():
    policy = RetryPolicy.from_dict({"max_attempts": 0, "delay": -1, "unknown": 3}, stability_threshold=2)
    assert policy == RetryPolicy(1, 0.0, 2, 0.0)


def test_deep_merge():
    target = {"a": {"b": 1, "c": 2}, "d": 1}
    assert deep_merge(target, {"a": {"c": 3}, "e": 4}) == {"a": {"b": 1, "c": 3}, "d": 1, "e": 4}


def test_convert_date_tokens():
    assert convert_date_tokens("yyyy-MM-dd_HHmmss") == "%Y-%m-%d_%H%M%S"


def test_config_is_immutable():
    with pytest.raises(AttributeError):
        ExportConfig().selection = "none"
