import pytest

from note_triage.core.config import Settings, get_categories, get_settings, load_config
from note_triage.core.errors import ConfigError


def test_load_config_reads_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("triage:\n  categories: [Groceries, Other]\n", encoding="utf-8")

    config = load_config(str(path))

    assert get_categories(config) == ["Groceries", "Other"]


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.yaml"))


def test_load_config_invalid_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("triage: [unclosed", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(str(path))


def test_project_config_is_valid():
    settings = get_settings(load_config("config.yaml"))

    assert settings.fallback_category == "Other"
    assert settings.cache_max_entries == 5000
    assert settings.cache_ttl_seconds == 7 * 24 * 3600
    assert settings.request_timeout == 8
    assert "Groceries" in settings.default_categories


def test_get_categories_requires_key():
    with pytest.raises(ConfigError):
        get_categories({"triage": {}})


def test_defaults_without_config():
    settings = get_settings({})

    assert settings == Settings()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "g-key")
    monkeypatch.setenv("OPENAI_MODEL", "gpt-test")
    monkeypatch.setenv("FALLBACK_CONFIDENCE", "0.55")
    monkeypatch.setenv("LOW_CONFIDENCE_THRESHOLD", "0.5")
    monkeypatch.setenv("DEBUG_LOG", "1")

    settings = get_settings({"providers": {"openai": {"model": "from-yaml"}}})

    assert settings.gemini_api_key == "g-key"
    assert settings.openai_api_key is None
    assert settings.openai_model == "gpt-test"
    assert settings.fallback_confidence == 0.55
    assert settings.low_confidence_threshold == 0.5
    assert settings.log_level == "DEBUG"


def test_invalid_values_raise(monkeypatch):
    with pytest.raises(ConfigError):
        get_settings({"cache": {"max_entries": "lots"}})

    monkeypatch.setenv("FALLBACK_CONFIDENCE", "2")
    with pytest.raises(ConfigError):
        get_settings({})


def test_section_must_be_mapping():
    with pytest.raises(ConfigError):
        get_settings({"classifier": ["nope"]})
