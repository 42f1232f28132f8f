"""Tests for configuration loading and saving."""

import json
import logging
import pytest
from unittest.mock import patch


ENV_VARS = [
    "SAGASU_CONFIG", "SLACK_BOT_TOKEN", "SLACK_USER_TOKEN", "SLACK_SIGNING_SECRET",
    "OPENAI_API_KEY", "OPENAI_MODEL", "ANTHROPIC_API_KEY", "ANTHROPIC_MODEL",
    "GOOGLE_API_KEY", "GEMINI_API_KEY", "GOOGLE_MODEL", "SAGASU_LLM_PROVIDER",
    "SAGASU_PORT", "SAGASU_LOG_LEVEL", "SAGASU_MAX_RESULTS", "SAGASU_SEARCH_LIMIT",
    "SAGASU_LANGUAGE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the tests
    monkeypatch.setattr("sagasu.common.config.load_dotenv", lambda: None)


class TestDefaults:
    def test_fuzzy_defaults(self):
        from sagasu.common.config import FuzzySearchConfig
        cfg = FuzzySearchConfig()
        assert cfg.command_prefix == "Fuzzy search"
        assert cfg.max_queries == 10
        assert cfg.search_limit == 20
        assert cfg.retry_limit == 10
        assert cfg.max_results == 15
        assert cfg.snippet_length == 30
        assert cfg.echo_filter == "contains"
        assert cfg.membership_errors == ["not_in_channel"]

    def test_missing_file_gives_defaults(self, tmp_path):
        from sagasu.common.config import load_config
        cfg = load_config(tmp_path / "missing.json")
        assert cfg.server.port == 3000
        assert cfg.llm.provider == "openai"


class TestLoadConfig:
    def test_load_config_file(self, tmp_path):
        from sagasu.common.config import load_config
        config_data = {
            "slack": {"bot_token": "xoxb-file", "user_token": "xoxp-file"},
            "llm": {"provider": "anthropic", "anthropic_api_key": "sk-ant", "temperature": 0.3},
            "fuzzy": {"max_results": 5, "echo_filter": "exact", "exclude_bots": False},
            "server": {"port": 8080},
        }
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps(config_data))

        with patch("sagasu.common.config.CONFIG_PATH", config_file):
            cfg = load_config()

        assert cfg.slack.bot_token == "xoxb-file"
        assert cfg.llm.provider == "anthropic"
        assert cfg.llm.temperature == 0.3
        assert cfg.fuzzy.max_results == 5
        assert cfg.fuzzy.echo_filter == "exact"
        assert cfg.fuzzy.exclude_bots is False
        assert cfg.fuzzy.search_limit == 20
        assert cfg.server.port == 8080

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        from sagasu.common.config import load_config
        config_file = tmp_path / "custom.json"
        config_file.write_text(json.dumps({"server": {"port": 9000}}))
        monkeypatch.setenv("SAGASU_CONFIG", str(config_file))

        assert load_config().server.port == 9000

    def test_invalid_json_logs_warning_and_uses_defaults(self, tmp_path, caplog):
        from sagasu.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json")

        with caplog.at_level(logging.WARNING, logger="sagasu.common.config"):
            cfg = load_config(config_file)

        assert cfg.fuzzy.max_results == 15
        assert "Failed to load config file" in caplog.text

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        from sagasu.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"slack": {"user_token": "xoxp-file"}}))
        monkeypatch.setenv("SLACK_USER_TOKEN", "xoxp-env")
        monkeypatch.setenv("GEMINI_API_KEY", "gem-key")
        monkeypatch.setenv("SAGASU_PORT", "4000")
        monkeypatch.setenv("SAGASU_MAX_RESULTS", "8")
        monkeypatch.setenv("SAGASU_LANGUAGE", "ja")

        cfg = load_config(config_file)

        assert cfg.slack.user_token == "xoxp-env"
        assert cfg.llm.google_api_key == "gem-key"
        assert cfg.server.port == 4000
        assert cfg.fuzzy.max_results == 8
        assert cfg.fuzzy.default_language == "ja"
        assert "user_token" in cfg._env_sourced_keys

    def test_invalid_integer_env_raises(self, tmp_path, monkeypatch):
        from sagasu.common.config import load_config
        monkeypatch.setenv("SAGASU_SEARCH_LIMIT", "lots")

        with pytest.raises(ValueError, match="SAGASU_SEARCH_LIMIT"):
            load_config(tmp_path / "missing.json")


class TestSaveConfig:
    def test_save_round_trips_and_is_private(self, tmp_path):
        from sagasu.common.config import SagasuConfig, load_config, save_config
        cfg = SagasuConfig()
        cfg.slack.bot_token = "xoxb-saved"
        cfg.fuzzy.echo_filter = "off"
        config_file = tmp_path / "nested" / "config.json"

        save_config(cfg, config_file)

        assert oct(config_file.stat().st_mode & 0o777) == "0o600"
        loaded = load_config(config_file)
        assert loaded.slack.bot_token == "xoxb-saved"
        assert loaded.fuzzy.echo_filter == "off"

    def test_env_sourced_secrets_are_not_written(self, tmp_path, monkeypatch):
        from sagasu.common.config import load_config, save_config
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("OPENAI_MODEL", "gpt-env")
        config_file = tmp_path / "config.json"

        cfg = load_config(config_file)
        save_config(cfg, config_file)

        data = json.loads(config_file.read_text())
        assert data["llm"]["openai_api_key"] == ""
        # Only secrets are blanked
        assert data["llm"]["openai_model"] == "gpt-env"
