"""
Configuration Management for Sagasu

Loads configuration from ~/.sagasu/config.json, a local .env file and
environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger("sagasu.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".sagasu"
CONFIG_PATH = CONFIG_DIR / "config.json"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass
class SlackConfig:
    """Slack Web API credentials"""
    bot_token: str = ""
    user_token: str = ""  # search.messages only accepts user tokens
    signing_secret: str = ""
    api_base_url: str = "https://slack.com/api"
    timeout: float = 10.0


@dataclass
class LLMConfig:
    """Completion service configuration"""
    provider: str = "openai"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash-exp"
    temperature: Optional[float] = None
    timeout: float = 30.0
    max_tokens: int = 1024


@dataclass
class FuzzySearchConfig:
    """Fuzzy search pipeline tuning"""
    command_prefix: str = "Fuzzy search"
    max_queries: int = 10
    search_limit: int = 20
    retry_limit: int = 10  # limit for the single retry after joining a channel
    max_results: int = 15
    snippet_length: int = 30
    concurrency: int = 5
    search_timeout: float = 15.0
    exclude_bots: bool = True
    echo_filter: str = "contains"  # "contains", "prefix", "exact" or "off"
    announce_queries: bool = True
    default_language: str = "en"
    membership_errors: List[str] = field(default_factory=lambda: ["not_in_channel"])


@dataclass
class AssistantConfig:
    """Assistant thread behaviour"""
    history_limit: int = 50
    retry_history_limit: int = 10


@dataclass
class ServerConfig:
    """Webhook server configuration"""
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"


@dataclass
class SagasuConfig:
    """Main Sagasu configuration"""
    slack: SlackConfig = field(default_factory=SlackConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    fuzzy: FuzzySearchConfig = field(default_factory=FuzzySearchConfig)
    assistant: AssistantConfig = field(default_factory=AssistantConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_slack_config(data: dict) -> SlackConfig:
    """Parse slack section from config dict"""
    slack_data = data.get("slack", {})
    return SlackConfig(
        bot_token=slack_data.get("bot_token", ""),
        user_token=slack_data.get("user_token", ""),
        signing_secret=slack_data.get("signing_secret", ""),
        api_base_url=slack_data.get("api_base_url", "https://slack.com/api"),
        timeout=float(slack_data.get("timeout", 10.0)),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    temperature = llm_data.get("temperature")
    return LLMConfig(
        provider=llm_data.get("provider", "openai"),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", "gpt-4o-mini"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", "claude-sonnet-4-20250514"),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", "gemini-2.0-flash-exp"),
        temperature=float(temperature) if temperature is not None else None,
        timeout=float(llm_data.get("timeout", 30.0)),
        max_tokens=int(llm_data.get("max_tokens", 1024)),
    )


def _parse_fuzzy_config(data: dict) -> FuzzySearchConfig:
    """Parse fuzzy section from config dict"""
    fuzzy_data = data.get("fuzzy", {})
    defaults = FuzzySearchConfig()
    return FuzzySearchConfig(
        command_prefix=fuzzy_data.get("command_prefix", defaults.command_prefix),
        max_queries=int(fuzzy_data.get("max_queries", defaults.max_queries)),
        search_limit=int(fuzzy_data.get("search_limit", defaults.search_limit)),
        retry_limit=int(fuzzy_data.get("retry_limit", defaults.retry_limit)),
        max_results=int(fuzzy_data.get("max_results", defaults.max_results)),
        snippet_length=int(fuzzy_data.get("snippet_length", defaults.snippet_length)),
        concurrency=int(fuzzy_data.get("concurrency", defaults.concurrency)),
        search_timeout=float(fuzzy_data.get("search_timeout", defaults.search_timeout)),
        exclude_bots=bool(fuzzy_data.get("exclude_bots", defaults.exclude_bots)),
        echo_filter=fuzzy_data.get("echo_filter", defaults.echo_filter),
        announce_queries=bool(fuzzy_data.get("announce_queries", defaults.announce_queries)),
        default_language=fuzzy_data.get("default_language", defaults.default_language),
        membership_errors=list(fuzzy_data.get("membership_errors", defaults.membership_errors)),
    )


def _parse_assistant_config(data: dict) -> AssistantConfig:
    """Parse assistant section from config dict"""
    assistant_data = data.get("assistant", {})
    return AssistantConfig(
        history_limit=int(assistant_data.get("history_limit", 50)),
        retry_history_limit=int(assistant_data.get("retry_history_limit", 10)),
    )


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server section from config dict"""
    server_data = data.get("server", {})
    return ServerConfig(
        host=server_data.get("host", "0.0.0.0"),
        port=int(server_data.get("port", 3000)),
        log_level=server_data.get("log_level", "INFO"),
    )


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def load_config(config_path: Optional[Path] = None) -> SagasuConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (a .env file in the working directory is loaded first)
    2. Config file (~/.sagasu/config.json or $SAGASU_CONFIG)
    3. Default values
    """
    load_dotenv()

    config = SagasuConfig()

    if config_path is None:
        env_path = os.getenv("SAGASU_CONFIG")
        config_path = Path(env_path).expanduser() if env_path else CONFIG_PATH

    # Load from config file if exists
    if config_path.exists():
        try:
            with open(config_path) as f:
                data = json.load(f)

            config.slack = _parse_slack_config(data)
            config.llm = _parse_llm_config(data)
            config.fuzzy = _parse_fuzzy_config(data)
            config.assistant = _parse_assistant_config(data)
            config.server = _parse_server_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file %s: %s", config_path, e)

    # Secret and model overrides (tracked so save_config never persists them)
    _env_map = {
        "SLACK_BOT_TOKEN": (config.slack, "bot_token"),
        "SLACK_USER_TOKEN": (config.slack, "user_token"),
        "SLACK_SIGNING_SECRET": (config.slack, "signing_secret"),
        "OPENAI_API_KEY": (config.llm, "openai_api_key"),
        "OPENAI_MODEL": (config.llm, "openai_model"),
        "ANTHROPIC_API_KEY": (config.llm, "anthropic_api_key"),
        "ANTHROPIC_MODEL": (config.llm, "anthropic_model"),
        "GOOGLE_API_KEY": (config.llm, "google_api_key"),
        "GEMINI_API_KEY": (config.llm, "google_api_key"),
        "GOOGLE_MODEL": (config.llm, "google_model"),
        "SAGASU_LLM_PROVIDER": (config.llm, "provider"),
    }
    for env_var, (section, attr) in _env_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(section, attr, val)
            config._env_sourced_keys.add(attr)

    port = _env_int("SAGASU_PORT")
    if port is not None:
        config.server.port = port
    if os.getenv("SAGASU_LOG_LEVEL"):
        config.server.log_level = os.getenv("SAGASU_LOG_LEVEL")

    max_results = _env_int("SAGASU_MAX_RESULTS")
    if max_results is not None:
        config.fuzzy.max_results = max_results
    search_limit = _env_int("SAGASU_SEARCH_LIMIT")
    if search_limit is not None:
        config.fuzzy.search_limit = search_limit
    if os.getenv("SAGASU_LANGUAGE"):
        config.fuzzy.default_language = os.getenv("SAGASU_LANGUAGE")

    return config


def save_config(config: SagasuConfig, config_path: Optional[Path] = None) -> None:
    """Save configuration to file.

    Secrets that were sourced from environment variables are written as
    empty strings so that they are not persisted to disk.
    """
    config_path = config_path or CONFIG_PATH
    config_path.parent.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())
    secret_fields = {
        "bot_token", "user_token", "signing_secret",
        "openai_api_key", "anthropic_api_key", "google_api_key",
    }

    def _secret(attr: str, value: str) -> str:
        return "" if attr in secret_fields and attr in env_sourced else value

    data = {
        "slack": {
            "bot_token": _secret("bot_token", config.slack.bot_token),
            "user_token": _secret("user_token", config.slack.user_token),
            "signing_secret": _secret("signing_secret", config.slack.signing_secret),
            "api_base_url": config.slack.api_base_url,
            "timeout": config.slack.timeout,
        },
        "llm": {
            "provider": config.llm.provider,
            "openai_api_key": _secret("openai_api_key", config.llm.openai_api_key),
            "openai_model": config.llm.openai_model,
            "anthropic_api_key": _secret("anthropic_api_key", config.llm.anthropic_api_key),
            "anthropic_model": config.llm.anthropic_model,
            "google_api_key": _secret("google_api_key", config.llm.google_api_key),
            "google_model": config.llm.google_model,
            "temperature": config.llm.temperature,
            "timeout": config.llm.timeout,
            "max_tokens": config.llm.max_tokens,
        },
        "fuzzy": {
            "command_prefix": config.fuzzy.command_prefix,
            "max_queries": config.fuzzy.max_queries,
            "search_limit": config.fuzzy.search_limit,
            "retry_limit": config.fuzzy.retry_limit,
            "max_results": config.fuzzy.max_results,
            "snippet_length": config.fuzzy.snippet_length,
            "concurrency": config.fuzzy.concurrency,
            "search_timeout": config.fuzzy.search_timeout,
            "exclude_bots": config.fuzzy.exclude_bots,
            "echo_filter": config.fuzzy.echo_filter,
            "announce_queries": config.fuzzy.announce_queries,
            "default_language": config.fuzzy.default_language,
            "membership_errors": config.fuzzy.membership_errors,
        },
        "assistant": {
            "history_limit": config.assistant.history_limit,
            "retry_history_limit": config.assistant.retry_history_limit,
        },
        "server": {
            "host": config.server.host,
            "port": config.server.port,
            "log_level": config.server.log_level,
        },
    }

    with open(config_path, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    config_path.chmod(0o600)


def setup_logging(level: str = "INFO") -> None:
    """Configure the sagasu logger hierarchy for a server process"""
    root = logging.getLogger("sagasu")
    root.setLevel(level.upper())
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
