"""
Configuration Management for NoteGrid

Loads configuration from ~/.notegrid/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger("notegrid.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".notegrid"
CONFIG_PATH = CONFIG_DIR / "config.json"
STORE_PATH = CONFIG_DIR / "store.json"

MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10MB per file


@dataclass
class LLMConfig:
    """LLM provider used by the analysis endpoint"""
    provider: str = "openai"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    temperature: float = 0.2
    max_tokens: int = 1024


@dataclass
class ServerConfig:
    """Backend HTTP server configuration"""
    host: str = "0.0.0.0"
    port: int = 3001
    max_upload_bytes: int = MAX_UPLOAD_BYTES


@dataclass
class EmailConfig:
    """SMTP credentials for tag notifications"""
    user: str = ""
    password: str = ""
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 465


@dataclass
class TrelloConfig:
    """Trello REST API configuration"""
    api_key: str = ""
    token: str = ""
    base_url: str = "https://api.trello.com/1"
    list_id: str = ""
    cache_ttl: float = 300.0  # 5 minutes
    max_tasks_per_section: int = 30


@dataclass
class AddonConfig:
    """Client-side (add-on) configuration"""
    backend_url: str = "http://localhost:3001"
    store_path: str = str(STORE_PATH)
    poll_interval: float = 1.2
    max_connect_attempts: int = 10
    retry_delay: float = 1.5


@dataclass
class NoteGridConfig:
    """Main NoteGrid configuration"""
    llm: LLMConfig = field(default_factory=LLMConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    trello: TrelloConfig = field(default_factory=TrelloConfig)
    addon: AddonConfig = field(default_factory=AddonConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        provider=llm_data.get("provider", "openai"),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", "gpt-4o-mini"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", "claude-sonnet-4-20250514"),
        temperature=llm_data.get("temperature", 0.2),
        max_tokens=llm_data.get("max_tokens", 1024),
    )


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server section from config dict"""
    server_data = data.get("server", {})
    return ServerConfig(
        host=server_data.get("host", "0.0.0.0"),
        port=server_data.get("port", 3001),
        max_upload_bytes=server_data.get("max_upload_bytes", MAX_UPLOAD_BYTES),
    )


def _parse_email_config(data: dict) -> EmailConfig:
    """Parse email section from config dict"""
    email_data = data.get("email", {})
    return EmailConfig(
        user=email_data.get("user", ""),
        password=email_data.get("password", ""),
        smtp_host=email_data.get("smtp_host", "smtp.gmail.com"),
        smtp_port=email_data.get("smtp_port", 465),
    )


def _parse_trello_config(data: dict) -> TrelloConfig:
    """Parse trello section from config dict"""
    trello_data = data.get("trello", {})
    return TrelloConfig(
        api_key=trello_data.get("api_key", ""),
        token=trello_data.get("token", ""),
        base_url=trello_data.get("base_url", "https://api.trello.com/1"),
        list_id=trello_data.get("list_id", ""),
        cache_ttl=trello_data.get("cache_ttl", 300.0),
        max_tasks_per_section=trello_data.get("max_tasks_per_section", 30),
    )


def _parse_addon_config(data: dict) -> AddonConfig:
    """Parse addon section from config dict"""
    addon_data = data.get("addon", {})
    return AddonConfig(
        backend_url=addon_data.get("backend_url", "http://localhost:3001"),
        store_path=addon_data.get("store_path", str(STORE_PATH)),
        poll_interval=addon_data.get("poll_interval", 1.2),
        max_connect_attempts=addon_data.get("max_connect_attempts", 10),
        retry_delay=addon_data.get("retry_delay", 1.5),
    )


# Secrets that must never be written back to disk when they came from env
_SECRET_FIELDS = {
    ("llm", "openai_api_key"),
    ("llm", "anthropic_api_key"),
    ("email", "password"),
    ("trello", "api_key"),
    ("trello", "token"),
}

_ENV_MAP = {
    "OPENAI_API_KEY": ("llm", "openai_api_key", str),
    "OPENAI_MODEL": ("llm", "openai_model", str),
    "ANTHROPIC_API_KEY": ("llm", "anthropic_api_key", str),
    "ANTHROPIC_MODEL": ("llm", "anthropic_model", str),
    "NOTEGRID_LLM_PROVIDER": ("llm", "provider", str),
    "NOTEGRID_HOST": ("server", "host", str),
    "NOTEGRID_PORT": ("server", "port", int),
    "EMAIL_USER": ("email", "user", str),
    "EMAIL_PASS": ("email", "password", str),
    "SMTP_HOST": ("email", "smtp_host", str),
    "SMTP_PORT": ("email", "smtp_port", int),
    "TRELLO_API_KEY": ("trello", "api_key", str),
    "TRELLO_TOKEN": ("trello", "token", str),
    "TRELLO_LIST_ID": ("trello", "list_id", str),
    "NOTEGRID_BACKEND_URL": ("addon", "backend_url", str),
    "NOTEGRID_STORE_PATH": ("addon", "store_path", str),
}


def load_config() -> NoteGridConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.notegrid/config.json)
    3. Default values
    """
    config = NoteGridConfig()

    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.llm = _parse_llm_config(data)
            config.server = _parse_server_config(data)
            config.email = _parse_email_config(data)
            config.trello = _parse_trello_config(data)
            config.addon = _parse_addon_config(data)
        except (json.JSONDecodeError, IOError, AttributeError) as e:
            logger.warning("Failed to load config file: %s", e)

    for env_var, (section, attr, cast) in _ENV_MAP.items():
        val = os.getenv(env_var)
        if not val:
            continue
        try:
            setattr(getattr(config, section), attr, cast(val))
        except ValueError:
            logger.warning("Ignoring invalid %s=%r", env_var, val)
            continue
        config._env_sourced_keys.add((section, attr))

    return config


def save_config(config: NoteGridConfig) -> None:
    """Save configuration to file.

    Secrets that were sourced from environment variables are written as
    empty strings so they are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    data = {
        "llm": {
            "provider": config.llm.provider,
            "openai_api_key": config.llm.openai_api_key,
            "openai_model": config.llm.openai_model,
            "anthropic_api_key": config.llm.anthropic_api_key,
            "anthropic_model": config.llm.anthropic_model,
            "temperature": config.llm.temperature,
            "max_tokens": config.llm.max_tokens,
        },
        "server": {
            "host": config.server.host,
            "port": config.server.port,
            "max_upload_bytes": config.server.max_upload_bytes,
        },
        "email": {
            "user": config.email.user,
            "password": config.email.password,
            "smtp_host": config.email.smtp_host,
            "smtp_port": config.email.smtp_port,
        },
        "trello": {
            "api_key": config.trello.api_key,
            "token": config.trello.token,
            "base_url": config.trello.base_url,
            "list_id": config.trello.list_id,
            "cache_ttl": config.trello.cache_ttl,
            "max_tasks_per_section": config.trello.max_tasks_per_section,
        },
        "addon": {
            "backend_url": config.addon.backend_url,
            "store_path": config.addon.store_path,
            "poll_interval": config.addon.poll_interval,
            "max_connect_attempts": config.addon.max_connect_attempts,
            "retry_delay": config.addon.retry_delay,
        },
    }

    for section, attr in _SECRET_FIELDS:
        if (section, attr) in env_sourced:
            data[section][attr] = ""

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)


def ensure_directories() -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
