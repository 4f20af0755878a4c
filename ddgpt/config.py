"""Runtime configuration for ddgpt.

Values come from three places, later ones winning:

1. built-in defaults,
2. ``config.toml`` in the user config directory (created on first run),
3. ``DDGPT_*`` environment variables.

The resulting :class:`Settings` object is handed to the components that
need it; nothing reads configuration from module globals.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from platformdirs import user_config_dir, user_data_dir
from rich.logging import RichHandler

from .core.models import DEFAULT_MODEL, Model
from .errors import ConfigError, UsageError
from .utils import err_console

logger = logging.getLogger(__name__)

APP_NAME = "ddgpt"
CONFIG_FILENAME = "config.toml"

DEFAULT_BASE_URL = "https://duckduckgo.com"
DEFAULT_USER_AGENT = "curl/7.81.0"
DEFAULT_TIMEOUT = 30.0
DEFAULT_TOKEN_TTL = 600.0

DEFAULT_CONFIG_TEMPLATE = f"""\
# ddgpt configuration

# Model used when -m/--model is not given: gpt4o-mini, claude3, llama3, mistral
default_chatbot = "{DEFAULT_MODEL.key}"

# base_url = "{DEFAULT_BASE_URL}"
# timeout = {DEFAULT_TIMEOUT}
# Seconds a conversation token is trusted before a fresh one is requested (0 = forever)
# token_ttl = {DEFAULT_TOKEN_TTL}
# user_agent = "{DEFAULT_USER_AGENT}"
"""


@dataclass
class Settings:
    """Everything the controller and its collaborators need to know."""

    data_dir: Path = field(default_factory=lambda: Path(user_data_dir(APP_NAME)))
    default_model: Model = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = DEFAULT_TIMEOUT
    token_ttl: float = DEFAULT_TOKEN_TTL

    @property
    def sessions_dir(self) -> Path:
        return self.data_dir / "sessions"

    @property
    def status_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/duckchat/v1/status"

    @property
    def chat_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/duckchat/v1/chat"


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"cannot create default config at {path}: {exc}") from exc
        logger.debug("wrote default configuration to %s", path)

    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc


def _as_float(value: Any, key: str) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{key}' must be a number, got {value!r}") from exc
    if result < 0:
        raise ConfigError(f"'{key}' must not be negative")
    return result


def _as_model(value: Any, source: str) -> Model:
    try:
        return Model.from_name(str(value))
    except UsageError as exc:
        raise ConfigError(f"{source}: {exc}") from exc


def load_settings(config_dir: Optional[Path] = None, env: Optional[Dict[str, str]] = None) -> Settings:
    """Build :class:`Settings` from the config file and environment."""
    env = os.environ if env is None else env
    config_dir = Path(config_dir or user_config_dir(APP_NAME))
    config_path = config_dir / CONFIG_FILENAME
    data = _read_config_file(config_path)

    settings = Settings()
    if "default_chatbot" in data:
        settings.default_model = _as_model(data["default_chatbot"], str(config_path))
    if "base_url" in data:
        settings.base_url = str(data["base_url"])
    if "user_agent" in data:
        settings.user_agent = str(data["user_agent"])
    if "timeout" in data:
        settings.timeout = _as_float(data["timeout"], "timeout")
    if "token_ttl" in data:
        settings.token_ttl = _as_float(data["token_ttl"], "token_ttl")

    if env.get("DDGPT_DEFAULT_MODEL"):
        settings.default_model = _as_model(env["DDGPT_DEFAULT_MODEL"], "DDGPT_DEFAULT_MODEL")
    if env.get("DDGPT_BASE_URL"):
        settings.base_url = env["DDGPT_BASE_URL"]
    if env.get("DDGPT_DATA_DIR"):
        settings.data_dir = Path(env["DDGPT_DATA_DIR"]).expanduser()

    return settings


def configure_logging(verbose: bool = False, env: Optional[Dict[str, str]] = None) -> None:
    """Send log records to stderr through rich, at WARNING unless asked otherwise."""
    env = os.environ if env is None else env
    level_name = "DEBUG" if verbose else env.get("DDGPT_LOG_LEVEL", "WARNING").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, markup=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
