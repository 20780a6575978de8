"""
Config Service - loads ClientConfig with pydantic-settings.

Precedence (lowest to highest):
1. Field defaults
2. ``config.toml`` in the user config directory (created if missing)
3. ``.env`` file (``PDRIVE_*`` keys)
4. ``PDRIVE_*`` environment variables
5. Explicit overrides (CLI flags)
"""
import logging
import os
import sys
import tomllib
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Type
from urllib.parse import urlparse

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from ..errors import ConfigError
from ..models import ClientConfig, DEFAULT_CONCURRENT_REQUESTS, DEFAULT_PART_SIZE

logger = logging.getLogger(__name__)

APP_DIR_NAME = "pdrive-client"
CONFIG_FILE_NAME = "config.toml"

DEFAULT_CONFIG_TEMPLATE = f"""\
token = "TOKEN"
api_url = "API_URL"
concurrent_requests = {DEFAULT_CONCURRENT_REQUESTS}
"""


class PDriveSettings(BaseSettings):
    """All settings of the pdrive client, validated in one model."""

    model_config = SettingsConfigDict(
        env_prefix="PDRIVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
    )

    token: str = Field(min_length=1)
    api_url: str
    concurrent_requests: int = Field(default=DEFAULT_CONCURRENT_REQUESTS, ge=1)
    part_size: int = Field(default=DEFAULT_PART_SIZE, gt=0)
    cancel_on_failure: bool = False
    timeout: float = Field(default=60.0, gt=0)

    @field_validator("api_url")
    @classmethod
    def _check_api_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Failed to parse URL from config: {value!r}")
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
        )

    def to_client_config(self) -> ClientConfig:
        return ClientConfig(
            token=self.token,
            api_url=self.api_url,
            concurrent_requests=self.concurrent_requests,
            part_size=self.part_size,
            cancel_on_failure=self.cancel_on_failure,
            timeout=self.timeout,
        )


def default_config_dir(env: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if env is None else env
    override = env.get("PDRIVE_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    if sys.platform == "win32" and env.get("APPDATA"):
        return Path(env["APPDATA"]) / APP_DIR_NAME
    xdg = env.get("XDG_CONFIG_HOME")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".config"
    return base / APP_DIR_NAME


def ensure_config_file(path: Path) -> Path:
    """Write the default config if ``path`` does not exist yet."""
    path = Path(path)
    if path.exists():
        return path
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to write config file {path}: {exc}") from exc
    logger.info(f"Created default config at {path}")
    return path


def _format_errors(exc: ValidationError) -> str:
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "config"
        messages.append(f"{field}: {error['msg']}")
    return "; ".join(messages)


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    env_file: Optional[Path] = None,
) -> ClientConfig:
    """Load and validate settings; ``None`` overrides are ignored."""
    path = ensure_config_file(
        Path(config_path) if config_path else default_config_dir() / CONFIG_FILE_NAME
    )

    class _FileSettings(PDriveSettings):
        model_config = SettingsConfigDict(toml_file=path)

    kwargs: Dict[str, Any] = {k: v for k, v in (overrides or {}).items() if v is not None}
    if env_file is not None:
        kwargs["_env_file"] = env_file

    try:
        settings = _FileSettings(**kwargs)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {_format_errors(exc)}") from exc
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Unable to read config {path}: {exc}") from exc

    try:
        return settings.to_client_config()
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
