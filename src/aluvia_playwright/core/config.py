"""Configuration loading and management."""

from pathlib import Path
from typing import Annotated, Any

import yaml
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_RETRY_PATTERNS: list[str] = [
    "ECONNRESET",
    "ETIMEDOUT",
    "net::ERR",
    "Timeout",
]


class MigrationSettings(BaseSettings):
    """Settings for navigation retry and session migration.

    Read from ``ALUVIA_*`` environment variables (and a ``.env`` file).
    Values passed to the constructor win over the environment.
    """

    model_config = SettingsConfigDict(
        env_prefix="ALUVIA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_key: SecretStr = Field(description="Proxy service access key")
    max_retries: int = Field(default=1, ge=0, description="Migrations allowed per navigation")
    backoff_ms: int = Field(default=300, ge=0, description="Base backoff in milliseconds")
    jitter_ms: int = Field(default=100, ge=0, description="Upper bound of random jitter in ms")
    retry_on: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_RETRY_PATTERNS),
        description="Substring or /regex/ patterns that mark a failure retryable",
    )
    readiness_timeout_ms: int = Field(
        default=15000, gt=0, description="Timeout for the post-migration readiness gate"
    )
    detect_challenges: bool = Field(
        default=True, description="Treat bot-challenge interstitials as not ready"
    )
    proxy_api_url: str | None = Field(default=None, description="Proxy credential endpoint")
    proxy_list: Annotated[list[str] | None, NoDecode] = Field(
        default=None, description="Static proxy URLs, each handed out once"
    )
    history_size: int = Field(default=100, ge=1, description="Migration records kept in memory")

    @field_validator("retry_on", mode="before")
    @classmethod
    def split_retry_on(cls, value: Any) -> Any:
        if isinstance(value, str):
            patterns = [p.strip() for p in value.split(",") if p.strip()]
            return patterns or list(DEFAULT_RETRY_PATTERNS)
        return value

    @field_validator("proxy_list", mode="before")
    @classmethod
    def split_proxy_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [p.strip() for p in value.split(",") if p.strip()] or None
        return value


def load_yaml(file_path: Path) -> dict[str, Any]:
    """Load YAML configuration file.

    Args:
        file_path: Path to YAML file

    Returns:
        Parsed YAML as dictionary

    Raises:
        FileNotFoundError: If file doesn't exist
        yaml.YAMLError: If YAML is invalid
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {file_path}")

    with open(file_path, encoding="utf-8") as f:
        result = yaml.safe_load(f)
    return result or {}


def load_settings(
    config_path: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> MigrationSettings:
    """Build settings from the environment, an optional YAML file and overrides.

    Precedence, highest first: ``overrides``, the YAML file, ``ALUVIA_*``
    environment variables, field defaults.

    Raises:
        FileNotFoundError: If ``config_path`` is given but missing
        pydantic.ValidationError: If the result is invalid (e.g. no api key)
    """
    file_values = load_yaml(config_path) if config_path is not None else {}
    return MigrationSettings(**{**file_values, **(overrides or {})})
