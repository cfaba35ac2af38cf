"""Configuration loading for the hookline GitLab event source.

This module provides centralized configuration management:
- Load settings from environment variables and .env files
- Validate configuration using pydantic
- Provide typed access to all settings

Settings are split by process: every process reads the common Settings,
then either ReceiverSettings or ControllerSettings depending on run_mode.
Required values have no default, so a missing variable fails at start-up
rather than at request time.
"""

from typing import Literal
from urllib.parse import urlsplit

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_MODEL_CONFIG = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    case_sensitive=False,
    extra="ignore",
)


class Settings(BaseSettings):
    """Settings shared by the controller and the receiver.

    Uses pydantic-settings for environment variable handling with
    .env file support via python-dotenv.
    """

    model_config = _MODEL_CONFIG

    run_mode: Literal["controller", "receiver"] = Field(
        default="receiver",
        description="Which process to run",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Log level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log format",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        """Accept log levels in any case."""
        return v.upper() if isinstance(v, str) else v


class ReceiverSettings(BaseSettings):
    """Environment of the receiver process, as set by the controller."""

    model_config = _MODEL_CONFIG

    port: int = Field(
        default=8080,
        description="Port to listen on for webhook calls",
    )
    host: str = Field(
        default="0.0.0.0",
        description="Host to listen on for webhook calls",
    )
    gitlab_secret_token: str = Field(
        description="Shared secret expected in X-Gitlab-Token; empty disables the check",
    )
    gitlab_event_source: str = Field(
        description="Project or group URL used as the CloudEvent source",
    )
    k_sink: str = Field(
        description="Address translated events are delivered to",
    )
    namespace: str = Field(
        default="",
        description="Namespace of the owning GitLabSource",
    )
    shutdown_grace_seconds: float = Field(
        default=10.0,
        description="How long in-flight requests may run after shutdown starts",
    )
    sink_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for one delivery to the sink",
    )
    max_body_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Largest accepted webhook payload",
    )

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Ensure port is in valid range."""
        if v <= 0 or v > 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator("gitlab_event_source")
    @classmethod
    def validate_event_source(cls, v: str) -> str:
        """Ensure the event source is set."""
        if not v.strip():
            raise ValueError("gitlab_event_source must not be empty")
        return v

    @field_validator("k_sink")
    @classmethod
    def validate_sink(cls, v: str) -> str:
        """Ensure the sink is an absolute http(s) URL."""
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError("k_sink must be an absolute http(s) URL")
        return v

    @field_validator(
        "shutdown_grace_seconds", "sink_timeout_seconds", "max_body_bytes"
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Ensure limits are positive."""
        if v <= 0:
            raise ValueError("must be positive")
        return v


class ControllerSettings(BaseSettings):
    """Settings of the controller process."""

    model_config = _MODEL_CONFIG

    receive_adapter_image: str = Field(
        validation_alias="GL_RA_IMAGE",
        description="Container image of the receiver",
    )
    resync_interval_seconds: float = Field(
        default=30.0,
        description="Pause between resync cycles",
    )
    reconcile_timeout_seconds: float = Field(
        default=60.0,
        description="Upper bound on one source's reconciliation pass",
    )
    gitlab_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for one GitLab API request",
    )
    kubeconfig: str = Field(
        default="",
        description="kubeconfig used outside a cluster; empty uses ~/.kube/config",
    )
    kube_context: str = Field(
        default="",
        description="kubeconfig context; empty uses the current context",
    )
    watch_namespace: str = Field(
        default="",
        description="Only reconcile sources in this namespace; empty for all",
    )
    receiver_extra_env: dict[str, str] = Field(
        default_factory=dict,
        description="Extra environment passed to every receiver, as a JSON object",
    )

    @field_validator("receive_adapter_image")
    @classmethod
    def validate_image(cls, v: str) -> str:
        """Ensure the receiver image is set."""
        if not v.strip():
            raise ValueError("GL_RA_IMAGE must not be empty")
        return v

    @field_validator(
        "resync_interval_seconds", "reconcile_timeout_seconds", "gitlab_timeout_seconds"
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Ensure intervals and timeouts are positive."""
        if v <= 0:
            raise ValueError("must be positive")
        return v


def load_settings(env_file: str | None = None) -> Settings:
    """Load the common settings from environment.

    Args:
        env_file: Optional path to .env file. If not provided,
                 uses the default .env in the current directory.

    Raises:
        ValidationError: If settings validation fails.
    """
    if env_file:
        return Settings(_env_file=env_file)  # type: ignore[call-arg]
    return Settings()


def load_receiver_settings(env_file: str | None = None) -> ReceiverSettings:
    """Load the receiver settings from environment.

    Raises:
        ValidationError: If a required variable is missing or invalid.
    """
    if env_file:
        return ReceiverSettings(_env_file=env_file)  # type: ignore[call-arg]
    return ReceiverSettings()  # type: ignore[call-arg]


def load_controller_settings(env_file: str | None = None) -> ControllerSettings:
    """Load the controller settings from environment.

    Raises:
        ValidationError: If a required variable is missing or invalid.
    """
    if env_file:
        return ControllerSettings(_env_file=env_file)  # type: ignore[call-arg]
    return ControllerSettings()  # type: ignore[call-arg]


__all__ = [
    "ControllerSettings",
    "ReceiverSettings",
    "Settings",
    "load_controller_settings",
    "load_receiver_settings",
    "load_settings",
]
