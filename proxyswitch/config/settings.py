from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from structlog.stdlib import BoundLogger

from proxyswitch.core.logging import setup_logging
from proxyswitch.utils.headers import DEFAULT_USER_AGENT

from .transport import TransportOptions


__all__ = ["Settings", "get_settings", "DEFAULT_TIMEOUT", "DEFAULT_MAX_REDIRECTS"]


DEFAULT_TIMEOUT = 20.0
DEFAULT_MAX_REDIRECTS = 20


class Settings(BaseSettings):
    """
    Configuration settings for a proxyswitch client.

    Settings are loaded from environment variables prefixed with
    ``PROXYSWITCH_`` and from a ``.env`` file. Nested transport options use
    ``__`` as delimiter, e.g. ``PROXYSWITCH_TRANSPORT__SSL_VERIFY=false``.
    """

    model_config = SettingsConfigDict(
        env_prefix="PROXYSWITCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    proxy: str = Field(
        default="",
        description="Proxy URL (http://, https:// or socks5://); empty for direct",
    )

    timeout: float | None = Field(
        default=DEFAULT_TIMEOUT,
        description="Per-request timeout in seconds; None disables it",
    )

    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User-Agent installed as a global header at construction",
    )

    auto_user_agent: bool = Field(
        default=True,
        description="Install the default User-Agent global header",
    )

    max_redirects: int = Field(
        default=DEFAULT_MAX_REDIRECTS,
        description="Maximum redirects followed when the redirect policy allows",
    )

    transport: TransportOptions = Field(
        default_factory=TransportOptions,
        description="Options applied to every underlying transport",
    )

    log_level: str = Field(default="INFO", description="Logging level")

    json_logs: bool = Field(default=False, description="Render logs as JSON")

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("timeout must be positive or None")
        return v

    @field_validator("max_redirects")
    @classmethod
    def validate_max_redirects(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_redirects must not be negative")
        return v

    def configure_logging(self) -> BoundLogger:
        """Apply the logging settings to the process."""
        return setup_logging(json_logs=self.json_logs, log_level=self.log_level)


@lru_cache
def get_settings() -> Settings:
    """Return process-wide settings loaded from the environment."""
    return Settings()
