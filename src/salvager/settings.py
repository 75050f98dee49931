"""Runtime configuration for Salvager.

All settings can be configured via environment variables with the prefix
SALVAGER_ (for example ``SALVAGER_LOG_LEVEL=DEBUG``) or from a ``.env`` file.
The API token is additionally read from ``RESOURCE_GATEWAY_TOKEN``.
"""

from typing import Literal

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from salvager.types.tools import LATEST_PROTOCOL_VERSION

DEFAULT_MCP_URL = "https://mcp.apify.com"
DEFAULT_REST_URL = "https://api.apify.com/v2"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SALVAGER_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("SALVAGER_TOKEN", "RESOURCE_GATEWAY_TOKEN", "token"),
    )

    # Remote platform
    mcp_url: str = DEFAULT_MCP_URL
    rest_url: str = DEFAULT_REST_URL
    protocol_version: str = LATEST_PROTOCOL_VERSION
    client_name: str = "salvager"
    client_version: str = "1.0.0"
    http_timeout: float = 30.0

    # Session pool
    session_idle_timeout: float = 30 * 60
    session_sweep_interval: float = 5 * 60
    default_session_key: str = "default"

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @property
    def api_token(self) -> str | None:
        if self.token is None:
            return None
        return self.token.get_secret_value() or None

    @property
    def is_configured(self) -> bool:
        return self.api_token is not None
