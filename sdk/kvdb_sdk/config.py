"""
Configuration for the KvDB SDK.

Uses pydantic-settings for environment variable loading. All variables
carry the ``KVDB_`` prefix, e.g. ``KVDB_API_KEY``.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    """Client configuration loaded from environment."""

    # Service endpoint
    api_key: str = Field(default="", description="API key sent as the basic-auth username")
    host: str = Field(default="api.orchestrate.io", description="Service host")
    port: int = Field(default=443, description="Service port")
    use_ssl: bool = Field(default=True, description="Use HTTPS")
    api_version: str = Field(default="v0", description="API version path prefix")

    # Transport
    connect_timeout: float = Field(default=10.0, description="Connect timeout seconds")
    read_timeout: float = Field(default=30.0, description="Read/write timeout seconds")
    max_connections: int = Field(default=25, description="Max pooled connections")

    # Blocking client
    default_timeout: float = Field(default=5.0, description="Default wait for blocking calls")

    # Logging (used by the CLI)
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="text", description="Log format: text or json")

    model_config = {"env_prefix": "KVDB_"}

    @property
    def base_url(self) -> str:
        """Full service base URL."""
        scheme = "https" if self.use_ssl else "http"
        return f"{scheme}://{self.host}:{self.port}"
