"""
Configuration for the DocDB HTTP application.

Uses pydantic-settings for environment variable loading. Store and query
settings live in the server config (dbaas.docdb_server.config).
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """HTTP application configuration loaded from environment."""

    # Bind address
    host: str = Field(default="0.0.0.0", description="HTTP bind host")
    port: int = Field(default=8080, description="HTTP bind port")

    # Request header carrying the JSON schema descriptor
    schema_header: str = Field(
        default="x-docdb-schema",
        description="Header carrying the per-request schema descriptor",
    )

    # CORS settings
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins",
    )

    model_config = {"env_prefix": "DOCDB_"}

    @property
    def bind_address(self) -> str:
        """host:port the server listens on."""
        return f"{self.host}:{self.port}"
