"""Configuration and settings."""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

from m365_mcp.cloud import CloudType, parse_cloud_type

load_dotenv()

# Paths
APP_HOME = Path(os.getenv("M365_MCP_HOME", "") or Path.home() / ".m365-mcp")
TOKEN_CACHE_FILE_NAME = "token-cache.bin"
TOKEN_CACHE_PATH = APP_HOME / TOKEN_CACHE_FILE_NAME

# Keyring entry used for the token cache when OS secret storage is available
KEYRING_SERVICE = "m365-mcp"
KEYRING_USERNAME = "token-cache"

# Logging
LOG_DIR = APP_HOME / "logs"
LOG_FILE = LOG_DIR / "server.jsonl"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
VERBOSE_LOGGING = os.getenv("VERBOSE_LOGGING", "false").lower() == "true"

# OpenTelemetry
OTEL_ENABLED = os.getenv("OTEL_ENABLED", "false").lower() == "true"
OTEL_EXPORTER_OTLP_ENDPOINT = os.getenv(
    "OTEL_EXPORTER_OTLP_ENDPOINT",
    "http://localhost:4318/v1/traces",
)
OTEL_SERVICE_NAME = os.getenv("OTEL_SERVICE_NAME", "m365-mcp")

# MCP transport
MCP_TRANSPORT = os.getenv("MCP_TRANSPORT", "stdio").lower()
MCP_HOST = os.getenv("MCP_HOST", "127.0.0.1")
MCP_PORT = int(os.getenv("MCP_PORT", "8000"))

# Token storage backend: "auto" tries the OS keyring first, then the file
TOKEN_STORE_BACKEND = os.getenv("M365_TOKEN_STORE", "auto").lower()

SERVER_NAME = "m365-mcp"


def _env(key: str) -> str | None:
    """Return a stripped env value, or None when unset or blank."""
    value = (os.getenv(key) or "").strip()
    return value or None


class Settings(BaseModel):
    """Credential configuration, fixed for the lifetime of the process."""

    model_config = ConfigDict(frozen=True)

    client_id: str | None = None
    tenant_id: str = "common"
    client_secret: str | None = None
    access_token: str | None = None
    cloud_type: CloudType = CloudType.GLOBAL

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from M365_* environment variables (.env is already loaded)."""
        return cls(
            client_id=_env("M365_CLIENT_ID"),
            tenant_id=_env("M365_TENANT_ID") or "common",
            client_secret=_env("M365_CLIENT_SECRET"),
            access_token=_env("M365_ACCESS_TOKEN"),
            cloud_type=parse_cloud_type(_env("M365_CLOUD_TYPE") or "global"),
        )

    def __repr__(self) -> str:
        # Secrets stay out of reprs (and therefore out of logs and tracebacks)
        return (
            f"Settings(client_id={self.client_id!r}, tenant_id={self.tenant_id!r}, "
            f"client_secret={'***' if self.client_secret else None}, "
            f"access_token={'***' if self.access_token else None}, "
            f"cloud_type={self.cloud_type.value!r})"
        )

    __str__ = __repr__
