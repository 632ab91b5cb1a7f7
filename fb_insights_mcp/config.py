"""Process configuration and logging setup."""

import logging
import os
import sys
from typing import Any, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SERVER_NAME = "Facebook Insights MCP Server"
SERVER_VERSION = "1.0.0"

GRAPH_HOST = "https://graph.facebook.com"
DEFAULT_API_VERSION = "v19.0"
DEFAULT_PORT = 8082

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("fb_insights_mcp")


class FacebookConfig(BaseModel):
    """Immutable credentials and settings, built once at startup."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    app_id: str = Field(default="", description="Facebook App ID (FB_APP_ID)")
    app_secret: str = Field(default="", repr=False, description="Facebook App secret (FB_APP_SECRET)")
    access_token: str = Field(default="", repr=False, description="Marketing API access token (FB_ACCESS_TOKEN)")
    api_version: str = Field(default=DEFAULT_API_VERSION, description="Graph API version, e.g. 'v19.0'")
    host: str = Field(default="0.0.0.0", description="HTTP transport bind address")
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535, description="HTTP transport port")
    log_level: LogLevel = Field(default="INFO", description="Root log level for the fb_insights_mcp logger")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().upper()
            return "WARNING" if v == "WARN" else v
        return v

    @property
    def graph_base_url(self) -> str:
        return f"{GRAPH_HOST}/{self.api_version}"

    def missing_credentials(self) -> List[str]:
        """Names of the FB_* variables that were empty."""
        missing = []
        if not self.app_id:
            missing.append("FB_APP_ID")
        if not self.app_secret:
            missing.append("FB_APP_SECRET")
        if not self.access_token:
            missing.append("FB_ACCESS_TOKEN")
        return missing

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "FacebookConfig":
        """Build the configuration from environment variables.

        Missing credentials are logged but never prevent startup; tools that
        reach the Graph API will report the missing token instead.
        """
        env = os.environ if environ is None else environ
        values = {
            "app_id": env.get("FB_APP_ID", ""),
            "app_secret": env.get("FB_APP_SECRET", ""),
            "access_token": env.get("FB_ACCESS_TOKEN", ""),
            "api_version": env.get("FB_API_VERSION") or DEFAULT_API_VERSION,
            "host": env.get("HOST") or "0.0.0.0",
            "port": env.get("PORT") or DEFAULT_PORT,
            "log_level": env.get("LOG_LEVEL") or "INFO",
        }
        config = cls.model_validate(values)

        missing = config.missing_credentials()
        if missing:
            logger.warning(
                "Facebook credentials not configured: %s. "
                "The server will start but Graph API calls will fail until they are set.",
                ", ".join(missing),
            )
        return config


def configure_logging(level: str = "INFO") -> None:
    """Send package logs to stderr; stdout carries protocol traffic."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.handlers[:] = [handler]
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False
