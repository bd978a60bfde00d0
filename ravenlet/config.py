"""Client configuration loaded from the environment using Pydantic Settings."""

from typing import Annotated, Any, Dict, Optional

import orjson
from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .client import DEFAULT_LOGGER, DEFAULT_TIMEOUT


class ClientSettings(BaseSettings):
    """Client settings loaded from RAVENLET_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RAVENLET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Connection
    dsn: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT  # seconds

    # Event defaults
    logger: str = DEFAULT_LOGGER
    release: Optional[str] = None
    environment: Optional[str] = None
    tags: Annotated[Dict[str, str], NoDecode] = {}

    # Logging
    log_level: str = "INFO"

    @field_validator("tags", mode="before")
    @classmethod
    def parse_tags(cls, v: Any) -> Dict[str, str]:
        """Parse tags from a dict, a JSON object or "key=value,key=value"."""
        if v is None or v == "":
            return {}
        if isinstance(v, dict):
            return {str(k): str(val) for k, val in v.items()}
        if isinstance(v, str):
            v = v.strip()
            if v.startswith("{"):
                try:
                    data = orjson.loads(v)
                except orjson.JSONDecodeError:
                    data = None
                if isinstance(data, dict):
                    return {str(k): str(val) for k, val in data.items()}
            result = {}
            for pair in v.split(","):
                key, sep, value = pair.partition("=")
                if sep and key.strip():
                    result[key.strip()] = value.strip()
            return result
        return {}
