# src/merge_gateway/config/settings.py
# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""Gateway Configuration (Pydantic Settings, v2)

Summary:
    Typed, validated, immutable configuration for the merge gateway. The
    settings object is built once at startup and handed to the bootstrap,
    dispatcher and proxy forwarder; nothing mutates it afterwards.

Design:
    - Pydantic v2 BaseSettings with `extra='forbid'` to catch unknown fields.
    - `frozen=True`: derived values are exposed as read-only properties.
    - `MERGE_ENDPOINTS` carries `primary,secondary` (comma-separated); fewer
      than two non-empty entries is a fatal configuration error.
    - `MERGE_LISTEN` follows the `host:port` convention where an empty host
      means all interfaces (default `:9000`).
    - Singleton accessor `get_settings()` with LRU cache.
"""

from __future__ import annotations

import logging
from enum import Enum
from functools import lru_cache

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Local logger (global logging configuration is owned by main.create_app()).
logger = logging.getLogger(__name__)

DEFAULT_LISTEN = ":9000"
DEFAULT_ROUTE_PATH = "/traefik-merged"


class Environment(str, Enum):
    """Logical deployment environment."""

    DEVELOPMENT = "development"
    TEST = "test"
    CI = "ci"
    STAGING = "staging"
    PRODUCTION = "production"


def _split_endpoints(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


class Settings(BaseSettings):
    """Typed gateway configuration."""

    # ---------------------------
    # Core environment
    # ---------------------------
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Logical deployment environment.",
        validation_alias="ENVIRONMENT",
    )

    # ---------------------------
    # Backends
    # ---------------------------
    merge_endpoints: str = Field(
        ...,
        description=(
            "Comma-separated backend URLs: primary (read-only, wins merge conflicts) "
            "then secondary (read-write, merge base and proxy target)."
        ),
        validation_alias="MERGE_ENDPOINTS",
    )
    fetch_timeout_s: float = Field(
        default=4.0,
        gt=0.0,
        le=300.0,
        description="Timeout in seconds for each backend GET on the read path.",
        validation_alias="MERGE_FETCH_TIMEOUT_S",
    )
    proxy_timeout_s: float = Field(
        default=10.0,
        gt=0.0,
        le=300.0,
        description="Timeout in seconds for a proxied write request.",
        validation_alias="MERGE_PROXY_TIMEOUT_S",
    )

    # ---------------------------
    # Listener / routing
    # ---------------------------
    merge_listen: str = Field(
        default=DEFAULT_LISTEN,
        description="Listen address as host:port; an empty host binds all interfaces.",
        validation_alias="MERGE_LISTEN",
    )
    route_path: str = Field(
        default=DEFAULT_ROUTE_PATH,
        description="The single gateway route serving merged reads and proxied writes.",
        validation_alias="MERGE_ROUTE_PATH",
    )

    # ---------------------------
    # Service identity / observability
    # ---------------------------
    service_name: str = Field(
        default="merge-gateway",
        description="Logical service name for logging.",
        validation_alias="SERVICE_NAME",
    )
    service_version: str | None = Field(
        default=None,
        description="Service version used for logging and OpenAPI.",
        validation_alias="SERVICE_VERSION",
    )
    log_level: str | None = Field(
        default=None,
        description="Override log level (e.g., 'DEBUG', 'INFO'). If not set, INFO is used.",
        validation_alias="LOG_LEVEL",
    )
    metrics_enabled: bool = Field(
        default=True,
        description="Expose /metrics and record request latency histograms.",
        validation_alias="METRICS_ENABLED",
    )
    echo_request_id: bool = Field(
        default=False,
        description=(
            "Echo X-Request-ID on responses. Off by default so proxied responses "
            "carry exactly the write backend's headers."
        ),
        validation_alias="ECHO_REQUEST_ID",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="forbid",
        case_sensitive=False,
        frozen=True,
    )

    @field_validator("merge_endpoints")
    @classmethod
    def _require_two_endpoints(cls, value: str) -> str:
        """Reject configurations with fewer than two backend URLs.

        Raises:
            ValueError: If fewer than two non-empty comma-separated entries exist.
        """
        if len(_split_endpoints(value)) < 2:
            raise ValueError(
                "MERGE_ENDPOINTS must provide at least two comma-separated endpoints "
                "(primary,secondary)",
            )
        return value

    @field_validator("merge_listen")
    @classmethod
    def _validate_listen(cls, value: str) -> str:
        """Require a numeric port in the listen address."""
        _host, sep, port = value.strip().rpartition(":")
        if not sep or not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError(f"MERGE_LISTEN must look like 'host:port' or ':port', got {value!r}")
        return value.strip()

    @field_validator("route_path")
    @classmethod
    def _validate_route_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("MERGE_ROUTE_PATH must start with '/'")
        return value

    # --------------------------------------------------------------------- #
    # Derived values
    # --------------------------------------------------------------------- #
    @property
    def primary_url(self) -> str:
        """Read-only backend; its values win merge conflicts."""
        return _split_endpoints(self.merge_endpoints)[0]

    @property
    def secondary_url(self) -> str:
        """Read-write backend; merge base and target of every non-GET request."""
        return _split_endpoints(self.merge_endpoints)[1]

    @property
    def listen_host(self) -> str:
        """Bind host; ``0.0.0.0`` when the listen address has no host part."""
        host = self.merge_listen.rpartition(":")[0]
        if host.startswith("[") and host.endswith("]"):
            host = host[1:-1]
        return host or "0.0.0.0"

    @property
    def listen_port(self) -> int:
        return int(self.merge_listen.rpartition(":")[2])


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton `Settings` instance.

    Returns:
        Settings: Validated gateway settings.

    Raises:
        RuntimeError: If configuration is invalid.
    """
    try:
        settings = Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        logger.exception("Invalid gateway configuration")
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    logger.info(
        "Settings initialized",
        extra={
            "extra": {
                "environment": settings.environment.value,
                "primary_url": settings.primary_url,
                "secondary_url": settings.secondary_url,
                "listen": settings.merge_listen,
                "route_path": settings.route_path,
                "fetch_timeout_s": settings.fetch_timeout_s,
                "proxy_timeout_s": settings.proxy_timeout_s,
                "metrics_enabled": settings.metrics_enabled,
            }
        },
    )
    return settings
