"""
Settings schemas for apphost.

Pydantic models for host-level settings. These are distinct from the
hierarchical Configuration store: settings describe how the app host
itself behaves, configuration holds values consumed by resources.

Security:
    Tokens use SecretStr to prevent accidental logging.
    Access the value with `.get_secret_value()`.
"""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, SecretStr

from apphost.model.context import DistributedApplicationOperation


class AppHostSettings(BaseModel):
    """
    App host settings.

    Used by DistributedApplicationBuilder when no explicit values are given.
    """

    application_name: str = Field("apphost", description="Prefix for generated volume names")
    operation: DistributedApplicationOperation = Field(
        DistributedApplicationOperation.RUN,
        description="Run the topology or publish its manifest",
    )
    manifest_path: str | None = Field(None, description="Where publish mode writes the manifest")
    app_host_directory: str = Field(
        default_factory=os.getcwd,
        description="Base directory for relative bind mount sources",
    )

    # Endpoint allocation
    default_host: str = Field("localhost", description="Address assigned to allocated endpoints")
    container_host: str = Field(
        "host.docker.internal",
        description="Name containers use to reach the host",
    )
    dynamic_port_start: int = Field(
        5000, ge=1, le=65535, description="First port handed out to endpoints without a fixed port"
    )
    dynamic_port_end: int = Field(65535, ge=1, le=65535)

    class Config:
        extra = "ignore"


class ParameterStoreSettings(BaseModel):
    """
    Settings for the HTTP parameter store client.

    Security:
        The access token is a SecretStr; it never appears in repr or logs.
    """

    base_url: str = Field(..., description="Parameter store base URL")
    token: SecretStr = Field(default=SecretStr(""), description="Bearer token")
    path_prefix: str = Field("/parameters", description="Path under which values are served")
    timeout: float = Field(10.0, gt=0)
    max_retries: int = Field(3, ge=0)
    retry_delay: float = Field(0.5, ge=0)

    class Config:
        extra = "forbid"
