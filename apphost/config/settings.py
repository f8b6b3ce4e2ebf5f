"""
Environment-driven settings loader.

Reads APPHOST_* variables once per process.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from apphost.model.context import DistributedApplicationOperation

from .schemas import AppHostSettings, ParameterStoreSettings

logger = logging.getLogger(__name__)


@lru_cache()
def get_settings() -> AppHostSettings:
    """
    Get app host settings from environment.

    Uses lru_cache for singleton pattern; call get_settings.cache_clear()
    after changing the environment in tests.
    """
    return AppHostSettings(
        application_name=os.getenv("APPHOST_APPLICATION_NAME", "apphost"),
        operation=DistributedApplicationOperation(
            os.getenv("APPHOST_OPERATION", "run").lower()
        ),
        manifest_path=os.getenv("APPHOST_MANIFEST_PATH"),
        app_host_directory=os.getenv("APPHOST_DIRECTORY", os.getcwd()),
        default_host=os.getenv("APPHOST_DEFAULT_HOST", "localhost"),
        container_host=os.getenv("APPHOST_CONTAINER_HOST", "host.docker.internal"),
        dynamic_port_start=int(os.getenv("APPHOST_DYNAMIC_PORT_START", "5000")),
        dynamic_port_end=int(os.getenv("APPHOST_DYNAMIC_PORT_END", "65535")),
    )


def get_parameter_store_settings() -> ParameterStoreSettings | None:
    """
    Parameter store settings, or None when APPHOST_PARAMETER_STORE_URL is unset.
    """
    base_url = os.getenv("APPHOST_PARAMETER_STORE_URL")
    if not base_url:
        return None
    return ParameterStoreSettings(
        base_url=base_url,
        token=os.getenv("APPHOST_PARAMETER_STORE_TOKEN", ""),
        timeout=float(os.getenv("APPHOST_PARAMETER_STORE_TIMEOUT", "10")),
        max_retries=int(os.getenv("APPHOST_PARAMETER_STORE_MAX_RETRIES", "3")),
        retry_delay=float(os.getenv("APPHOST_PARAMETER_STORE_RETRY_DELAY", "0.5")),
    )
