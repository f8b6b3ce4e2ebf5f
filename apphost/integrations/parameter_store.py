"""
Remote parameter store client.

Serves parameter values over HTTP:

    GET {path_prefix}/{name}   ->  200 {"name": "pass", "value": "..."}
                                   404 when the parameter is not configured

A 404 is not an error here. It means "no value", and the parameter falls
back to its default; only resolution decides whether that is fatal.

Example:
    store = HttpParameterStore.from_settings(get_parameter_store_settings())
    builder = DistributedApplicationBuilder(parameter_source=store)
"""

from __future__ import annotations

import logging
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field, ValidationError

from apphost.config.schemas import ParameterStoreSettings

from .base import ClientConfig, HttpStoreClient, ParameterStoreError, StoreNotFoundError

logger = logging.getLogger(__name__)


class ParameterValue(BaseModel):
    """Response body for a single parameter."""

    name: str | None = None
    value: str = Field(..., description="Parameter value")

    class Config:
        extra = "ignore"


class HttpParameterStore(HttpStoreClient):
    """ParameterSource backed by a remote HTTP store."""

    def __init__(
        self,
        config: ClientConfig,
        *,
        path_prefix: str = "/parameters",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(config, transport=transport)
        self.path_prefix = path_prefix.rstrip("/")

    @classmethod
    def from_settings(
        cls,
        settings: ParameterStoreSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "HttpParameterStore":
        config = ClientConfig(
            base_url=settings.base_url,
            token=settings.token.get_secret_value() or None,
            timeout=settings.timeout,
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay,
        )
        return cls(config, path_prefix=settings.path_prefix, transport=transport)

    @property
    def name(self) -> str:
        return "parameter-store"

    async def get(self, name: str) -> str | None:
        """
        Fetch one parameter value.

        Returns:
            The value, or None if the store has no such parameter

        Raises:
            ParameterStoreError: On authentication, server or malformed responses
        """
        path = f"{self.path_prefix}/{quote(name, safe='')}"
        try:
            response = await self._request("GET", path)
        except StoreNotFoundError:
            logger.debug(f"[{self.name}] '{name}' is not configured")
            return None

        try:
            payload = ParameterValue.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ParameterStoreError(
                f"Malformed response for '{name}': {e}",
                self.name,
                status_code=response.status_code,
            ) from e
        return payload.value
