"""
HTTP client base for external collaborators.

The core never retries anything: MissingValueError and friends describe
lifecycle bugs, not transient faults. Collaborators that talk to real
services over the network (a remote parameter store, say) do retry, and
they share the policy implemented here.

Retry Strategy:
    - Retryable errors: timeouts, network errors, 429, 5xx
    - Non-retryable: 4xx (except 429), auth errors
    - Backoff: exponential with jitter, capped at 30 seconds
"""

from __future__ import annotations

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class ParameterStoreError(Exception):
    """Base exception for remote store failures."""

    def __init__(
        self,
        message: str,
        store: str,
        *,
        status_code: int | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.store = store
        self.status_code = status_code
        self.retryable = retryable

    def __str__(self) -> str:
        text = f"[{self.store}] {self.args[0]}"
        if self.status_code:
            text += f" (status={self.status_code})"
        return text


class StoreAuthenticationError(ParameterStoreError):
    """401/403 from the store."""

    def __init__(self, message: str, store: str, **kwargs: Any):
        super().__init__(message, store, retryable=False, **kwargs)


class StoreRateLimitError(ParameterStoreError):
    """429 from the store; honours Retry-After."""

    def __init__(self, message: str, store: str, *, retry_after: float | None = None, **kwargs: Any):
        super().__init__(message, store, retryable=True, **kwargs)
        self.retry_after = retry_after


class StoreNotFoundError(ParameterStoreError):
    """404 from the store."""

    def __init__(self, message: str, store: str, **kwargs: Any):
        super().__init__(message, store, retryable=False, **kwargs)


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True, slots=True)
class ClientConfig:
    base_url: str = ""
    token: str | None = None
    timeout: float = 10.0
    max_retries: int = 3
    retry_delay: float = 0.5
    max_delay: float = 30.0


# =============================================================================
# Base Client
# =============================================================================


class HttpStoreClient(ABC):
    """
    Shared httpx plumbing: client lifetime, auth headers, status mapping
    and retry with backoff.

    ``transport`` lets tests plug in httpx.MockTransport.
    """

    def __init__(self, config: ClientConfig, *, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    def _get_auth_headers(self) -> dict[str, str]:
        if self.config.token:
            return {"Authorization": f"Bearer {self.config.token}"}
        return {}

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                transport=self._transport,
                headers={"Accept": "application/json", **self._get_auth_headers()},
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpStoreClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request, retrying transient failures.

        Raises:
            ParameterStoreError: On a non-retryable error or after max retries
        """
        for attempt in range(self.config.max_retries + 1):
            try:
                return await self._send(method, path, **kwargs)
            except ParameterStoreError as e:
                if not e.retryable:
                    raise
                if attempt >= self.config.max_retries:
                    logger.warning(
                        f"[{self.name}] Giving up on {method} {path} after "
                        f"{self.config.max_retries} retries"
                    )
                    raise
                delay = self._backoff(attempt, e)
                logger.info(
                    f"[{self.name}] Retry {attempt + 1}/{self.config.max_retries} "
                    f"for {method} {path} in {delay:.2f}s"
                )
                await asyncio.sleep(delay)
        raise ParameterStoreError("Retry loop exited without a response", self.name)

    def _backoff(self, attempt: int, error: ParameterStoreError) -> float:
        if isinstance(error, StoreRateLimitError) and error.retry_after:
            return error.retry_after
        base = self.config.retry_delay * (2 ** attempt)
        jitter = base * 0.25 * (2 * random.random() - 1)
        return min(base + jitter, self.config.max_delay)

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise ParameterStoreError(f"Request timeout: {e}", self.name, retryable=True) from e
        except httpx.NetworkError as e:
            raise ParameterStoreError(f"Network error: {e}", self.name, retryable=True) from e
        self._check_response(response)
        return response

    def _check_response(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        status = response.status_code

        if status in (401, 403):
            raise StoreAuthenticationError("Authentication failed", self.name, status_code=status)
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise StoreRateLimitError(
                "Rate limit exceeded",
                self.name,
                status_code=status,
                retry_after=float(retry_after) if retry_after else None,
            )
        if status == 404:
            raise StoreNotFoundError("Not found", self.name, status_code=status)

        raise ParameterStoreError(
            f"Request failed: {response.text[:200]}",
            self.name,
            status_code=status,
            retryable=status >= 500,
        )
