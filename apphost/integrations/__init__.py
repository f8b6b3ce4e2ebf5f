"""
Clients for external collaborators reached over the network.
"""

from .base import (
    ClientConfig,
    HttpStoreClient,
    ParameterStoreError,
    StoreAuthenticationError,
    StoreNotFoundError,
    StoreRateLimitError,
)
from .parameter_store import HttpParameterStore, ParameterValue

__all__ = [
    "ClientConfig",
    "HttpParameterStore",
    "HttpStoreClient",
    "ParameterStoreError",
    "ParameterValue",
    "StoreAuthenticationError",
    "StoreNotFoundError",
    "StoreRateLimitError",
]
