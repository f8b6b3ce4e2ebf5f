"""
Manifest serialization: the declarative JSON description of a topology.
"""

from .publisher import ManifestPublisher, ManifestPublishingContext
from .writer import ManifestWriter

__all__ = [
    "ManifestPublisher",
    "ManifestPublishingContext",
    "ManifestWriter",
]
