"""
Hierarchical configuration for resources.

Keys are colon-separated paths (``Parameters:pass``,
``ConnectionStrings:db``) compared case-insensitively. Values are strings.
Environment variables use ``__`` as the separator, so
``APPHOST__Parameters__pass=secret`` becomes ``Parameters:pass``.

Later sources override earlier ones.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Mapping, MutableMapping

logger = logging.getLogger(__name__)

ENVIRONMENT_PREFIX = "APPHOST__"


def _normalize(key: str) -> str:
    return key.replace("__", ":").lower()


class Configuration(MutableMapping[str, str]):
    """
    Case-insensitive key/value store.

    Example:
        config = Configuration({"Parameters:pass": "p@ssw0rd1"})
        config["parameters:PASS"]  # "p@ssw0rd1"
    """

    def __init__(self, values: Mapping[str, str] | None = None):
        # normalized key -> (original key, value)
        self._data: dict[str, tuple[str, str]] = {}
        if values:
            self.update(values)

    def __getitem__(self, key: str) -> str:
        return self._data[_normalize(key)][1]

    def __setitem__(self, key: str, value: str) -> None:
        self._data[_normalize(key)] = (key.replace("__", ":"), str(value))

    def __delitem__(self, key: str) -> None:
        del self._data[_normalize(key)]

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._data.values())

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and _normalize(key) in self._data

    def get_section(self, prefix: str) -> dict[str, str]:
        """
        Values under ``prefix:``, keyed by the remainder of the key.

        Example:
            config.get_section("Parameters")  # {"pass": "p@ssw0rd1"}
        """
        marker = _normalize(prefix) + ":"
        return {
            original[len(marker):]: value
            for normalized, (original, value) in self._data.items()
            if normalized.startswith(marker)
        }

    def get_connection_string(self, name: str) -> str | None:
        return self.get(f"ConnectionStrings:{name}")

    def add_environment_variables(
        self,
        prefix: str = ENVIRONMENT_PREFIX,
        environ: Mapping[str, str] | None = None,
    ) -> "Configuration":
        """Load ``{prefix}Section__Key`` variables as ``Section:Key``."""
        environ = os.environ if environ is None else environ
        count = 0
        for name, value in environ.items():
            if name.upper().startswith(prefix.upper()):
                key = name[len(prefix):].replace("__", ":")
                if key:
                    self[key] = value
                    count += 1
        logger.debug(f"[configuration] Loaded {count} values from environment (prefix={prefix})")
        return self

    def __repr__(self) -> str:
        # Values may be secrets.
        return f"Configuration(keys={list(self)})"


class ConfigurationParameterSource:
    """ParameterSource that reads ``Parameters:<name>`` from a Configuration."""

    def __init__(self, configuration: Configuration):
        self.configuration = configuration

    async def get(self, name: str) -> str | None:
        return self.configuration.get(f"Parameters:{name}")
