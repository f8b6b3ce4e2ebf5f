"""
Parameter resources: externally supplied values such as passwords.

A parameter's value comes from a ParameterSource (configuration, a remote
secret store) under ``Parameters:<name>``. If the source has nothing, the
parameter falls back to its default. Without either, resolving it raises
MissingValueError. Absence is never an error before resolution.

In the manifest a parameter is always rendered as ``{name.value}``; the
value itself is materialised only in run mode.
"""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .cancellation import CancellationToken, ensure_token
from .errors import MissingValueError
from .placeholders import format_placeholder
from .resource import Resource

if TYPE_CHECKING:
    from apphost.manifest.writer import ManifestWriter

logger = logging.getLogger(__name__)


@runtime_checkable
class ParameterSource(Protocol):
    """Where parameter values come from at run time."""

    async def get(self, name: str) -> str | None: ...


# =============================================================================
# Defaults
# =============================================================================


class ParameterDefault:
    """Fallback used when no source supplies a value."""

    def get_default_value(self) -> str:
        raise NotImplementedError

    def write_to_manifest(self, writer: ManifestWriter) -> None:
        raise NotImplementedError


@dataclass
class ConstantParameterDefault(ParameterDefault):
    value: str

    def get_default_value(self) -> str:
        return self.value

    def write_to_manifest(self, writer: ManifestWriter) -> None:
        writer.write_string("value", self.value)


@dataclass
class GenerateParameterDefault(ParameterDefault):
    """
    A random value generated on first use.

    Character classes can be switched off; ``min_*`` counts are honoured
    for the classes that remain.
    """

    min_length: int = 22
    lower: bool = True
    upper: bool = True
    numeric: bool = True
    special: bool = True
    min_lower: int = 0
    min_upper: int = 0
    min_numeric: int = 0
    min_special: int = 0

    def __post_init__(self) -> None:
        if self.min_length < 1:
            raise ValueError("min_length must be positive")
        if not (self.lower or self.upper or self.numeric or self.special):
            raise ValueError("At least one character class must be enabled")

    def get_default_value(self) -> str:
        classes = [
            (self.lower, string.ascii_lowercase, self.min_lower),
            (self.upper, string.ascii_uppercase, self.min_upper),
            (self.numeric, string.digits, self.min_numeric),
            (self.special, "-_.~!@#$%^&*()", self.min_special),
        ]
        alphabet = "".join(chars for enabled, chars, _ in classes if enabled)
        chars = [
            secrets.choice(pool)
            for enabled, pool, minimum in classes
            if enabled
            for _ in range(minimum)
        ]
        while len(chars) < self.min_length:
            chars.append(secrets.choice(alphabet))
        secrets.SystemRandom().shuffle(chars)
        return "".join(chars)

    def write_to_manifest(self, writer: ManifestWriter) -> None:
        writer.start_object("generate")
        writer.write_number("minLength", self.min_length)
        for key, enabled in (
            ("lower", self.lower),
            ("upper", self.upper),
            ("numeric", self.numeric),
            ("special", self.special),
        ):
            if not enabled:
                writer.write_bool(key, False)
        for key, minimum in (
            ("minLower", self.min_lower),
            ("minUpper", self.min_upper),
            ("minNumeric", self.min_numeric),
            ("minSpecial", self.min_special),
        ):
            if minimum:
                writer.write_number(key, minimum)
        writer.end_object()


# =============================================================================
# Resource
# =============================================================================


class ParameterResource(Resource):
    """
    A named input value, optionally secret.

    Example:
        password = ParameterResource("pass", secret=True)
        password.source = ConfigurationParameterSource(configuration)
        await password.get_value()
    """

    def __init__(
        self,
        name: str,
        *,
        secret: bool = False,
        default: ParameterDefault | None = None,
        source: ParameterSource | None = None,
    ):
        super().__init__(name)
        self.secret = secret
        self.default = default
        self.source = source
        self._generated: str | None = None

    @property
    def configuration_key(self) -> str:
        return f"Parameters:{self.name}"

    @property
    def value_expression(self) -> str:
        return format_placeholder(self.name, "value")

    async def get_value(self, cancellation: CancellationToken | None = None) -> str:
        """
        Resolve the parameter.

        Raises:
            MissingValueError: If neither the source nor a default supplies a value
        """
        token = ensure_token(cancellation)
        token.throw_if_cancellation_requested()

        if self.source is not None:
            value = await self.source.get(self.name)
            token.throw_if_cancellation_requested()
            if value is not None:
                return value

        if self.default is not None:
            if isinstance(self.default, GenerateParameterDefault):
                if self._generated is None:
                    logger.debug(f"[parameters] Generating value for '{self.name}'")
                    self._generated = self.default.get_default_value()
                return self._generated
            return self.default.get_default_value()

        raise MissingValueError(
            f"Parameter resource could not be used because configuration key "
            f"'{self.configuration_key}' is missing and the parameter has no default value",
            resource_name=self.name,
        )

    def __repr__(self) -> str:
        return f"ParameterResource(name={self.name!r}, secret={self.secret})"

