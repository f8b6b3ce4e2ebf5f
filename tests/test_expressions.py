"""
Tests for reference expressions and the placeholder grammar.
"""

import asyncio

import pytest

from apphost.config import Configuration, ConfigurationParameterSource
from apphost.model import (
    CancellationTokenSource,
    ConnectionStringReference,
    ContainerResource,
    EndpointAnnotation,
    EndpointProperty,
    ExecutionContext,
    ExpressionSyntaxError,
    MissingValueError,
    ParameterResource,
    ReferenceExpression,
    ReferenceExpressionBuilder,
    literal,
    reference,
)
from apphost.model.expressions import expression_of, resolve_value
from apphost.model.placeholders import PlaceholderKind, parse_placeholder, parse_property_path


def make_resource(name="R", allocate_port=None):
    resource = ContainerResource(name)
    endpoint = resource.annotations.add(EndpointAnnotation(name="tcp", target_port=6379))
    if allocate_port is not None:
        endpoint.allocate("localhost", allocate_port)
    return resource


def make_parameter(name, value=None):
    config = Configuration({f"Parameters:{name}": value} if value is not None else {})
    return ParameterResource(name, source=ConfigurationParameterSource(config))


class SlowProvider:
    """Value provider that waits on an event before producing a value."""

    def __init__(self):
        self.release = asyncio.Event()
        self.calls = 0

    @property
    def value_expression(self):
        return "{slow.value}"

    async def get_value(self, cancellation=None):
        self.calls += 1
        await self.release.wait()
        return "late"


# =============================================================================
# Placeholder grammar
# =============================================================================


class TestPlaceholders:
    """Tests for the placeholder grammar."""

    @pytest.mark.parametrize(
        "path,kind",
        [
            ("bindings.tcp.host", PlaceholderKind.BINDING),
            ("bindings.tcp.port", PlaceholderKind.BINDING),
            ("value", PlaceholderKind.VALUE),
            ("connectionString", PlaceholderKind.CONNECTION_STRING),
            ("outputs.blobEndpoint", PlaceholderKind.OUTPUT),
        ],
    )
    def test_supported_paths(self, path, kind):
        assert parse_property_path(path).kind is kind

    @pytest.mark.parametrize(
        "path",
        ["bindings.tcp.scheme", "bindings.tcp", "values", "inputs.value", "", "bindings..host"],
    )
    def test_unsupported_paths_fail_at_construction(self, path):
        """Bad paths are rejected when building, never during resolution."""
        resource = make_resource()
        with pytest.raises(ExpressionSyntaxError):
            reference(resource, path)

    def test_syntax_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_property_path("nope")

    def test_parse_placeholder(self):
        name, path = parse_placeholder("{cache.bindings.tcp.port}")
        assert name == "cache"
        assert path.endpoint == "tcp"
        assert path.property == "port"


# =============================================================================
# Construction
# =============================================================================


class TestConstruction:
    """Tests for building expressions."""

    def test_round_trip_placeholder_form(self):
        """[literal a, reference R.x, literal b] renders as a{R.x}b."""
        resource = make_resource()
        expr = literal("a") + reference(resource, "bindings.tcp.host") + literal("b")

        assert expr.value_expression == "a{R.bindings.tcp.host}b"

    def test_segments_keep_construction_order(self):
        resource = make_resource("cache")
        password = make_parameter("pass")
        expr = (
            reference(resource, "bindings.tcp.host")
            + ":"
            + reference(resource, "bindings.tcp.port")
            + ",password="
            + reference(password)
        )

        assert expr.value_expression == (
            "{cache.bindings.tcp.host}:{cache.bindings.tcp.port},password={pass.value}"
        )

    def test_plain_strings_compose_on_either_side(self):
        resource = make_resource()
        expr = "tcp://" + reference(resource, "bindings.tcp.host")
        assert expr.value_expression == "tcp://{R.bindings.tcp.host}"

    def test_placeholder_does_not_need_allocation(self):
        """value_expression never touches runtime state."""
        resource = make_resource()
        expr = reference(resource, "bindings.tcp.port")
        assert expr.value_expression == "{R.bindings.tcp.port}"

    def test_builder(self):
        resource = make_resource()
        endpoint = resource.get_endpoint("tcp")
        expr = (
            ReferenceExpressionBuilder()
            .append_value(endpoint.property(EndpointProperty.HOST))
            .append_literal(":")
            .append_value(endpoint.property(EndpointProperty.PORT))
            .build()
        )
        assert expr.value_expression == "{R.bindings.tcp.host}:{R.bindings.tcp.port}"
        assert len(expr.value_providers) == 2

    def test_format(self):
        resource = make_resource()
        endpoint = resource.get_endpoint("tcp")
        expr = ReferenceExpression.format(
            "redis://{0}:{1}",
            endpoint.property(EndpointProperty.HOST),
            endpoint.property(EndpointProperty.PORT),
        )
        assert expr.value_expression == "redis://{R.bindings.tcp.host}:{R.bindings.tcp.port}"

    def test_format_rejects_missing_argument(self):
        with pytest.raises(IndexError):
            ReferenceExpression.format("{0}{1}", "a")

    def test_equality(self):
        resource = make_resource()
        a = literal("x") + reference(resource, "bindings.tcp.host")
        b = literal("x") + reference(resource, "bindings.tcp.host")
        assert a == b
        assert hash(a) == hash(b)

    def test_empty(self):
        assert ReferenceExpression.empty().is_empty
        assert (literal("") + literal("")).is_empty

    def test_unsupported_operand(self):
        with pytest.raises(TypeError):
            literal("a") + object()

    def test_value_path_requires_value_provider(self):
        with pytest.raises(TypeError):
            reference(make_resource(), "value")


# =============================================================================
# Resolution
# =============================================================================


class TestResolution:
    """Tests for get_value()."""

    @pytest.mark.asyncio
    async def test_resolves_in_order(self):
        resource = make_resource(allocate_port=2000)
        expr = literal("a") + reference(resource, "bindings.tcp.port") + literal("b")

        assert await expr.get_value() == "a2000b"

    @pytest.mark.asyncio
    async def test_idempotent(self):
        """Resolving twice with unchanged inputs yields identical strings."""
        resource = make_resource(allocate_port=2000)
        password = make_parameter("pass", "p@ssw0rd1")
        expr = (
            reference(resource, "bindings.tcp.host")
            + ":"
            + reference(resource, "bindings.tcp.port")
            + ",password="
            + reference(password)
        )

        first = await expr.get_value()
        second = await expr.get_value()
        assert first == second == "localhost:2000,password=p@ssw0rd1"

    @pytest.mark.asyncio
    async def test_unallocated_endpoint_raises_missing_value(self):
        expr = reference(make_resource(), "bindings.tcp.host")
        with pytest.raises(MissingValueError):
            await expr.get_value()

    @pytest.mark.asyncio
    async def test_missing_parameter_raises_missing_value(self):
        expr = literal("pw=") + reference(make_parameter("absent"))
        with pytest.raises(MissingValueError) as exc_info:
            await expr.get_value()
        assert exc_info.value.resource_name == "absent"

    @pytest.mark.asyncio
    async def test_cancelled_token_raises_cancelled(self):
        """A cancelled resolution reports cancellation, not a value."""
        source = CancellationTokenSource()
        source.cancel()
        expr = literal("a") + reference(make_resource(allocate_port=1), "bindings.tcp.port")

        with pytest.raises(asyncio.CancelledError):
            await expr.get_value(source.token)

    @pytest.mark.asyncio
    async def test_cancellation_during_suspension(self):
        """Cancelling mid-flight never yields a partial string."""
        slow = SlowProvider()
        expr = literal("prefix-") + slow + literal("-suffix")
        source = CancellationTokenSource()

        task = asyncio.create_task(expr.get_value(source.token))
        await asyncio.sleep(0)
        source.cancel()
        slow.release.set()

        with pytest.raises(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_retry_after_cancellation(self):
        """Re-resolving after a cancellation works and does not accumulate state."""
        slow = SlowProvider()
        slow.release.set()
        expr = literal("x") + slow
        source = CancellationTokenSource()
        source.cancel()

        with pytest.raises(asyncio.CancelledError):
            await expr.get_value(source.token)
        assert await expr.get_value() == "xlate"
        assert await expr.get_value() == "xlate"

    @pytest.mark.asyncio
    async def test_task_cancellation(self):
        slow = SlowProvider()
        task = asyncio.create_task((literal("a") + slow).get_value())
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_nested_expressions(self):
        inner = literal("[") + make_parameter("p", "v") + literal("]")
        outer = literal("<") + inner + literal(">")
        assert await outer.get_value() == "<[v]>"


class TestRendering:
    """Tests for resolve_value() and expression_of()."""

    @pytest.mark.asyncio
    async def test_publish_mode_returns_placeholder(self):
        password = make_parameter("pass", "secret")
        value = await resolve_value(password, ExecutionContext.publish())
        assert value == "{pass.value}"

    @pytest.mark.asyncio
    async def test_run_mode_resolves(self):
        password = make_parameter("pass", "secret")
        value = await resolve_value(password, ExecutionContext.run())
        assert value == "secret"

    @pytest.mark.asyncio
    async def test_scalars(self):
        ctx = ExecutionContext.run()
        assert await resolve_value("x", ctx) == "x"
        assert await resolve_value(5, ctx) == "5"
        assert await resolve_value(True, ctx) == "true"
        assert await resolve_value(None, ctx) is None

    def test_expression_of(self):
        assert expression_of(make_parameter("p")) == "{p.value}"
        assert expression_of(False) == "false"
        with pytest.raises(TypeError):
            expression_of(object())

    @pytest.mark.asyncio
    async def test_optional_connection_string_reference(self):
        class NoConnection:
            name = "db"

            @property
            def connection_string_expression(self):
                return literal("")

            async def get_connection_string(self, cancellation=None):
                return None

        required = ConnectionStringReference(NoConnection())
        optional = ConnectionStringReference(NoConnection(), optional=True)

        assert required.value_expression == "{db.connectionString}"
        assert await optional.get_value() is None
        with pytest.raises(MissingValueError):
            await required.get_value()
