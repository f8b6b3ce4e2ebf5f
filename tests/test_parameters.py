"""
Tests for parameters, their defaults and the remote parameter store.
"""

import string

import httpx
import pytest

from apphost.config import Configuration, ConfigurationParameterSource, ParameterStoreSettings
from apphost.integrations import (
    ClientConfig,
    HttpParameterStore,
    ParameterStoreError,
    StoreAuthenticationError,
)
from apphost.manifest import ManifestWriter
from apphost.model import (
    ConstantParameterDefault,
    GenerateParameterDefault,
    MissingValueError,
    ParameterResource,
)


def make_store(handler, **config):
    config.setdefault("retry_delay", 0)
    return HttpParameterStore(
        ClientConfig(base_url="http://store.test", **config),
        transport=httpx.MockTransport(handler),
    )


# =============================================================================
# Defaults
# =============================================================================


class TestGenerateParameterDefault:
    """Tests for generated default values."""

    def test_length(self):
        value = GenerateParameterDefault(min_length=30).get_default_value()
        assert len(value) == 30

    def test_disabled_classes_excluded(self):
        value = GenerateParameterDefault(special=False, upper=False).get_default_value()

        allowed = set(string.ascii_lowercase + string.digits)
        assert set(value) <= allowed

    def test_minimums_honoured(self):
        default = GenerateParameterDefault(min_length=10, min_numeric=5, min_upper=3)

        for _ in range(20):
            value = default.get_default_value()
            assert sum(c.isdigit() for c in value) >= 5
            assert sum(c.isupper() for c in value) >= 3

    def test_invalid(self):
        with pytest.raises(ValueError):
            GenerateParameterDefault(min_length=0)
        with pytest.raises(ValueError):
            GenerateParameterDefault(lower=False, upper=False, numeric=False, special=False)

    def test_manifest_shape(self):
        writer = ManifestWriter()
        GenerateParameterDefault(special=False, min_numeric=2).write_to_manifest(writer)

        assert writer.to_dict() == {
            "generate": {"minLength": 22, "special": False, "minNumeric": 2}
        }

    def test_constant_manifest_shape(self):
        writer = ManifestWriter()
        ConstantParameterDefault("westus").write_to_manifest(writer)
        assert writer.to_dict() == {"value": "westus"}


class TestParameterResource:
    """Tests for parameter resolution."""

    def test_placeholder(self):
        parameter = ParameterResource("pass", secret=True)

        assert parameter.value_expression == "{pass.value}"
        assert parameter.configuration_key == "Parameters:pass"
        assert "secret=True" in repr(parameter)

    @pytest.mark.asyncio
    async def test_missing_value(self):
        parameter = ParameterResource("pass", source=ConfigurationParameterSource(Configuration()))

        with pytest.raises(MissingValueError) as exc_info:
            await parameter.get_value()
        assert "Parameters:pass" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_generated_value_is_stable(self):
        """A generated default is produced once per parameter."""
        parameter = ParameterResource("pass", default=GenerateParameterDefault())

        first = await parameter.get_value()
        assert await parameter.get_value() == first

    @pytest.mark.asyncio
    async def test_source_wins_over_default(self):
        source = ConfigurationParameterSource(Configuration({"Parameters:pass": "configured"}))
        parameter = ParameterResource(
            "pass", default=ConstantParameterDefault("fallback"), source=source
        )

        assert await parameter.get_value() == "configured"


# =============================================================================
# Remote store
# =============================================================================


class TestHttpParameterStore:
    """Tests for HttpParameterStore with httpx.MockTransport."""

    @pytest.mark.asyncio
    async def test_get(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"name": "pass", "value": "s3cret"})

        async with make_store(handler, token="tok") as store:
            assert await store.get("pass") == "s3cret"

        assert requests[0].url.path == "/parameters/pass"
        assert requests[0].headers["Authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    async def test_not_found_is_none(self):
        async with make_store(lambda request: httpx.Response(404)) as store:
            assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_name_is_quoted(self):
        paths = []

        def handler(request):
            paths.append(request.url.raw_path)
            return httpx.Response(200, json={"value": "v"})

        async with make_store(handler) as store:
            await store.get("a/b")

        assert paths == [b"/parameters/a%2Fb"]

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        calls = []

        def handler(request):
            calls.append(1)
            if len(calls) < 3:
                return httpx.Response(503, text="unavailable")
            return httpx.Response(200, json={"value": "v"})

        async with make_store(handler, max_retries=3) as store:
            assert await store.get("pass") == "v"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(500, text="boom")

        async with make_store(handler, max_retries=2) as store:
            with pytest.raises(ParameterStoreError) as exc_info:
                await store.get("pass")

        assert exc_info.value.status_code == 500
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_auth_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(401)

        async with make_store(handler) as store:
            with pytest.raises(StoreAuthenticationError):
                await store.get("pass")
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_timeout_retried(self):
        calls = []

        def handler(request):
            calls.append(1)
            if len(calls) == 1:
                raise httpx.ConnectTimeout("slow", request=request)
            return httpx.Response(200, json={"value": "v"})

        async with make_store(handler) as store:
            assert await store.get("pass") == "v"

    @pytest.mark.asyncio
    async def test_rate_limit_retry_after(self):
        calls = []

        def handler(request):
            calls.append(1)
            if len(calls) == 1:
                return httpx.Response(429, headers={"Retry-After": "0"})
            return httpx.Response(200, json={"value": "v"})

        async with make_store(handler) as store:
            assert await store.get("pass") == "v"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        async with make_store(lambda request: httpx.Response(200, json={"nope": 1})) as store:
            with pytest.raises(ParameterStoreError):
                await store.get("pass")

    @pytest.mark.asyncio
    async def test_as_parameter_source(self):
        """The store plugs into a parameter like any other source."""
        store = make_store(lambda request: httpx.Response(200, json={"value": "remote"}))
        parameter = ParameterResource("pass", secret=True, source=store)

        try:
            assert await parameter.get_value() == "remote"
        finally:
            await store.close()

    def test_from_settings(self):
        settings = ParameterStoreSettings(
            base_url="https://store.internal",
            token="tok",
            path_prefix="/v1/params/",
            max_retries=1,
        )

        store = HttpParameterStore.from_settings(settings)

        assert store.config.token == "tok"
        assert store.config.max_retries == 1
        assert store.path_prefix == "/v1/params"
        assert store.name == "parameter-store"
