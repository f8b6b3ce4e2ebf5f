"""
Tests for configuration and settings.
"""

import pytest
from pydantic import ValidationError

from apphost.config import (
    AppHostSettings,
    Configuration,
    ConfigurationParameterSource,
    ParameterStoreSettings,
    get_parameter_store_settings,
    get_settings,
)
from apphost.model import DistributedApplicationOperation


class TestConfiguration:
    """Tests for the Configuration store."""

    def test_keys_are_case_insensitive(self):
        config = Configuration({"Parameters:pass": "p@ssw0rd1"})

        assert config["parameters:PASS"] == "p@ssw0rd1"
        assert "PARAMETERS:pass" in config

    def test_double_underscore_is_a_separator(self):
        config = Configuration({"Parameters__pass": "x"})
        assert config["Parameters:pass"] == "x"

    def test_later_values_override(self):
        config = Configuration({"Parameters:pass": "one"})
        config["PARAMETERS:PASS"] = "two"

        assert config["Parameters:pass"] == "two"
        assert len(config) == 1

    def test_get_section(self):
        config = Configuration(
            {
                "Parameters:pass": "a",
                "Parameters__user": "b",
                "ConnectionStrings:db": "c",
            }
        )
        assert config.get_section("parameters") == {"pass": "a", "user": "b"}

    def test_get_connection_string(self):
        config = Configuration({"ConnectionStrings:db": "Server=x"})
        assert config.get_connection_string("db") == "Server=x"
        assert config.get_connection_string("other") is None

    def test_add_environment_variables(self):
        config = Configuration().add_environment_variables(
            environ={
                "APPHOST__Parameters__pass": "from-env",
                "UNRELATED": "ignored",
            }
        )
        assert config["Parameters:pass"] == "from-env"
        assert "UNRELATED" not in config

    def test_repr_hides_values(self):
        config = Configuration({"Parameters:pass": "s3cret"})
        assert "s3cret" not in repr(config)

    def test_delete(self):
        config = Configuration({"a": "1"})
        del config["A"]
        assert len(config) == 0


class TestConfigurationParameterSource:
    @pytest.mark.asyncio
    async def test_reads_parameters_section(self):
        source = ConfigurationParameterSource(Configuration({"Parameters:pass": "v"}))

        assert await source.get("pass") == "v"
        assert await source.get("missing") is None


class TestSettings:
    """Tests for pydantic settings models."""

    def test_defaults(self):
        settings = AppHostSettings()

        assert settings.application_name == "apphost"
        assert settings.operation is DistributedApplicationOperation.RUN
        assert settings.default_host == "localhost"
        assert settings.dynamic_port_start == 5000

    def test_port_range_validated(self):
        with pytest.raises(ValidationError):
            AppHostSettings(dynamic_port_start=0)

    def test_parameter_store_token_is_secret(self):
        settings = ParameterStoreSettings(base_url="http://store", token="s3cr3t-value")

        assert "s3cr3t-value" not in repr(settings)
        assert settings.token.get_secret_value() == "s3cr3t-value"

    def test_parameter_store_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            ParameterStoreSettings(base_url="http://store", bogus=1)


class TestSettingsFromEnvironment:
    """Tests for get_settings() and get_parameter_store_settings()."""

    @pytest.fixture(autouse=True)
    def clear_cache(self):
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("APPHOST_APPLICATION_NAME", "shop")
        monkeypatch.setenv("APPHOST_OPERATION", "PUBLISH")
        monkeypatch.setenv("APPHOST_MANIFEST_PATH", "/tmp/manifest.json")

        settings = get_settings()

        assert settings.application_name == "shop"
        assert settings.operation is DistributedApplicationOperation.PUBLISH
        assert settings.manifest_path == "/tmp/manifest.json"

    def test_cached(self, monkeypatch):
        monkeypatch.setenv("APPHOST_APPLICATION_NAME", "first")
        first = get_settings()
        monkeypatch.setenv("APPHOST_APPLICATION_NAME", "second")

        assert get_settings() is first

    def test_no_parameter_store_without_url(self, monkeypatch):
        monkeypatch.delenv("APPHOST_PARAMETER_STORE_URL", raising=False)
        assert get_parameter_store_settings() is None

    def test_parameter_store_from_environment(self, monkeypatch):
        monkeypatch.setenv("APPHOST_PARAMETER_STORE_URL", "https://store.internal")
        monkeypatch.setenv("APPHOST_PARAMETER_STORE_TOKEN", "tok")

        settings = get_parameter_store_settings()

        assert settings.base_url == "https://store.internal"
        assert settings.token.get_secret_value() == "tok"

    def test_parameter_store_retry_tuning_from_environment(self, monkeypatch):
        monkeypatch.setenv("APPHOST_PARAMETER_STORE_URL", "https://store.internal")
        monkeypatch.setenv("APPHOST_PARAMETER_STORE_MAX_RETRIES", "5")
        monkeypatch.setenv("APPHOST_PARAMETER_STORE_RETRY_DELAY", "0.25")

        settings = get_parameter_store_settings()

        assert settings.max_retries == 5
        assert settings.retry_delay == 0.25
