"""
Tests for manifest publishing.
"""

import asyncio
import json

import pytest

from apphost.manifest import ManifestPublisher, ManifestWriter
from apphost.model import CancellationTokenSource, ContainerResource, ExecutionContext, Resource
from apphost.resources import add_redis, add_seq


async def publish(builder):
    return await ManifestPublisher(builder.build().model).publish()


class TestManifestWriter:
    """Tests for the ordered JSON writer."""

    def test_nested(self):
        writer = ManifestWriter()
        writer.write_string("type", "container.v0")
        writer.start_array("args")
        writer.write_string_value("--verbose")
        writer.end_array()
        writer.start_object("bindings")
        writer.start_object("http")
        writer.write_number("targetPort", 80)
        writer.end_object()
        writer.end_object()

        assert writer.to_dict() == {
            "type": "container.v0",
            "args": ["--verbose"],
            "bindings": {"http": {"targetPort": 80}},
        }

    def test_key_order_preserved(self):
        writer = ManifestWriter()
        for key in ("z", "a", "m"):
            writer.write_string(key, key)
        assert list(writer.to_dict()) == ["z", "a", "m"]

    def test_unclosed(self):
        writer = ManifestWriter()
        writer.start_object("open")
        with pytest.raises(ValueError):
            writer.to_dict()

    def test_unbalanced_end(self):
        with pytest.raises(ValueError):
            ManifestWriter().end_object()

    def test_property_inside_array(self):
        writer = ManifestWriter()
        writer.start_array("items")
        with pytest.raises(ValueError):
            writer.write_string("key", "value")


class TestContainerManifest:
    """container.v0 entries."""

    @pytest.mark.asyncio
    async def test_full_container(self, publish_builder):
        (
            publish_builder.add_container("web", "nginx", "1.27")
            .with_http_endpoint(port=8000, target_port=80)
            .with_external_http_endpoints()
            .with_args("-g", "daemon off;")
            .with_environment("MODE", "production")
            .with_volume("web-cache", "/var/cache/nginx")
            .with_bind_mount("./html", "/usr/share/nginx/html", is_read_only=True)
        )

        manifest = await publish(publish_builder)

        assert manifest["resources"]["web"] == {
            "type": "container.v0",
            "image": "nginx:1.27",
            "args": ["-g", "daemon off;"],
            "volumes": [{"name": "web-cache", "target": "/var/cache/nginx", "readOnly": False}],
            "bindMounts": [
                {"source": "/work/apphost/html", "target": "/usr/share/nginx/html", "readOnly": True}
            ],
            "env": {"MODE": "production"},
            "bindings": {
                "http": {
                    "scheme": "http",
                    "protocol": "tcp",
                    "transport": "http",
                    "targetPort": 80,
                    "port": 8000,
                    "external": True,
                }
            },
        }

    @pytest.mark.asyncio
    async def test_key_order(self, publish_builder):
        add_seq(publish_builder, "seq")

        entry = (await publish(publish_builder))["resources"]["seq"]

        assert list(entry) == ["type", "connectionString", "image", "env", "bindings"]
        assert entry["connectionString"] == "http://{seq.bindings.http.host}:{seq.bindings.http.port}"
        assert entry["env"] == {"ACCEPT_EULA": "Y"}

    @pytest.mark.asyncio
    async def test_entrypoint(self, publish_builder):
        publish_builder.add_resource(ContainerResource("worker", entrypoint="/bin/run")).with_image("busybox")

        entry = (await publish(publish_builder))["resources"]["worker"]

        assert entry["entrypoint"] == "/bin/run"
        assert entry["image"] == "busybox:latest"


class TestProjectManifest:
    @pytest.mark.asyncio
    async def test_project_with_reference(self, publish_builder):
        cache = add_redis(publish_builder, "cache")
        publish_builder.add_project("api", "../api/api.csproj").with_http_endpoint().with_reference(cache)

        entry = (await publish(publish_builder))["resources"]["api"]

        assert entry == {
            "type": "project.v0",
            "path": "../api/api.csproj",
            "env": {"ConnectionStrings__cache": "{cache.connectionString}"},
            "bindings": {"http": {"scheme": "http", "protocol": "tcp", "transport": "http"}},
        }


class TestParameterManifest:
    @pytest.mark.asyncio
    async def test_parameter_with_value(self, publish_builder):
        publish_builder.add_parameter("region", "westus")

        entry = (await publish(publish_builder))["resources"]["region"]

        assert entry == {
            "type": "parameter.v0",
            "value": "{region.inputs.value}",
            "inputs": {
                "value": {"type": "string", "secret": False, "default": {"value": "westus"}}
            },
        }

    @pytest.mark.asyncio
    async def test_parameter_without_default(self, publish_builder):
        publish_builder.add_parameter("key", secret=True)

        entry = (await publish(publish_builder))["resources"]["key"]

        assert entry["inputs"] == {"value": {"type": "string", "secret": True}}

    @pytest.mark.asyncio
    async def test_publish_never_reads_values(self, publish_builder, configuration):
        """Secrets never leak into the manifest."""
        configuration["Parameters:key"] = "s3cret"
        key = publish_builder.add_parameter("key", secret=True)
        publish_builder.add_project("api", "../api").with_environment("KEY", key)

        manifest = await publish(publish_builder)

        assert "s3cret" not in json.dumps(manifest)
        assert manifest["resources"]["api"]["env"] == {"KEY": "{key.value}"}


class TestPublisher:
    """Tests for ManifestPublisher behaviour."""

    @pytest.mark.asyncio
    async def test_registration_order(self, publish_builder):
        publish_builder.add_container("b", "nginx")
        publish_builder.add_container("a", "nginx")

        manifest = await publish(publish_builder)

        assert list(manifest["resources"]) == ["b", "a"]

    @pytest.mark.asyncio
    async def test_excluded_resource(self, publish_builder):
        publish_builder.add_container("hidden", "nginx").exclude_from_manifest()
        assert await publish(publish_builder) == {"resources": {}}

    @pytest.mark.asyncio
    async def test_custom_callback(self, publish_builder):
        async def write_custom(context):
            context.writer.write_string("type", "custom.v0")
            context.writer.write_string("url", "https://example.test")

        publish_builder.add_container("ext", "nginx").with_manifest_publishing_callback(write_custom)

        entry = (await publish(publish_builder))["resources"]["ext"]
        assert entry == {"type": "custom.v0", "url": "https://example.test"}

    @pytest.mark.asyncio
    async def test_resource_without_shape_is_skipped(self, publish_builder):
        publish_builder.add_resource(Resource("opaque"))
        assert await publish(publish_builder) == {"resources": {}}

    @pytest.mark.asyncio
    async def test_run_mode_model_still_publishes_placeholders(self, run_builder, configuration):
        configuration["Parameters:key"] = "s3cret"
        key = run_builder.add_parameter("key", secret=True)
        run_builder.add_project("api", "../api").with_environment("KEY", key)

        manifest = await ManifestPublisher(run_builder.build().model, ExecutionContext.run()).publish()

        assert manifest["resources"]["api"]["env"] == {"KEY": "{key.value}"}

    @pytest.mark.asyncio
    async def test_cancelled(self, publish_builder):
        publish_builder.add_container("web", "nginx")
        source = CancellationTokenSource()
        source.cancel()

        with pytest.raises(asyncio.CancelledError):
            await ManifestPublisher(publish_builder.build().model).publish(source.token)

    @pytest.mark.asyncio
    async def test_write(self, publish_builder, tmp_path):
        add_redis(publish_builder, "cache")
        path = tmp_path / "out" / "manifest.json"

        manifest = await ManifestPublisher(publish_builder.build().model).write(str(path))

        text = path.read_text(encoding="utf-8")
        assert text.endswith("}\n")
        assert text.startswith('{\n  "resources": {')
        assert json.loads(text) == manifest
