"""
Pytest configuration and fixtures for apphost tests.
"""

import sys
from pathlib import Path

import pytest

# Add the repository root to path for imports
# This allows `from apphost.model import ...` to work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from apphost.config import AppHostSettings, Configuration  # noqa: E402
from apphost.hosting import DistributedApplicationBuilder  # noqa: E402
from apphost.model import ExecutionContext  # noqa: E402


@pytest.fixture
def settings():
    """Deterministic host settings."""
    return AppHostSettings(
        application_name="testhost",
        app_host_directory="/work/apphost",
        default_host="localhost",
        container_host="host.docker.internal",
        dynamic_port_start=5000,
    )


@pytest.fixture
def configuration():
    """Empty configuration, isolated from the process environment."""
    return Configuration()


@pytest.fixture
def run_builder(settings, configuration):
    """Builder in run mode."""
    return DistributedApplicationBuilder(
        execution_context=ExecutionContext.run(),
        configuration=configuration,
        settings=settings,
    )


@pytest.fixture
def publish_builder(settings, configuration):
    """Builder in publish mode."""
    return DistributedApplicationBuilder(
        execution_context=ExecutionContext.publish(),
        configuration=configuration,
        settings=settings,
    )
