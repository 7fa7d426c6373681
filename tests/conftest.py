# tests/conftest.py
"""Pytest configuration and shared fixtures."""

import pytest
import pytest_asyncio
from pathlib import Path

from tests.mocks import (
    MockHttpClient,
    MockStepExecutor,
    RecordingExtension,
    make_scenario,
)

from scenario_player.core import ClientPool


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without network access")
    config.addinivalue_line("markers", "integration: tests against a local HTTP server")
    config.addinivalue_line("markers", "slow: long running tests")


@pytest.fixture
def mock_executor():
    """Provide a scripted step executor."""
    return MockStepExecutor()


@pytest.fixture
def recording_extension():
    """Provide an extension that records hook calls."""
    return RecordingExtension()


@pytest_asyncio.fixture
async def client_pool():
    """Provide an initialized pool of two mock clients."""
    pool = ClientPool(2, client_factory=MockHttpClient)
    await pool.initialize()
    yield pool
    await pool.close_all()


@pytest.fixture
def scenarios():
    """Five two-step scenarios."""
    return [make_scenario(f"scenario{i}") for i in range(5)]


@pytest.fixture
def config_file(tmp_path):
    """Create a temporary configuration file."""
    import yaml

    config_path = tmp_path / "test_config.yaml"

    config_data = {
        "player": {
            "concurrency": 4,
            "endpoint": "http://test-host:8080",
        },
        "http": {
            "timeout": 5,
            "verify_ssl": False,
        },
        "monitoring": {
            "extensions": ["timing"],
        },
        "output": {
            "values_path": str(tmp_path / "values.json"),
            "log_level": "DEBUG",
        }
    }

    with open(config_path, 'w') as f:
        yaml.dump(config_data, f)

    return config_path


@pytest.fixture
def scenario_file(tmp_path) -> Path:
    """Create a temporary scenario file."""
    import yaml

    scenario_path = tmp_path / "scenarios.yaml"

    scenario_data = {
        "scenarios": [
            {
                "name": "login",
                "endpoint": "http://localhost:8080",
                "variables": {"user": "alice"},
                "steps": [
                    {
                        "name": "create session",
                        "request": {
                            "method": "POST",
                            "url": "/login",
                            "json": {"user": "{{ user }}"},
                        },
                        "expect_status": 200,
                        "extract": {"token": "json:token"},
                    },
                    {
                        "url": "/me",
                        "headers": {"Authorization": "Bearer {{ token }}"},
                        "assert": ["json:name == \"alice\""],
                    },
                ],
            },
            {
                "name": "health",
                "steps": [{"url": "http://localhost:8080/health"}],
            },
        ]
    }

    with open(scenario_path, 'w') as f:
        yaml.dump(scenario_data, f)

    return scenario_path
