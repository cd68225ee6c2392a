"""Shared fixtures for Conductor tests."""
import json
import logging

import pytest

from conductor_mcp.formatters import ToolResult
from conductor_mcp.server import ConductorMCPServer, ServerConfig


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Run the test from an empty directory with no Conductor overrides set."""
    monkeypatch.chdir(tmp_path)
    for var in ("CONDUCTOR_ALLOWED_PATHS", "CONDUCTOR_PROVIDER"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("CONDUCTOR_CONFIG", str(tmp_path / "missing-config.yaml"))
    return tmp_path


@pytest.fixture
def server(workdir):
    return ConductorMCPServer(ServerConfig(version="test"))


def payload(result: ToolResult) -> dict:
    """Decode the JSON body of a successful tool result."""
    assert not result.is_error, result.text
    return json.loads(result.text)


@pytest.fixture
def decode():
    return payload


@pytest.fixture(autouse=True)
def reset_conductor_logger():
    """Drop handlers bound to a previous test's captured stderr."""
    yield
    logger = logging.getLogger("conductor")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
