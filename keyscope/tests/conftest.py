"""
Shared fixtures: an in-memory stack with a controllable clock.
"""

from __future__ import annotations

import logging

import pytest

from keyscope.core.config import KeyscopeConfig
from keyscope.service import KeyscopeService
from keyscope.storage.backends import InMemoryConnector, InMemoryKeyspace

KEYSPACE = "test"
DESCRIPTOR = f"memory://{KEYSPACE}"


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def connector(clock: FakeClock) -> InMemoryConnector:
    return InMemoryConnector(clock)


@pytest.fixture
def keyspace(connector: InMemoryConnector) -> InMemoryKeyspace:
    return connector.keyspace(KEYSPACE)


@pytest.fixture
def config() -> KeyscopeConfig:
    return KeyscopeConfig()


@pytest.fixture
async def service(connector: InMemoryConnector, config: KeyscopeConfig):
    service = KeyscopeService.in_memory(connector, config)
    yield service
    await service.close_all()


@pytest.fixture
async def session_id(service: KeyscopeService) -> str:
    return (await service.open(DESCRIPTOR)).unwrap()


@pytest.fixture
def restore_root_logger():
    """Undo setup_logging() changes to the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
