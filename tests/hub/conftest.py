"""Shared fixtures for tests/hub/ test suite.

``persona_hub`` is a real PersonaHub over a temp SQLite file, started and
shut down around each test. Modules are registered by the tests themselves.
"""

import pytest_asyncio

from persona.engine.config import PersonaConfig, StoreConfig
from persona.hub.core import PersonaHub


@pytest_asyncio.fixture
async def persona_hub(tmp_path):
    hub = PersonaHub(PersonaConfig(store=StoreConfig(db_path=tmp_path / "persona.db")))
    await hub.initialize()
    yield hub
    await hub.shutdown()
