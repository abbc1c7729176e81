"""Shared fixtures: temporary database, fake social platform, default config."""

import pytest

from fakes import FakeSocial, make_config
from src.services import DatabaseService


@pytest.fixture
async def db(tmp_path):
    """A fresh SQLite database per test."""
    service = DatabaseService(tmp_path / "bot.db")
    await service.initialize()
    yield service
    await service.close()


@pytest.fixture
def social():
    return FakeSocial()


@pytest.fixture
def config():
    return make_config()
