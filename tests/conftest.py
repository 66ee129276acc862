"""Fixtures compartilhadas para todos os testes."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from streamscribe.config.settings import Settings, reset_settings
from tests.fakes import RECOGNIZER, FakeConnector

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def settings() -> Settings:
    """Settings com recognizer default e poll curto para testes rapidos."""
    return Settings(recognizer=RECOGNIZER, insecure=True, poll_timeout_ms=5)


@pytest.fixture
def connector(settings: Settings) -> FakeConnector:
    return FakeConnector(settings)


@pytest.fixture(autouse=True)
def _isolated_settings() -> Iterator[None]:
    """Settings globais nunca vazam entre testes."""
    reset_settings()
    yield
    reset_settings()
