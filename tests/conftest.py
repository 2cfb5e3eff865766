from __future__ import annotations

import pytest
from click.testing import CliRunner

from src.datatypes import AppConfig
from tests.helpers.fake_source import FakeVideoSource


@pytest.fixture
def runner() -> CliRunner:
    """Provide a Click runner configured for CLI smoke tests."""

    return CliRunner()


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig()


@pytest.fixture
def fake_source() -> FakeVideoSource:
    """Ten-second source whose raster changes once per second."""

    return FakeVideoSource(duration=10.0)
