"""Pytest configuration and shared fixtures."""

import asyncio
import os

import pytest

from aluvia_playwright.browser.registry import InstrumentationRegistry
from aluvia_playwright.core.config import MigrationSettings
from aluvia_playwright.core.orchestrator import MigrationOrchestrator
from aluvia_playwright.core.policies import BackoffPolicy
from tests.fakes import FakeBrowserType, FakeProxyProvider


class RecordingBackoff(BackoffPolicy):
    """Computes real delays but only yields to the loop."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.waits: list[tuple[int, float]] = []

    async def wait(self, attempt: int) -> float:
        delay = self.delay(attempt)
        self.waits.append((attempt, delay))
        await asyncio.sleep(0)
        return delay


@pytest.fixture(autouse=True)
def mock_env_vars(monkeypatch):
    """Isolate tests from ALUVIA_* variables in the developer's shell."""
    for name in list(os.environ):
        if name.startswith("ALUVIA_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ALUVIA_API_KEY", "test_key")
    # keep a developer's .env out of the settings
    monkeypatch.setitem(MigrationSettings.model_config, "env_file", None)


@pytest.fixture
def settings():
    return MigrationSettings(
        api_key="test_key",
        max_retries=1,
        backoff_ms=50,
        jitter_ms=0,
        readiness_timeout_ms=1000,
    )


@pytest.fixture
def provider():
    return FakeProxyProvider()


@pytest.fixture
def backoff():
    return RecordingBackoff(base_delay_ms=50, jitter_ms=0)


@pytest.fixture
def orchestrator(settings, provider, backoff):
    return MigrationOrchestrator(settings, provider, backoff=backoff)


@pytest.fixture
def registry(orchestrator):
    return InstrumentationRegistry(orchestrator)


@pytest.fixture
def browser_type():
    return FakeBrowserType()


@pytest.fixture
def chromium(registry, browser_type):
    """Instrumented fake chromium."""
    return registry.instrument_browser_type(browser_type)
