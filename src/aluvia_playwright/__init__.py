"""Playwright navigation that survives network failures by migrating pages onto fresh proxies."""

from .browser.registry import InstrumentationRegistry, ResilientPlaywright, resilient_playwright
from .core.config import MigrationSettings, load_settings
from .core.orchestrator import MigrationOrchestrator

__version__ = "0.1.0"

__all__ = [
    "InstrumentationRegistry",
    "MigrationOrchestrator",
    "MigrationSettings",
    "ResilientPlaywright",
    "load_settings",
    "resilient_playwright",
]
