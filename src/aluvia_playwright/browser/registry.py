"""Instrumentation of Playwright's creation surface.

Everything a caller obtains through an instrumented browser type (browsers,
contexts, pages) comes back wrapped in a handle. A raw object maps to one
handle for as long as that handle is alive; the map holds handles weakly.
"""

import logging
import weakref
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from playwright.async_api import async_playwright

from ..core.config import MigrationSettings, load_settings
from ..core.orchestrator import MigrationOrchestrator
from .forwarding import DriverCapabilities, ForwardingHandle, capabilities_for, install_forwarding
from .handles import (
    ResilientBrowser,
    ResilientBrowserType,
    ResilientContext,
    ResilientPage,
)
from .proxy import ProxyProvider, create_proxy_provider
from .session import ActiveSession, SessionBlueprint

logger = logging.getLogger(__name__)

H = TypeVar("H", bound=ForwardingHandle)


def prepare_handle_types(capabilities: DriverCapabilities) -> dict[str, list[str]]:
    """Install forwarding members on every handle class.

    Returns:
        Names added per class; empty lists when already prepared
    """
    return {
        ResilientPage.__name__: install_forwarding(ResilientPage, capabilities.page),
        ResilientContext.__name__: install_forwarding(ResilientContext, capabilities.context),
        ResilientBrowser.__name__: install_forwarding(ResilientBrowser, capabilities.browser),
        ResilientBrowserType.__name__: install_forwarding(
            ResilientBrowserType, capabilities.browser_type
        ),
    }


class InstrumentationRegistry:
    """Wraps raw Playwright objects in handles, once each."""

    def __init__(
        self,
        orchestrator: MigrationOrchestrator,
        capabilities: DriverCapabilities | None = None,
    ):
        self.orchestrator = orchestrator
        self.capabilities = capabilities or capabilities_for()
        # keyed by id(raw); a handle keeps its raw object alive, never the reverse
        self._handles: weakref.WeakValueDictionary[int, ForwardingHandle] = (
            weakref.WeakValueDictionary()
        )
        installed = prepare_handle_types(self.capabilities)
        logger.debug(
            "Registry ready for playwright %d.%d (%d members installed)",
            *self.capabilities.version,
            sum(len(names) for names in installed.values()),
        )

    def is_instrumented(self, obj: Any) -> bool:
        return isinstance(obj, ForwardingHandle) or self.handle_for(obj) is not None

    def handle_for(self, raw: Any) -> ForwardingHandle | None:
        handle = self._handles.get(id(raw))
        if handle is None or handle.target is not raw:
            return None
        return handle

    def rekey(self, previous_raw: Any, handle: ForwardingHandle) -> None:
        """Index ``handle`` under its new target after a rebind."""
        if self._handles.get(id(previous_raw)) is handle:
            del self._handles[id(previous_raw)]
        self._handles[id(handle.target)] = handle

    def forget(self, handle: ForwardingHandle) -> None:
        if self._handles.get(id(handle.target)) is handle:
            del self._handles[id(handle.target)]

    @property
    def instrumented_count(self) -> int:
        return len(self._handles)

    def _wrap(self, raw: Any, handle_type: type[H], factory: Callable[[], H]) -> H:
        if isinstance(raw, handle_type):
            return raw
        existing = self.handle_for(raw)
        if existing is not None:
            return existing  # type: ignore[return-value]
        handle = factory()
        self._handles[id(raw)] = handle
        return handle

    def instrument_browser_type(self, browser_type: Any) -> ResilientBrowserType:
        return self._wrap(
            browser_type,
            ResilientBrowserType,
            lambda: ResilientBrowserType(browser_type, self),
        )

    def instrument_browser(self, browser: Any, blueprint: SessionBlueprint) -> ResilientBrowser:
        return self._wrap(
            browser,
            ResilientBrowser,
            lambda: ResilientBrowser(browser, blueprint, self),
        )

    def instrument_context(
        self,
        context: Any,
        blueprint: SessionBlueprint,
        browser: ResilientBrowser | None = None,
    ) -> ResilientContext:
        return self._wrap(
            context,
            ResilientContext,
            lambda: ResilientContext(context, blueprint, self, browser=browser),
        )

    def instrument_page(self, session: ActiveSession, blueprint: SessionBlueprint) -> ResilientPage:
        return self._wrap(
            session.page,
            ResilientPage,
            lambda: ResilientPage(session, blueprint, self),
        )

    def instrument_playwright(self, playwright: Any) -> "ResilientPlaywright":
        return ResilientPlaywright(playwright, self)


class ResilientPlaywright:
    """Playwright entry object with instrumented browser types."""

    def __init__(self, playwright: Any, registry: InstrumentationRegistry):
        self._playwright = playwright
        self.registry = registry
        self.chromium = registry.instrument_browser_type(playwright.chromium)
        self.firefox = registry.instrument_browser_type(playwright.firefox)
        self.webkit = registry.instrument_browser_type(playwright.webkit)

    @property
    def devices(self) -> Any:
        return self._playwright.devices

    @property
    def orchestrator(self) -> MigrationOrchestrator:
        return self.registry.orchestrator


@asynccontextmanager
async def resilient_playwright(
    settings: MigrationSettings | None = None,
    provider: ProxyProvider | None = None,
) -> AsyncIterator[ResilientPlaywright]:
    """Start Playwright with migration-enabled browser types.

    Superseded sessions still closing in the background are awaited before
    Playwright stops.
    """
    settings = settings or load_settings()
    provider = provider or create_proxy_provider(settings)
    orchestrator = MigrationOrchestrator(settings, provider)

    async with async_playwright() as playwright:
        registry = InstrumentationRegistry(orchestrator)
        try:
            yield registry.instrument_playwright(playwright)
        finally:
            await orchestrator.aclose()
