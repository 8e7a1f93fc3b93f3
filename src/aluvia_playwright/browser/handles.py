"""Handles returned to callers in place of raw Playwright objects.

``ResilientPage`` is the handle that migrates: its ``goto`` runs through the
orchestrator and may rebind it to a page in a brand new browser. The other
handles stay on their original objects and exist to hand out instrumented
children and to remember how those children were built.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from ..core.types import NavigationRequest
from .forwarding import EventMirror, ForwardingHandle
from .session import ActiveSession, SessionBlueprint, close_session

if TYPE_CHECKING:
    from .registry import InstrumentationRegistry

logger = logging.getLogger(__name__)


class ResilientPage(ForwardingHandle):
    """Page handle whose backing session can be replaced by a migration."""

    def __init__(
        self,
        session: ActiveSession,
        blueprint: SessionBlueprint,
        registry: "InstrumentationRegistry",
    ):
        super().__init__(session.page)
        self.blueprint = blueprint
        self.migration_lock = asyncio.Lock()
        self.generation = 0
        self._session = session
        self._registry = registry
        self._closed = False
        self._owners: list[_PageOwner] = []
        self._context_handle: ResilientContext | None = None
        self._mirror = EventMirror(self, registry.capabilities.page.events)
        self._mirror.bind(session.page)

    @property
    def session(self) -> ActiveSession:
        return self._session

    @property
    def migrations(self) -> int:
        """Number of times this handle has been migrated."""
        return self.generation

    def rebind(self, new_target: Any) -> Any:
        previous = super().rebind(new_target)
        self._mirror.bind(new_target)
        return previous

    def bind_session(self, session: ActiveSession) -> ActiveSession:
        """Swap the backing session in one step and return the superseded one."""
        previous = self._session
        self._session = session
        self.rebind(session.page)
        self.generation += 1
        self._registry.rekey(previous.page, self)
        return previous

    @property
    def context(self) -> "ResilientContext":
        """Instrumented context of the bound session.

        After a migration this is the replacement's context, so pages opened
        from it migrate too. They live and die with the replacement browser.
        """
        raw_context = self._session.context
        if self._context_handle is None or self._context_handle.target is not raw_context:
            self._context_handle = self._registry.instrument_context(raw_context, self.blueprint)
        return self._context_handle

    async def goto(self, url: str, **options: Any) -> Any:
        """Navigate, migrating to a fresh proxy on retryable failures."""
        request = NavigationRequest(url=url, **options)
        return await self._registry.orchestrator.navigate(self, request)

    async def close(self) -> None:
        """Close the bound page and whatever its session owns.

        Waits for an in-flight migration; one that finishes building after
        this call started discards its replacement instead of binding it.
        """
        if self._closed:
            return
        self._closed = True
        async with self.migration_lock:
            # relays stay attached so listeners see the page's own "close"
            await close_session(self._session)
            self._mirror.unbind()
        for owner in self._owners:
            owner._pages.discard(self)
        self._owners.clear()
        self._registry.forget(self)

    @property
    def closed(self) -> bool:
        return self._closed

    def on(self, event: str, listener: Any) -> None:
        self._mirror.on(event, listener)

    def once(self, event: str, listener: Any) -> None:
        self._mirror.once(event, listener)

    def remove_listener(self, event: str, listener: Any) -> None:
        self._mirror.remove_listener(event, listener)

    def emit(self, event: str, *args: Any) -> bool:
        return self._mirror.emit(event, *args)

    @property
    def relayed_events(self) -> frozenset[str]:
        return self._mirror.relayed_events


class _PageOwner(ForwardingHandle):
    """Tracks page handles created through this handle."""

    def __init__(self, target: Any, registry: "InstrumentationRegistry"):
        super().__init__(target)
        self._registry = registry
        self._pages: set[ResilientPage] = set()

    @property
    def page_handles(self) -> list[ResilientPage]:
        return list(self._pages)

    def _adopt(self, page: ResilientPage) -> ResilientPage:
        self._pages.add(page)
        page._owners.append(self)
        return page

    async def _close_migrated_pages(self) -> None:
        # Migrated pages live in browsers this handle never launched.
        for page in list(self._pages):
            if page.session.owns_browser:
                await page.close()


class ResilientContext(_PageOwner):
    """Browser context handle that instruments the pages it creates."""

    def __init__(
        self,
        target: Any,
        blueprint: SessionBlueprint,
        registry: "InstrumentationRegistry",
        browser: "ResilientBrowser | None" = None,
    ):
        super().__init__(target, registry)
        self.blueprint = blueprint
        self._browser = browser

    async def new_page(self) -> ResilientPage:
        raw_page = await self.target.new_page()
        session = ActiveSession(
            page=raw_page,
            context=self.target,
            browser=self._browser.target if self._browser else None,
        )
        page = self._registry.instrument_page(session, self.blueprint)
        if self._browser is not None:
            self._browser._adopt(page)
        return self._adopt(page)

    async def close(self, **options: Any) -> None:
        await self._close_migrated_pages()
        await self.target.close(**options)
        self._pages.clear()


class ResilientBrowser(_PageOwner):
    """Browser handle that instruments the contexts and pages it creates."""

    def __init__(
        self,
        target: Any,
        blueprint: SessionBlueprint,
        registry: "InstrumentationRegistry",
    ):
        super().__init__(target, registry)
        self.blueprint = blueprint

    async def new_context(self, **options: Any) -> ResilientContext:
        raw_context = await self.target.new_context(**options)
        return self._registry.instrument_context(
            raw_context, self.blueprint.with_context_options(options), browser=self
        )

    async def new_page(self, **options: Any) -> ResilientPage:
        raw_page = await self.target.new_page(**options)
        # Browser.new_page() creates a context that belongs to the page alone.
        session = ActiveSession(
            page=raw_page,
            context=raw_page.context,
            browser=self.target,
            owns_context=True,
        )
        page = self._registry.instrument_page(session, self.blueprint.with_context_options(options))
        return self._adopt(page)

    async def close(self, **options: Any) -> None:
        await self._close_migrated_pages()
        await self.target.close(**options)
        self._pages.clear()


class ResilientBrowserType(ForwardingHandle):
    """Browser type handle whose launches produce instrumented browsers."""

    def __init__(self, target: Any, registry: "InstrumentationRegistry"):
        super().__init__(target)
        self._registry = registry

    async def launch(self, **options: Any) -> ResilientBrowser:
        raw_browser = await self.target.launch(**options)
        blueprint = SessionBlueprint(browser_type=self.target, launch_options=dict(options))
        return self._registry.instrument_browser(raw_browser, blueprint)

    async def launch_persistent_context(self, user_data_dir: Any, **options: Any) -> ResilientContext:
        raw_context = await self.target.launch_persistent_context(user_data_dir, **options)
        blueprint = SessionBlueprint.from_persistent(self.target, options)
        return self._registry.instrument_context(raw_context, blueprint)
