"""Identity-stable forwarding over a swappable target.

A ``ForwardingHandle`` keeps one external identity while the object behind
it changes. Members are forwarded from an explicit capability table per
Playwright release line rather than by reflecting over the driver's
classes, so a driver upgrade that adds or drops members shows up as a
table change instead of silently altering what is forwarded.

Events are mirrored: the handle owns its listeners, and a relay on the
current target re-emits into them through the emitter's original ``emit``.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as package_version
from typing import Any, Protocol, runtime_checkable

from pyee.asyncio import AsyncIOEventEmitter

logger = logging.getLogger(__name__)

# Never forwarded, whatever a table says.
ALWAYS_RESERVED = frozenset({"emit", "target", "rebind"})


@dataclass(frozen=True)
class Capabilities:
    """Members of one driver type that a handle forwards."""

    methods: frozenset[str]
    properties: frozenset[str] = frozenset()
    events: frozenset[str] = frozenset()
    reserved: frozenset[str] = frozenset()

    def extend(
        self,
        methods: frozenset[str] = frozenset(),
        properties: frozenset[str] = frozenset(),
        events: frozenset[str] = frozenset(),
    ) -> "Capabilities":
        return Capabilities(
            methods=self.methods | methods,
            properties=self.properties | properties,
            events=self.events | events,
            reserved=self.reserved,
        )


@dataclass(frozen=True)
class DriverCapabilities:
    """Capability tables for one Playwright release line."""

    version: tuple[int, int]
    page: Capabilities
    context: Capabilities
    browser: Capabilities
    browser_type: Capabilities = field(
        default_factory=lambda: Capabilities(
            methods=frozenset({"connect", "connect_over_cdp"}),
            properties=frozenset({"name", "executable_path"}),
        )
    )


PAGE_EVENTS = frozenset(
    {
        "close",
        "console",
        "crash",
        "dialog",
        "domcontentloaded",
        "download",
        "filechooser",
        "frameattached",
        "framedetached",
        "framenavigated",
        "load",
        "pageerror",
        "popup",
        "request",
        "requestfailed",
        "requestfinished",
        "response",
        "websocket",
        "worker",
    }
)

_PAGE_1_40 = Capabilities(
    methods=frozenset(
        {
            "add_init_script",
            "add_script_tag",
            "add_style_tag",
            "bring_to_front",
            "check",
            "click",
            "content",
            "dblclick",
            "dispatch_event",
            "drag_and_drop",
            "emulate_media",
            "eval_on_selector",
            "eval_on_selector_all",
            "evaluate",
            "evaluate_handle",
            "expect_console_message",
            "expect_download",
            "expect_event",
            "expect_file_chooser",
            "expect_navigation",
            "expect_popup",
            "expect_request",
            "expect_request_finished",
            "expect_response",
            "expect_websocket",
            "expect_worker",
            "expose_binding",
            "expose_function",
            "fill",
            "focus",
            "frame",
            "frame_locator",
            "get_attribute",
            "get_by_alt_text",
            "get_by_label",
            "get_by_placeholder",
            "get_by_role",
            "get_by_test_id",
            "get_by_text",
            "get_by_title",
            "go_back",
            "go_forward",
            "hover",
            "inner_html",
            "inner_text",
            "input_value",
            "is_checked",
            "is_closed",
            "is_disabled",
            "is_editable",
            "is_enabled",
            "is_hidden",
            "is_visible",
            "locator",
            "opener",
            "pause",
            "pdf",
            "press",
            "query_selector",
            "query_selector_all",
            "reload",
            "route",
            "route_from_har",
            "screenshot",
            "select_option",
            "set_checked",
            "set_content",
            "set_default_navigation_timeout",
            "set_default_timeout",
            "set_extra_http_headers",
            "set_input_files",
            "set_viewport_size",
            "tap",
            "text_content",
            "title",
            "type",
            "uncheck",
            "unroute",
            "wait_for_event",
            "wait_for_function",
            "wait_for_load_state",
            "wait_for_selector",
            "wait_for_timeout",
            "wait_for_url",
        }
    ),
    properties=frozenset(
        {
            "context",
            "frames",
            "keyboard",
            "main_frame",
            "mouse",
            "request",
            "touchscreen",
            "url",
            "video",
            "viewport_size",
            "workers",
        }
    ),
    events=PAGE_EVENTS,
    reserved=frozenset({"goto", "close", "on", "once", "remove_listener"}),
)

_CONTEXT_1_40 = Capabilities(
    methods=frozenset(
        {
            "add_cookies",
            "add_init_script",
            "clear_cookies",
            "clear_permissions",
            "close",
            "cookies",
            "expect_console_message",
            "expect_event",
            "expect_page",
            "expose_binding",
            "expose_function",
            "grant_permissions",
            "new_cdp_session",
            "on",
            "once",
            "remove_listener",
            "route",
            "route_from_har",
            "set_default_navigation_timeout",
            "set_default_timeout",
            "set_extra_http_headers",
            "set_geolocation",
            "set_offline",
            "storage_state",
            "unroute",
            "wait_for_event",
        }
    ),
    properties=frozenset(
        {"background_pages", "browser", "pages", "request", "service_workers", "tracing"}
    ),
    reserved=frozenset({"new_page"}),
)

_BROWSER_1_40 = Capabilities(
    methods=frozenset(
        {
            "close",
            "is_connected",
            "new_browser_cdp_session",
            "on",
            "once",
            "remove_listener",
            "start_tracing",
            "stop_tracing",
        }
    ),
    properties=frozenset({"browser_type", "contexts", "version"}),
    reserved=frozenset({"new_context", "new_page"}),
)

CAPABILITY_TABLES: dict[tuple[int, int], DriverCapabilities] = {
    (1, 40): DriverCapabilities(
        version=(1, 40),
        page=_PAGE_1_40,
        context=_CONTEXT_1_40,
        browser=_BROWSER_1_40,
    ),
    (1, 45): DriverCapabilities(
        version=(1, 45),
        page=_PAGE_1_40.extend(
            methods=frozenset({"add_locator_handler", "remove_locator_handler", "unroute_all"}),
            properties=frozenset({"clock"}),
        ),
        context=_CONTEXT_1_40.extend(
            methods=frozenset({"unroute_all"}),
            properties=frozenset({"clock"}),
        ),
        browser=_BROWSER_1_40,
    ),
}


def _parse_version(text: str) -> tuple[int, int]:
    parts = text.split(".")
    try:
        return int(parts[0]), int(parts[1]) if len(parts) > 1 else 0
    except ValueError:
        raise ValueError(f"Unrecognised driver version: {text!r}") from None


def capabilities_for(version: str | None = None) -> DriverCapabilities:
    """Pick the newest capability table not newer than the driver.

    Args:
        version: Driver version string; defaults to the installed playwright

    Returns:
        The matching table (the oldest one for older drivers)
    """
    if version is None:
        try:
            version = package_version("playwright")
        except PackageNotFoundError:
            version = "{}.{}".format(*max(CAPABILITY_TABLES))

    wanted = _parse_version(version)
    eligible = [v for v in CAPABILITY_TABLES if v <= wanted]
    if not eligible:
        oldest = min(CAPABILITY_TABLES)
        logger.warning(
            "playwright %s predates capability table %d.%d; using it anyway", version, *oldest
        )
        return CAPABILITY_TABLES[oldest]
    return CAPABILITY_TABLES[max(eligible)]


@runtime_checkable
class SessionHandle(Protocol):
    """A stable reference whose backing object may be replaced."""

    @property
    def target(self) -> Any: ...

    def rebind(self, new_target: Any) -> Any: ...


class ForwardedMethod:
    """Class attribute that calls ``name`` on the handle's current target."""

    def __init__(self, name: str):
        self.name = name

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        name = self.name

        def forward(*args: Any, **kwargs: Any) -> Any:
            return getattr(instance.target, name)(*args, **kwargs)

        forward.__name__ = name
        return forward


class ForwardedProperty:
    """Class attribute that reads and writes ``name`` on the current target."""

    def __init__(self, name: str):
        self.name = name

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return getattr(instance.target, self.name)

    def __set__(self, instance: Any, value: Any) -> None:
        setattr(instance.target, self.name, value)


def _is_reserved(name: str, capabilities: Capabilities) -> bool:
    return name.startswith("_") or name in ALWAYS_RESERVED or name in capabilities.reserved


def _defines(cls: type, name: str) -> bool:
    return any(name in vars(klass) for klass in cls.__mro__ if klass is not object)


def install_forwarding(cls: type, capabilities: Capabilities) -> list[str]:
    """Add forwarding members from ``capabilities`` to a handle class.

    Reserved names and names the class (or a base) already defines are
    skipped, so installing the same table twice adds nothing.

    Returns:
        Names added by this call
    """
    installed: list[str] = []

    for name in sorted(capabilities.methods):
        if _is_reserved(name, capabilities) or _defines(cls, name):
            continue
        setattr(cls, name, ForwardedMethod(name))
        installed.append(name)

    for name in sorted(capabilities.properties):
        if _is_reserved(name, capabilities) or _defines(cls, name):
            continue
        setattr(cls, name, ForwardedProperty(name))
        installed.append(name)

    if installed:
        logger.debug("Installed %d forwarding members on %s", len(installed), cls.__name__)
    return installed


class ForwardingHandle:
    """Stable identity over a replaceable target."""

    def __init__(self, target: Any):
        self._target = target

    @property
    def target(self) -> Any:
        return self._target

    def rebind(self, new_target: Any) -> Any:
        """Point the handle at ``new_target`` and return the previous one."""
        previous = self._target
        self._target = new_target
        return previous

    def __repr__(self) -> str:
        return f"<{type(self).__name__} target={self._target!r}>"


class EventMirror:
    """The handle's own listener channel plus relays from its target.

    A relay is subscribed on the current target only for catalogued events
    the handle has listeners for. ``bind`` detaches every relay from the
    previous target before attaching to the new one, so a listener sees
    each target emission once.
    """

    def __init__(self, owner: Any, events: frozenset[str]):
        self._owner = owner
        self._events = events
        self._emitter = AsyncIOEventEmitter()
        self._emit = self._emitter.emit
        self._source: Any = None
        self._relays: dict[str, Callable[..., None]] = {}

    @property
    def relayed_events(self) -> frozenset[str]:
        return frozenset(self._relays)

    def on(self, event: str, listener: Callable[..., Any]) -> None:
        self._emitter.on(event, listener)
        self._ensure_relay(event)

    def once(self, event: str, listener: Callable[..., Any]) -> None:
        self._emitter.once(event, listener)
        self._ensure_relay(event)

    def remove_listener(self, event: str, listener: Callable[..., Any]) -> None:
        self._emitter.remove_listener(event, listener)
        if not self._emitter.listeners(event):
            self._detach(event)

    def listeners(self, event: str) -> list[Callable[..., Any]]:
        return self._emitter.listeners(event)

    def emit(self, event: str, *args: Any) -> bool:
        return self._emit(event, *args)

    def bind(self, source: Any) -> None:
        """Move every relay from the current source to ``source``."""
        events = list(self._relays)
        for event in events:
            self._detach(event)
        self._source = source
        for event in events:
            self._ensure_relay(event)

    def unbind(self) -> None:
        for event in list(self._relays):
            self._detach(event)
        self._source = None

    def _ensure_relay(self, event: str) -> None:
        if event not in self._events or event in self._relays or self._source is None:
            return
        relay = self._make_relay(event, self._source)
        self._source.on(event, relay)
        self._relays[event] = relay

    def _detach(self, event: str) -> None:
        relay = self._relays.pop(event, None)
        if relay is None or self._source is None:
            return
        try:
            self._source.remove_listener(event, relay)
        except Exception as e:
            logger.debug(f"Relay for '{event}' already gone from superseded target: {e}")

    def _make_relay(self, event: str, source: Any) -> Callable[..., None]:
        def relay(*args: Any) -> None:
            if source is not self._source:
                return
            mapped = tuple(self._owner if arg is source else arg for arg in args)
            self._emit(event, *mapped)
            if not self._emitter.listeners(event):
                self._detach(event)

        return relay
