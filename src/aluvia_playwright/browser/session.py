"""Active session construction and teardown."""

import logging
from dataclasses import dataclass, field
from typing import Any

from ..core.types import ProxyCredential, SessionSnapshot
from .errors import MigrationConstructionError
from .snapshot import restore_snapshot

logger = logging.getLogger(__name__)

# Options accepted by BrowserType.launch(); everything else that
# launch_persistent_context() takes belongs to the context.
LAUNCH_OPTION_KEYS = frozenset(
    {
        "executable_path",
        "channel",
        "args",
        "ignore_default_args",
        "handle_sigint",
        "handle_sigterm",
        "handle_sighup",
        "timeout",
        "env",
        "headless",
        "devtools",
        "proxy",
        "downloads_path",
        "slow_mo",
        "traces_dir",
        "chromium_sandbox",
        "firefox_user_prefs",
    }
)


@dataclass
class SessionBlueprint:
    """How to build another session equivalent to the caller's."""

    browser_type: Any
    launch_options: dict[str, Any] = field(default_factory=dict)
    context_options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_persistent(cls, browser_type: Any, options: dict[str, Any]) -> "SessionBlueprint":
        """Split ``launch_persistent_context`` options into launch and context parts."""
        launch = {k: v for k, v in options.items() if k in LAUNCH_OPTION_KEYS}
        context = {k: v for k, v in options.items() if k not in LAUNCH_OPTION_KEYS}
        return cls(browser_type=browser_type, launch_options=launch, context_options=context)

    def with_context_options(self, options: dict[str, Any]) -> "SessionBlueprint":
        return SessionBlueprint(
            browser_type=self.browser_type,
            launch_options=dict(self.launch_options),
            context_options=dict(options),
        )


@dataclass
class ActiveSession:
    """The browser, context and page currently backing a page handle.

    ``owns_context`` / ``owns_browser`` mark the parts that only this
    session uses and that teardown may therefore close.
    """

    page: Any
    context: Any
    browser: Any | None = None
    owns_context: bool = False
    owns_browser: bool = False


async def build_session(
    blueprint: SessionBlueprint,
    credential: ProxyCredential,
    snapshot: SessionSnapshot,
) -> ActiveSession:
    """Launch a replacement session behind ``credential``.

    Raises:
        MigrationConstructionError: If launch, context or page creation fails.
            Anything already launched is closed first.
    """
    launch_options = dict(blueprint.launch_options)
    launch_options["proxy"] = credential.to_playwright()

    try:
        browser = await blueprint.browser_type.launch(**launch_options)
    except Exception as e:
        raise MigrationConstructionError("Failed to launch replacement browser", e) from e

    try:
        context = await browser.new_context(
            **restore_snapshot(snapshot, blueprint.context_options)
        )
        page = await context.new_page()
    except Exception as e:
        await _close_quietly(browser, "replacement browser")
        raise MigrationConstructionError("Failed to prepare replacement page", e) from e

    return ActiveSession(
        page=page,
        context=context,
        browser=browser,
        owns_context=True,
        owns_browser=True,
    )


async def close_session(session: ActiveSession) -> None:
    """Close what the session owns.

    Each resource is closed independently so a failure in one does not
    prevent cleanup of the others. Errors are logged, never raised.
    """
    await _close_quietly(session.page, "page")
    if session.owns_context:
        await _close_quietly(session.context, "context")
    if session.owns_browser and session.browser is not None:
        await _close_quietly(session.browser, "browser")


async def _close_quietly(resource: Any, label: str) -> None:
    try:
        await resource.close()
    except Exception as e:
        logger.warning(f"Failed to close {label}: {e}")
