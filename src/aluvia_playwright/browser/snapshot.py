"""Capture session state from a page and restore it into a replacement."""

import logging
from typing import Any

from ..core.types import SessionSnapshot

logger = logging.getLogger(__name__)

USER_AGENT_EXPRESSION = "() => navigator.userAgent"


async def capture_snapshot(page: Any) -> SessionSnapshot:
    """Read storage state, viewport and user agent from ``page``.

    Each field is read on its own; a failure is logged and the field left
    empty, so a partial snapshot is still returned.

    Args:
        page: A Playwright page (or anything with the same surface)

    Returns:
        The captured snapshot
    """
    storage_state: dict[str, Any] | None = None
    viewport: dict[str, int] | None = None
    user_agent: str | None = None

    try:
        storage_state = await page.context.storage_state()
    except Exception as e:
        logger.debug(f"Snapshot: storage state unavailable ({e})")

    try:
        size = page.viewport_size
        if size:
            viewport = {"width": int(size["width"]), "height": int(size["height"])}
    except Exception as e:
        logger.debug(f"Snapshot: viewport unavailable ({e})")

    try:
        ua = await page.evaluate(USER_AGENT_EXPRESSION)
        if isinstance(ua, str) and ua:
            user_agent = ua
    except Exception as e:
        logger.debug(f"Snapshot: user agent unavailable ({e})")

    return SessionSnapshot(storage_state=storage_state, viewport=viewport, user_agent=user_agent)


def restore_snapshot(
    snapshot: SessionSnapshot, context_options: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Merge a snapshot into ``new_context`` options for the replacement.

    Storage state always applies when captured. Viewport and user agent
    apply only when the caller did not pin them in ``context_options``.

    Returns:
        A new options dict; ``context_options`` is left untouched
    """
    options = dict(context_options or {})

    if snapshot.storage_state is not None:
        options["storage_state"] = snapshot.storage_state
    viewport_pinned = "viewport" in options or options.get("no_viewport")
    if snapshot.viewport is not None and not viewport_pinned:
        options["viewport"] = dict(snapshot.viewport)
    if snapshot.user_agent is not None and "user_agent" not in options:
        options["user_agent"] = snapshot.user_agent

    return options
