"""Readiness gate for migrated pages.

A resolved ``goto`` only proves the navigation committed. Behind a fresh
proxy the response is often a bot-detection interstitial (Cloudflare,
Imperva, Akamai, PerimeterX), so a migrated page counts as ready only once
it has a non-empty title that is not a known challenge title.
"""

import asyncio
import logging
from typing import Any

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .errors import MigrationError, ReadinessTimeoutError

logger = logging.getLogger(__name__)

READY_EXPRESSION = "() => !!document.title && document.title.trim().length > 0"

# Lower-cased title fragments served by interstitials in front of the real
# page, mapped to the service that serves them. A fresh proxy IP often lands
# on one of these instead of the destination.
CHALLENGE_TITLES: dict[str, str] = {
    "just a moment": "cloudflare",
    "attention required": "cloudflare",
    "you have been blocked": "cloudflare",
    "checking your browser": "cloudflare",
    "ddos-guard": "ddos-guard",
    "pardon our interruption": "imperva",
    "request unsuccessful": "imperva",
    "access denied": "akamai",
    "access to this page has been denied": "perimeterx",
    "verify you are human": "generic",
    "are you a robot": "generic",
    "captcha": "generic",
}


class ChallengeDetectedError(MigrationError):
    """Raised when a migrated page landed on a bot-challenge interstitial."""

    def __init__(self, title: str, vendor: str):
        self.title = title
        self.vendor = vendor
        super().__init__(f"Challenge page ({vendor}) instead of destination: '{title}'")


def challenge_vendor(title: str | None) -> str | None:
    """Return the service behind a challenge title, or None for a regular page."""
    if not title:
        return None
    title_lower = title.lower()
    for fragment, vendor in CHALLENGE_TITLES.items():
        if fragment in title_lower:
            return vendor
    return None


async def wait_until_ready(page: Any, timeout_ms: float, detect_challenges: bool = True) -> str:
    """Wait until ``page`` shows a rendered destination.

    Args:
        page: Page the navigation was re-issued on
        timeout_ms: Readiness budget, separate from the navigation timeout
        detect_challenges: Reject known challenge titles

    Returns:
        The page title

    Raises:
        ReadinessTimeoutError: No non-empty title within ``timeout_ms``
        ChallengeDetectedError: The title is a challenge page
    """
    try:
        await asyncio.wait_for(
            page.wait_for_function(READY_EXPRESSION, timeout=timeout_ms),
            timeout=timeout_ms / 1000,
        )
    except (asyncio.TimeoutError, PlaywrightTimeoutError) as e:
        raise ReadinessTimeoutError(
            f"Page not ready after {timeout_ms:.0f}ms (no rendered title)"
        ) from e

    title = await page.title()

    vendor = challenge_vendor(title) if detect_challenges else None
    if vendor is not None:
        logger.warning(f"Readiness check hit a {vendor} challenge: '{title}'")
        raise ChallengeDetectedError(title, vendor)

    return title
