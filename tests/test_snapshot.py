"""Tests for session snapshot capture and restore."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from aluvia_playwright.browser.snapshot import capture_snapshot, restore_snapshot
from aluvia_playwright.core.types import SessionSnapshot

STORAGE = {"cookies": [{"name": "sid", "value": "1"}], "origins": []}


def _page(storage=STORAGE, viewport=None, user_agent="MockUA/1.0"):
    page = MagicMock()
    page.context.storage_state = AsyncMock(return_value=storage)
    page.viewport_size = viewport or {"width": 1280, "height": 720}
    page.evaluate = AsyncMock(return_value=user_agent)
    return page


@pytest.mark.unit
class TestCaptureSnapshot:
    async def test_captures_all_fields(self):
        snapshot = await capture_snapshot(_page())

        assert snapshot.storage_state == STORAGE
        assert snapshot.viewport == {"width": 1280, "height": 720}
        assert snapshot.user_agent == "MockUA/1.0"

    async def test_partial_capture_when_fields_fail(self):
        page = _page()
        page.context.storage_state = AsyncMock(side_effect=RuntimeError("context closed"))
        page.evaluate = AsyncMock(side_effect=RuntimeError("page crashed"))

        snapshot = await capture_snapshot(page)

        assert snapshot.storage_state is None
        assert snapshot.user_agent is None
        assert snapshot.viewport == {"width": 1280, "height": 720}

    async def test_everything_failing_yields_empty_snapshot(self):
        page = _page()
        page.context.storage_state = AsyncMock(side_effect=RuntimeError("gone"))
        page.viewport_size = None
        page.evaluate = AsyncMock(return_value="")

        snapshot = await capture_snapshot(page)

        assert snapshot.is_empty


@pytest.mark.unit
class TestRestoreSnapshot:
    def test_applies_captured_fields(self):
        snapshot = SessionSnapshot(
            storage_state=STORAGE, viewport={"width": 800, "height": 600}, user_agent="UA"
        )

        options = restore_snapshot(snapshot, {"locale": "de-DE"})

        assert options == {
            "locale": "de-DE",
            "storage_state": STORAGE,
            "viewport": {"width": 800, "height": 600},
            "user_agent": "UA",
        }

    def test_pinned_options_win(self):
        snapshot = SessionSnapshot(viewport={"width": 800, "height": 600}, user_agent="UA")
        pinned = {"viewport": {"width": 390, "height": 844}, "user_agent": "Pinned"}

        options = restore_snapshot(snapshot, pinned)

        assert options["viewport"] == {"width": 390, "height": 844}
        assert options["user_agent"] == "Pinned"

    def test_no_viewport_is_respected(self):
        snapshot = SessionSnapshot(viewport={"width": 800, "height": 600})

        assert "viewport" not in restore_snapshot(snapshot, {"no_viewport": True})

    def test_storage_state_always_applied(self):
        snapshot = SessionSnapshot(storage_state=STORAGE)

        options = restore_snapshot(snapshot, {"storage_state": {"cookies": [], "origins": []}})

        assert options["storage_state"] == STORAGE

    def test_input_not_mutated(self):
        original = {"locale": "de-DE"}

        restore_snapshot(SessionSnapshot(user_agent="UA"), original)

        assert original == {"locale": "de-DE"}

    def test_empty_snapshot_returns_copy(self):
        assert restore_snapshot(SessionSnapshot()) == {}
