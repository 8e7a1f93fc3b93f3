"""Tests for the command line entrypoint."""

import json
from contextlib import asynccontextmanager
from unittest.mock import patch

import pytest

from aluvia_playwright.browser.registry import ResilientPlaywright
from aluvia_playwright.cli.main import build_overrides, main_async, parse_args
from tests.fakes import FakeNavigationError, FakePlaywright, failing_goto, ok_goto


@pytest.mark.unit
class TestParseArgs:
    def test_defaults(self):
        args = parse_args(["https://example.com"])

        assert args.url == "https://example.com"
        assert args.browser == "chromium"
        assert args.headed is False
        assert args.max_retries is None
        assert build_overrides(args) == {}

    def test_max_retries_becomes_override(self):
        args = parse_args(["https://example.com", "--max-retries", "3", "--browser", "firefox"])

        assert args.browser == "firefox"
        assert build_overrides(args) == {"max_retries": 3}

    def test_rejects_unknown_browser(self):
        with pytest.raises(SystemExit):
            parse_args(["https://example.com", "--browser", "opera"])


class TestMainAsync:
    @pytest.fixture
    def fake_playwright(self):
        return FakePlaywright()

    @pytest.fixture
    def patched_playwright(self, fake_playwright, registry):
        @asynccontextmanager
        async def fake_resilient_playwright(settings):
            yield ResilientPlaywright(fake_playwright, registry)

        with patch("aluvia_playwright.cli.main.resilient_playwright", fake_resilient_playwright):
            yield

    async def test_missing_api_key_exits_2(self, monkeypatch):
        monkeypatch.delenv("ALUVIA_API_KEY")

        assert await main_async(["https://example.com"]) == 2

    async def test_missing_proxy_source_exits_2(self):
        assert await main_async(["https://example.com"]) == 2

    async def test_prints_summary(self, patched_playwright, fake_playwright, capsys):
        fake_playwright.chromium.goto_impl = _fail_first_navigation()

        exit_code = await main_async(["https://example.com", "--headed"])

        assert exit_code == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary == {
            "url": "https://example.com",
            "title": "Example Domain",
            "status": 200,
            "migrations": 1,
        }
        assert fake_playwright.chromium.launches[0] == {"headless": False}
        assert all(browser.closed for browser in fake_playwright.chromium.browsers)

    async def test_navigation_failure_exits_1(self, patched_playwright, fake_playwright):
        fake_playwright.chromium.goto_impl = failing_goto("Invalid url", code="EINVAL")

        assert await main_async(["https://example.com"]) == 1


def _fail_first_navigation():
    calls: list[str] = []

    async def goto(page, url, **options):
        calls.append(url)
        if len(calls) == 1:
            raise FakeNavigationError("net::ERR_CONNECTION_RESET")
        return await ok_goto(page, url)

    return goto
