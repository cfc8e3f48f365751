"""
Shared fixtures: an in-process fake browser for the capture orchestrator,
plus helpers for tests that need real ports.
"""

import asyncio
import socket

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from viewport_core.capture import CaptureOrchestrator

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakePage:
    def __init__(self, browser, viewport, device_scale_factor):
        self.browser = browser
        self.viewport = viewport
        self.device_scale_factor = device_scale_factor
        self.closed = False
        self.goto_calls = []

    async def goto(self, url, wait_until=None, timeout=None):
        self.goto_calls.append({"url": url, "wait_until": wait_until, "timeout": timeout})
        if self.browser.delay:
            await asyncio.sleep(self.browser.delay)
        width = self.viewport["width"]
        if width in self.browser.timeout_widths:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")
        if width in self.browser.error_widths:
            raise RuntimeError("net::ERR_NAME_NOT_RESOLVED")

    async def screenshot(self, type="png", full_page=True):
        self.browser.screenshot_calls.append({"type": type, "full_page": full_page})
        if self.viewport["width"] in self.browser.empty_widths:
            return b""
        return self.browser.image

    async def close(self):
        self.closed = True
        self.browser.open_pages -= 1


class FakeBrowser:
    """Stands in for a Playwright Browser; failures are keyed by viewport width"""

    def __init__(self, delay=0.0, timeout_widths=(), error_widths=(), empty_widths=(), image=PNG_BYTES):
        self.delay = delay
        self.timeout_widths = set(timeout_widths)
        self.error_widths = set(error_widths)
        self.empty_widths = set(empty_widths)
        self.image = image
        self.pages = []
        self.open_pages = 0
        self.peak_open_pages = 0
        self.screenshot_calls = []
        self.closed = False

    async def new_page(self, viewport=None, device_scale_factor=None):
        page = FakePage(self, viewport, device_scale_factor)
        self.pages.append(page)
        self.open_pages += 1
        self.peak_open_pages = max(self.peak_open_pages, self.open_pages)
        return page

    async def close(self):
        self.closed = True


class BrowserFactory:
    """Counts launches; optionally fails every launch"""

    def __init__(self, browser=None, error=None):
        self.browser = browser or FakeBrowser()
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.browser


@pytest.fixture
def fake_browser():
    return FakeBrowser()


@pytest.fixture
def make_orchestrator():
    created = []

    def _make(browser=None, error=None, **kwargs):
        factory = BrowserFactory(browser=browser, error=error)
        kwargs.setdefault("slot_poll_interval", 0.01)
        orchestrator = CaptureOrchestrator(browser_factory=factory, **kwargs)
        orchestrator.factory = factory
        created.append(orchestrator)
        return orchestrator

    yield _make

    for orchestrator in created:
        orchestrator.close()


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def listening_port():
    """A local port that accepts TCP connections for the duration of the test"""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    server.bind(("127.0.0.1", 0))
    server.listen(8)
    yield server.getsockname()[1]
    server.close()
