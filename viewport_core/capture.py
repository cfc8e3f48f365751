"""
Capture orchestrator - renders a URL at named viewports with a shared browser.

One headless Chromium instance is launched once (eagerly via ``start()`` or
lazily on first capture) and shared by every capture. Each capture opens its
own page, so the number of in-flight captures is capped process-wide.

All browser work runs on a private asyncio loop in a background thread; the
synchronous methods (``capture``, ``scan``) are safe to call from any thread,
e.g. concurrent Flask request handlers.

Usage:
    orchestrator = CaptureOrchestrator()
    orchestrator.start()
    png = orchestrator.capture("https://example.com", "mobile")
    result = orchestrator.scan("https://example.com", ["mobile", "desktop"])
    orchestrator.close()
"""

import asyncio
import concurrent.futures
import logging
import threading
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .config import config
from .errors import (
    BrowserUnavailable,
    CaptureError,
    EmptyCapture,
    NavigationFailed,
    NavigationTimeout,
    ScanTimeout,
    SlotTimeout,
    ViewportError,
)
from .models import CaptureResult, ScanResult
from .viewports import ViewportRegistry, default_registry

logger = logging.getLogger(__name__)

BrowserFactory = Callable[[], Awaitable[Any]]

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-gpu",
    "--disable-dev-shm-usage",
]


async def launch_chromium(headless: bool = True) -> Any:
    """Start Playwright and launch headless Chromium"""
    from playwright.async_api import async_playwright

    playwright = await async_playwright().start()
    try:
        browser = await playwright.chromium.launch(headless=headless, args=list(CHROMIUM_ARGS))
    except Exception:
        await playwright.stop()
        raise
    setattr(browser, "_viewport_playwright", playwright)
    return browser


class CaptureOrchestrator:
    """
    Owns the shared browser and enforces the global capture concurrency cap.

    Browser initialisation is attempted exactly once. A failure is cached and
    returned on every subsequent capture until the process restarts.
    """

    def __init__(
        self,
        registry: Optional[ViewportRegistry] = None,
        max_concurrent: Optional[int] = None,
        navigation_timeout_ms: Optional[int] = None,
        slot_wait_timeout: Optional[float] = None,
        slot_poll_interval: float = 0.1,
        browser_factory: Optional[BrowserFactory] = None,
        headless: Optional[bool] = None,
    ):
        self.registry = registry or default_registry
        self.max_concurrent = max_concurrent or config.max_concurrent_captures
        self.navigation_timeout_ms = navigation_timeout_ms or config.navigation_timeout_ms
        self.slot_wait_timeout = slot_wait_timeout if slot_wait_timeout is not None else config.slot_wait_timeout
        self.slot_poll_interval = slot_poll_interval
        self.headless = config.headless if headless is None else headless
        self._browser_factory = browser_factory or (lambda: launch_chromium(self.headless))

        self._browser: Any = None
        self._init_task: Optional[asyncio.Task] = None
        self._init_error: Optional[BrowserUnavailable] = None
        self._closed = False

        self._in_flight = 0
        self.peak_in_flight = 0

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._loop_lock = threading.Lock()

    # -- event loop ---------------------------------------------------------

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._loop_lock:
            if self._loop is None:
                loop = asyncio.new_event_loop()
                ready = threading.Event()

                def _run():
                    asyncio.set_event_loop(loop)
                    loop.call_soon(ready.set)
                    loop.run_forever()

                self._thread = threading.Thread(target=_run, name="capture-orchestrator", daemon=True)
                self._thread.start()
                ready.wait()
                self._loop = loop
            return self._loop

    def _submit(self, coro) -> concurrent.futures.Future:
        return asyncio.run_coroutine_threadsafe(coro, self._ensure_loop())

    def _run(self, coro, timeout: Optional[float] = None):
        return self._submit(coro).result(timeout)

    # -- browser lifecycle --------------------------------------------------

    @property
    def browser_ready(self) -> bool:
        return self._browser is not None and self._init_error is None

    @property
    def init_error(self) -> Optional[BrowserUnavailable]:
        return self._init_error

    @property
    def init_attempted(self) -> bool:
        return self._init_task is not None

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def _launch(self) -> None:
        logger.info("Initializing browser...")
        try:
            self._browser = await self._browser_factory()
        except Exception as e:
            self._init_error = BrowserUnavailable(f"Browser failed to initialize: {e}")
            logger.error(f"Browser initialization failed: {e}")
            return
        logger.info("Browser initialized")

    async def _ensure_browser(self) -> None:
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._launch())
        await self._init_task

    def start(self) -> bool:
        """Initialise the browser eagerly. Returns True if it is ready."""
        self._run(self._ensure_browser())
        return self.browser_ready

    async def _close(self) -> None:
        browser, self._browser = self._browser, None
        if browser is None:
            return
        playwright = getattr(browser, "_viewport_playwright", None)
        try:
            await browser.close()
        finally:
            if playwright is not None:
                await playwright.stop()
        logger.info("Browser closed")

    def close(self, timeout: float = 10.0) -> None:
        """Close the browser and stop the background loop"""
        if self._closed:
            return
        self._closed = True
        if self._loop is None:
            return
        try:
            self._run(self._close(), timeout=timeout)
        except concurrent.futures.TimeoutError:
            logger.warning(f"Browser did not close within {timeout}s")
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            if self._thread is not None:
                self._thread.join(timeout=timeout)

    def health(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "browserReady": self.browser_ready,
            "devices": self.registry.names(),
            "maxConcurrent": self.max_concurrent,
            "inFlight": self._in_flight,
        }
        if self._init_error is not None:
            data["error"] = str(self._init_error)
            data["help"] = self._init_error.help
        return data

    # -- concurrency slots --------------------------------------------------

    async def _acquire_slot(self, target_url: str, device: str) -> None:
        # Single-threaded loop: check-and-increment cannot interleave
        deadline = time.monotonic() + self.slot_wait_timeout
        while self._in_flight >= self.max_concurrent:
            if time.monotonic() >= deadline:
                raise SlotTimeout(
                    f"No capture slot freed within {self.slot_wait_timeout}s",
                    target=target_url, device=device,
                )
            await asyncio.sleep(self.slot_poll_interval)
        self._in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self._in_flight)

    def _release_slot(self) -> None:
        self._in_flight -= 1

    # -- captures -----------------------------------------------------------

    async def capture_async(self, target_url: str, device: str, full_page: bool = True) -> bytes:
        await self._ensure_browser()
        if self._init_error is not None:
            # Raise a copy so the cached error never accumulates traceback frames
            raise BrowserUnavailable(self._init_error.message, target=target_url) from None

        viewport = self.registry.lookup(device)

        await self._acquire_slot(target_url, viewport.name)
        page = None
        try:
            page = await self._browser.new_page(
                viewport={"width": viewport.width, "height": viewport.height},
                device_scale_factor=1,
            )
            logger.info(f"Navigating to {target_url} ({viewport.name})")
            try:
                await page.goto(target_url, wait_until="load", timeout=self.navigation_timeout_ms)
            except (PlaywrightTimeoutError, asyncio.TimeoutError) as e:
                raise NavigationTimeout(
                    f"Navigation exceeded {self.navigation_timeout_ms}ms",
                    target=target_url, device=viewport.name,
                ) from e
            except Exception as e:
                raise NavigationFailed(str(e), target=target_url, device=viewport.name) from e

            image = await page.screenshot(type="png", full_page=full_page)
            if not image:
                raise EmptyCapture(
                    "Navigation succeeded but the screenshot is empty",
                    target=target_url, device=viewport.name,
                )
            logger.info(f"Screenshot captured for {viewport.name} ({len(image)} bytes)")
            return image
        except ViewportError:
            raise
        except Exception as e:
            raise CaptureError(str(e), target=target_url, device=viewport.name) from e
        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception as e:
                    logger.warning(f"Failed to close page for {viewport.name}: {e}")
            self._release_slot()

    async def capture_result_async(self, target_url: str, device: str, full_page: bool = True) -> CaptureResult:
        """Capture one device, folding any failure into the result"""
        name = str(device).strip().lower()
        width = height = 0
        if name in self.registry:
            spec = self.registry.lookup(name)
            width, height = spec.width, spec.height
        try:
            image = await self.capture_async(target_url, name, full_page=full_page)
        except ViewportError as e:
            logger.error(f"Failed to capture {name}: {e}")
            return CaptureResult(device=name, width=width, height=height, error=str(e), error_code=e.code)
        return CaptureResult(device=name, width=width, height=height, image_bytes=image)

    async def scan_async(self, target_url: str, devices: List[str], full_page: bool = True) -> ScanResult:
        scan = ScanResult(target_url=target_url)
        logger.info(f"[{scan.scan_id}] Capturing {', '.join(devices)} for {target_url}")
        results = await asyncio.gather(
            *(self.capture_result_async(target_url, d, full_page) for d in devices)
        )
        scan.finalize(results)
        logger.info(f"[{scan.scan_id}] Scan {scan.status.value}: {len(scan.succeeded)}/{len(results)} captured")
        return scan

    def capture(self, target_url: str, device: str, full_page: bool = True) -> bytes:
        """Render ``target_url`` at ``device`` and return PNG bytes"""
        return self._run(self.capture_async(target_url, device, full_page))

    def capture_many(self, target_url: str, devices: List[str], full_page: bool = True) -> List[CaptureResult]:
        async def _all():
            return await asyncio.gather(
                *(self.capture_result_async(target_url, d, full_page) for d in devices)
            )
        return list(self._run(_all()))

    def scan(
        self,
        target_url: str,
        devices: List[str],
        full_page: bool = True,
        timeout: Optional[float] = None,
    ) -> ScanResult:
        """
        Capture all devices in parallel and aggregate the results.

        ``timeout`` bounds the wait for the whole scan. On expiry ScanTimeout
        is raised; captures still in flight are abandoned and end on their own
        navigation timeout.
        """
        future = self._submit(self.scan_async(target_url, devices, full_page))
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError as e:
            raise ScanTimeout(
                f"Scan did not finish within {timeout}s",
                target=target_url, viewports=list(devices),
            ) from e
