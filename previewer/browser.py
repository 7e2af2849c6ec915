"""Headless browser capability interface and its Playwright implementation.

The URL tester and capture engine only talk to :class:`BrowserSession` and
:class:`BrowserPage`, so any driver offering navigate / evaluate /
screenshot / close can back them (tests use in-memory fakes).

Example usage:

    from previewer.browser import PlaywrightSession
    from previewer.config import get_device_profile

    async with PlaywrightSession() as session:
        page = await session.new_page(get_device_profile("desktop"))
        try:
            await page.goto("https://example.com", timeout=30)
            print(await page.title())
        finally:
            await page.close()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

from .config import DeviceProfile
from .models import PreviewError

LOGGER = logging.getLogger(__name__)

# (resource_type, url) -> True to let the request through
RequestFilter = Callable[[str, str], bool]

DEFAULT_LAUNCH_ARGS: List[str] = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
    "--disable-extensions",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
]


class BrowserUnavailableError(PreviewError, RuntimeError):
    """Raised when the headless browser backend cannot be started."""


@dataclass(frozen=True)
class NavigationResponse:
    status: int
    ok: bool


class BrowserPage(Protocol):
    """A single isolated tab. Timeouts are in seconds."""

    @property
    def url(self) -> str: ...

    async def set_request_filter(self, allow: RequestFilter) -> None: ...

    async def goto(
        self, url: str, *, timeout: float, wait_until: str = "domcontentloaded"
    ) -> Optional[NavigationResponse]: ...

    async def title(self) -> str: ...

    async def evaluate(self, script: str, arg: Any = None) -> Any: ...

    async def wait_for_selector(self, selector: str, *, timeout: float) -> None: ...

    async def wait_for_function(
        self, script: str, *, timeout: float, arg: Any = None
    ) -> None: ...

    async def screenshot(
        self,
        *,
        quality: int,
        full_page: bool = False,
        clip: Optional[Dict[str, float]] = None,
    ) -> bytes: ...

    async def close(self) -> None: ...


class BrowserSession(Protocol):
    """Owner of the shared browser process."""

    async def new_page(self, profile: DeviceProfile) -> BrowserPage: ...

    async def aclose(self) -> None: ...


class PlaywrightPage:
    """:class:`BrowserPage` backed by a Playwright page in its own context."""

    def __init__(self, page: Any, context: Any) -> None:
        self._page = page
        self._context = context

    @property
    def url(self) -> str:
        return self._page.url or ""

    async def set_request_filter(self, allow: RequestFilter) -> None:
        async def _handle(route: Any) -> None:
            request = route.request
            try:
                if allow(request.resource_type, request.url):
                    await route.continue_()
                else:
                    await route.abort()
            except Exception as exc:
                # The page may close while requests are still in flight
                LOGGER.debug("Request routing failed for %s: %s", request.url, exc)

        await self._page.route("**/*", _handle)

    async def goto(
        self, url: str, *, timeout: float, wait_until: str = "domcontentloaded"
    ) -> Optional[NavigationResponse]:
        response = await self._page.goto(
            url, wait_until=wait_until, timeout=timeout * 1000
        )
        if response is None:
            return None
        return NavigationResponse(status=response.status, ok=response.ok)

    async def title(self) -> str:
        return await self._page.title()

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self._page.evaluate(script, arg)

    async def wait_for_selector(self, selector: str, *, timeout: float) -> None:
        await self._page.wait_for_selector(
            selector, state="attached", timeout=timeout * 1000
        )

    async def wait_for_function(
        self, script: str, *, timeout: float, arg: Any = None
    ) -> None:
        await self._page.wait_for_function(script, arg=arg, timeout=timeout * 1000)

    async def screenshot(
        self,
        *,
        quality: int,
        full_page: bool = False,
        clip: Optional[Dict[str, float]] = None,
    ) -> bytes:
        kwargs: Dict[str, Any] = {
            "type": "jpeg",
            "quality": quality,
            "full_page": full_page,
        }
        if clip is not None and not full_page:
            kwargs["clip"] = clip
        return await self._page.screenshot(**kwargs)

    async def close(self) -> None:
        try:
            await self._page.close()
        except Exception as exc:
            LOGGER.debug("Failed to close page: %s", exc)
        try:
            await self._context.close()
        except Exception as exc:
            LOGGER.debug("Failed to close browser context: %s", exc)


class PlaywrightSession:
    """Lazily launched headless Chromium shared by every tab of a run.

    Use as an async context manager, or call :meth:`aclose` explicitly.
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        launch_args: Optional[List[str]] = None,
    ) -> None:
        self.headless = headless
        self.launch_args = list(launch_args or DEFAULT_LAUNCH_ARGS)
        self._playwright: Any = None
        self._browser: Any = None
        self._lock = asyncio.Lock()

    @property
    def is_started(self) -> bool:
        return self._browser is not None

    async def _ensure_browser(self) -> Any:
        async with self._lock:
            if self._browser is not None:
                return self._browser

            try:
                from playwright.async_api import async_playwright
            except ImportError as exc:
                raise BrowserUnavailableError(
                    "Playwright is required for screenshots. "
                    "Install it with: pip install playwright && playwright install chromium"
                ) from exc

            LOGGER.info("Launching headless browser")
            self._playwright = await async_playwright().start()
            try:
                self._browser = await self._playwright.chromium.launch(
                    headless=self.headless,
                    args=self.launch_args,
                )
            except Exception as exc:
                await self._playwright.stop()
                self._playwright = None
                raise BrowserUnavailableError(
                    f"Failed to launch browser: {exc}"
                ) from exc
            return self._browser

    async def new_page(self, profile: DeviceProfile) -> PlaywrightPage:
        browser = await self._ensure_browser()
        context = await browser.new_context(
            viewport={"width": profile.width, "height": profile.height},
            device_scale_factor=profile.device_scale_factor,
            user_agent=profile.user_agent,
        )
        try:
            page = await context.new_page()
        except Exception:
            await context.close()
            raise
        return PlaywrightPage(page, context)

    async def aclose(self) -> None:
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None
        if browser is not None:
            try:
                await browser.close()
            except Exception as exc:
                LOGGER.warning("Failed to close browser: %s", exc)
        if playwright is not None:
            await playwright.stop()
            LOGGER.info("Headless browser closed")

    async def __aenter__(self) -> "PlaywrightSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
