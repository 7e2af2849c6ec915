"""Content-aware screenshot capture.

Each attempt opens its own tab, trims the request load, waits for the page
to look ready, hides overlays, crops to the hero section when one is found,
and writes a JPEG under the generated screenshots directory.

Example usage:

    from previewer.browser import PlaywrightSession
    from previewer.capture import CaptureOptions, ScreenshotCapturer
    from previewer.config import PreviewSettings

    async with PlaywrightSession() as session:
        capturer = ScreenshotCapturer(session, PreviewSettings.from_env())
        result = await capturer.capture("https://example.com", "Example")
        print(result.screenshot_path or result.error)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from time import monotonic
from typing import Any, Dict, Optional

from .browser import BrowserPage, BrowserSession
from .candidates import slugify, with_vercel_bypass, without_vercel_bypass
from .config import (
    DEVICE_PROFILES,
    DetectionPatterns,
    DeviceProfile,
    PreviewSettings,
    get_device_profile,
    public_path,
    timestamped_path,
)
from .models import ScreenshotMetadata, ScreenshotResult
from .retry import RetryPolicy, retry_async

LOGGER = logging.getLogger(__name__)

JPEG_QUALITY = 90
MAX_BASE_WAIT = 8.0
MIN_HERO_WIDTH = 800
MIN_HERO_HEIGHT = 500
HERO_MIN_RECT = (300, 200)
RESPONSIVE_MAX_WAIT = 6.0

ALWAYS_ALLOWED_TYPES = frozenset({"stylesheet", "document", "script", "xhr", "fetch"})

IMAGES_COMPLETE_SCRIPT = """
() => {
  const images = Array.from(document.images);
  return images.length === 0 || images.every((img) => img.complete);
}
"""

NO_LOADING_SCRIPT = """
(selectors) => !document.querySelector(selectors.join(', '))
"""

ANALYZE_SCRIPT = """
(heroSelectors) => {
  const hasContent = !!(document.body && document.body.children.length > 0);
  const hero = heroSelectors
    .map((selector) => {
      try {
        return document.querySelector(selector);
      } catch (e) {
        return null;
      }
    })
    .find((el) => el !== null);
  return { hasContent: hasContent, hasHeroSection: !!hero };
}
"""

HIDE_OVERLAYS_SCRIPT = """
(opts) => {
  let hidden = 0;
  const positioned = (el) => {
    const position = getComputedStyle(el).position;
    return position === 'fixed' || position === 'absolute';
  };
  opts.selectors.forEach((selector) => {
    let elements = [];
    try {
      elements = document.querySelectorAll(selector);
    } catch (e) {
      return;
    }
    elements.forEach((el) => {
      if (!(el instanceof HTMLElement)) return;
      const rect = el.getBoundingClientRect();
      if (rect.width > 0 && rect.height > 0 && positioned(el)) {
        el.style.display = 'none';
        hidden += 1;
      }
    });
  });
  document.querySelectorAll('*').forEach((el) => {
    if (!(el instanceof HTMLElement)) return;
    const zIndex = parseInt(getComputedStyle(el).zIndex, 10);
    if (zIndex > opts.minZIndex) {
      const rect = el.getBoundingClientRect();
      if (rect.width > window.innerWidth * opts.coverage ||
          rect.height > window.innerHeight * opts.coverage) {
        el.style.display = 'none';
        hidden += 1;
      }
    }
  });
  return hidden;
}
"""

HERO_RECT_SCRIPT = """
(opts) => {
  const viewport = { width: window.innerWidth, height: window.innerHeight };
  for (const selector of opts.selectors) {
    let element = null;
    try {
      element = document.querySelector(selector);
    } catch (e) {
      continue;
    }
    if (!element) continue;
    const rect = element.getBoundingClientRect();
    if (rect.width > opts.minWidth && rect.height > opts.minHeight) {
      return {
        hero: { x: rect.left, y: rect.top, width: rect.width, height: rect.height },
        viewport: viewport,
      };
    }
  }
  return { hero: null, viewport: viewport };
}
"""


@dataclass(frozen=True)
class CaptureOptions:
    """Per-call capture settings. Durations are in seconds."""

    width: int = 1200
    height: int = 630
    max_wait: float = 8.0
    capture_full_page: bool = False
    hide_overlays: bool = True
    optimize_for_hero: bool = True
    retry_count: int = 2
    device: str = "desktop"
    settle_delay: float = 2.0
    navigation_timeout: float = 45.0
    retry_backoff: float = 2.0


class CaptureError(RuntimeError):
    """Raised inside an attempt when the page cannot be captured."""


def hero_clip(
    hero: Optional[Dict[str, float]],
    viewport: Dict[str, float],
    target_width: int,
    target_height: int,
) -> Dict[str, float]:
    """Clamp a detected hero rect (or the top of the page) to a sane crop.

    The size is first bounded by the target and raised to the minimum hero
    size, then limited to the viewport. The origin is shifted so the whole
    clip lies inside the viewport, because a viewport screenshot cannot
    capture anything below the fold.
    """
    view_width = float(viewport.get("width") or target_width)
    view_height = float(viewport.get("height") or target_height)
    if hero:
        x = float(hero.get("x", 0))
        y = float(hero.get("y", 0))
        width = float(hero.get("width", 0))
        height = float(hero.get("height", 0))
    else:
        x = y = 0.0
        width = float(target_width)
        height = float(target_height)

    width = min(max(MIN_HERO_WIDTH, min(width, target_width)), view_width)
    height = min(max(MIN_HERO_HEIGHT, min(height, target_height)), view_height)
    return {
        "x": min(max(0.0, x), view_width - width),
        "y": min(max(0.0, y), view_height - height),
        "width": width,
        "height": height,
    }


class ScreenshotCapturer:
    """Capture engine bound to a browser session and an output tree."""

    def __init__(
        self,
        session: BrowserSession,
        settings: Optional[PreviewSettings] = None,
        patterns: Optional[DetectionPatterns] = None,
    ) -> None:
        self._session = session
        self.settings = settings or PreviewSettings()
        self.patterns = patterns or DetectionPatterns()

    def _allow_request(self, resource_type: str, url: str) -> bool:
        lowered = url.lower()
        if resource_type == "media":
            return any(hint in lowered for hint in self.patterns.priority_media_hints)
        if resource_type in ALWAYS_ALLOWED_TYPES:
            return True
        if resource_type == "image":
            return any(hint in lowered for hint in self.patterns.priority_image_hints)
        return True

    async def _wait_for_content(self, page: BrowserPage, max_wait: float) -> None:
        """Race the readiness probes, then apply the capped base delay."""
        probes = [
            page.wait_for_selector(
                ", ".join(self.patterns.ready_content_selectors), timeout=8.0
            ),
            page.wait_for_selector(
                ", ".join(self.patterns.ready_navigation_selectors), timeout=5.0
            ),
            page.wait_for_function(IMAGES_COMPLETE_SCRIPT, timeout=10.0),
            page.wait_for_function(
                NO_LOADING_SCRIPT, timeout=8.0, arg=self.patterns.loading_selectors
            ),
        ]
        outcomes = await asyncio.gather(*probes, return_exceptions=True)
        LOGGER.debug(
            "Readiness probes satisfied: %d/%d",
            sum(1 for outcome in outcomes if not isinstance(outcome, BaseException)),
            len(outcomes),
        )
        delay = min(max_wait, MAX_BASE_WAIT)
        if delay > 0:
            await asyncio.sleep(delay)

    async def _hide_overlays(self, page: BrowserPage) -> None:
        hidden = await page.evaluate(
            HIDE_OVERLAYS_SCRIPT,
            {
                "selectors": self.patterns.overlay_selectors,
                "minZIndex": self.patterns.overlay_min_z_index,
                "coverage": self.patterns.overlay_coverage_ratio,
            },
        )
        LOGGER.debug("Hid %s overlay elements", hidden)

    async def _capture_region(
        self,
        page: BrowserPage,
        options: CaptureOptions,
        profile: DeviceProfile,
        has_hero: bool,
    ) -> Dict[str, float]:
        viewport = {"width": profile.width, "height": profile.height}
        if not (options.optimize_for_hero and has_hero):
            return hero_clip(None, viewport, options.width, options.height)
        info = await page.evaluate(
            HERO_RECT_SCRIPT,
            {
                "selectors": self.patterns.hero_selectors,
                "minWidth": HERO_MIN_RECT[0],
                "minHeight": HERO_MIN_RECT[1],
            },
        )
        info = info or {}
        return hero_clip(
            info.get("hero"),
            info.get("viewport") or viewport,
            options.width,
            options.height,
        )

    def _write_image(self, data: bytes, project_name: str) -> Path:
        path = timestamped_path(
            self.settings.screenshots_dir, slugify(project_name), "jpg"
        )
        path.write_bytes(data)
        return path

    async def capture(
        self,
        url: str,
        project_name: str,
        options: Optional[CaptureOptions] = None,
    ) -> ScreenshotResult:
        """Capture *url*, retrying per ``options.retry_count``. Never raises."""
        options = options or CaptureOptions()
        profile = get_device_profile(options.device)
        started = monotonic()
        observed: Dict[str, Any] = {
            "final_url": url,
            "page_title": "",
            "content_detected": False,
            "hero_section_found": False,
        }

        async def attempt(index: int) -> Dict[str, Any]:
            LOGGER.info(
                "Attempt %d: capturing screenshot for %s at %s",
                index + 1,
                project_name,
                url,
            )
            page = await self._session.new_page(profile)
            try:
                await page.set_request_filter(self._allow_request)
                response = await page.goto(
                    with_vercel_bypass(url, self.settings.vercel_bypass_secret),
                    timeout=options.navigation_timeout,
                )
                if response is None or not response.ok:
                    status = response.status if response is not None else None
                    raise CaptureError(f"Page response not OK: {status}")

                observed["final_url"] = without_vercel_bypass(page.url or url)
                observed["page_title"] = await page.title()

                await self._wait_for_content(page, options.max_wait)

                analysis = await page.evaluate(
                    ANALYZE_SCRIPT, self.patterns.hero_selectors
                ) or {}
                has_hero = bool(analysis.get("hasHeroSection"))
                observed["content_detected"] = bool(analysis.get("hasContent"))
                observed["hero_section_found"] = has_hero

                if options.hide_overlays:
                    await self._hide_overlays(page)

                clip = await self._capture_region(page, options, profile, has_hero)

                if options.settle_delay > 0:
                    await asyncio.sleep(options.settle_delay)

                data = await page.screenshot(
                    quality=JPEG_QUALITY,
                    full_page=options.capture_full_page,
                    clip=None if options.capture_full_page else clip,
                )
            finally:
                await page.close()

            path = self._write_image(data, project_name)
            return {"path": path, "clip": clip}

        outcome = await retry_async(
            attempt,
            RetryPolicy(retries=options.retry_count, backoff=options.retry_backoff),
            label=f"Screenshot capture for {project_name}",
        )

        load_time_ms = int((monotonic() - started) * 1000)
        size: Dict[str, float] = {"width": options.width, "height": options.height}
        screenshot_path = None
        if outcome.succeeded and outcome.value is not None:
            size = {
                "width": outcome.value["clip"]["width"],
                "height": outcome.value["clip"]["height"],
            }
            screenshot_path = public_path(self.settings, outcome.value["path"])
            LOGGER.info("Screenshot generated: %s", screenshot_path)
        else:
            LOGGER.error(
                "Failed to capture %s after %d attempts", project_name, outcome.attempts
            )

        metadata = ScreenshotMetadata(
            url=url,
            final_url=observed["final_url"],
            page_title=observed["page_title"],
            load_time_ms=load_time_ms,
            content_detected=observed["content_detected"],
            hero_section_found=observed["hero_section_found"],
            screenshot_size=size,
        )
        error = None
        if not outcome.succeeded:
            error = str(outcome.error) or outcome.error.__class__.__name__
            if self.settings.vercel_bypass_secret:
                error = error.replace(self.settings.vercel_bypass_secret, "***")
        return ScreenshotResult(
            success=screenshot_path is not None,
            metadata=metadata,
            screenshot_path=screenshot_path,
            error=error,
            attempts=outcome.attempts,
        )

    async def capture_responsive(
        self,
        url: str,
        project_name: str,
        options: Optional[CaptureOptions] = None,
    ) -> Dict[str, ScreenshotResult]:
        """Capture every device preset in turn."""
        base = options or CaptureOptions()
        results: Dict[str, ScreenshotResult] = {}
        for device in DEVICE_PROFILES:
            LOGGER.info("Generating %s screenshot for %s", device, project_name)
            results[device] = await self.capture(
                url,
                project_name,
                replace(
                    base,
                    device=device,
                    max_wait=min(base.max_wait, RESPONSIVE_MAX_WAIT),
                ),
            )
        return results
