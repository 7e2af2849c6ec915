"""URL health testing and ranking.

Each candidate is loaded in its own tab of the shared browser session, the
page is inspected, and the observations are scored by
:mod:`previewer.scoring`. Testing a candidate never raises: failures become
zero-confidence candidates flagged as error pages.

Example usage:

    from previewer.browser import PlaywrightSession
    from previewer.url_tester import URLTester

    async with PlaywrightSession() as session:
        tester = URLTester(session)
        result = await tester.find_best_url(
            "My Cool App",
            deployment_url="https://my-cool-app.vercel.app",
        )
        print(result.best_url.url if result.best_url else "no candidate")
"""

from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from time import monotonic
from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

import httpx
import tldextract

from .browser import BrowserSession
from .candidates import (
    generate_sourced_candidates,
    with_vercel_bypass,
    without_vercel_bypass,
)
from .config import DEVICE_PROFILES, DESKTOP_USER_AGENT, DetectionPatterns, DeviceProfile
from .models import CandidateSource, URLCandidate, URLTestResult
from .scoring import PageSignals, score_candidate

LOGGER = logging.getLogger(__name__)

MIN_FALLBACK_CONFIDENCE = 30
MAX_BODY_TEXT_CHARS = 20_000
BLOCKED_RESOURCE_TYPES = frozenset({"media", "font"})

# Bundled public suffix snapshot only; no network fetch
_EXTRACT = tldextract.TLDExtract(suffix_list_urls=())

PAGE_SIGNALS_SCRIPT = """
(patterns) => {
  const count = (selectors) => {
    try {
      return document.querySelectorAll(selectors.join(', ')).length;
    } catch (e) {
      return 0;
    }
  };
  const exists = (selectors) => selectors.some((selector) => {
    try {
      return document.querySelector(selector) !== null;
    } catch (e) {
      return false;
    }
  });
  const bodyText = (document.body && document.body.innerText) || '';
  const lowered = bodyText.toLowerCase();
  const mentions = (needles) =>
    needles.some((needle) => lowered.includes(needle.toLowerCase()));
  const meta = document.querySelector('meta[name="description"]');
  return {
    title: document.title || '',
    bodyText: bodyText.slice(0, patterns.maxText),
    textLength: bodyText.length,
    loginMarkerInBody: mentions(patterns.loginIndicators),
    errorMarkerInBody: mentions(patterns.errorIndicators),
    imageCount: document.images.length,
    navigationCount: count(patterns.navigation),
    buttonCount: count(patterns.buttons),
    linkCount: document.links.length,
    structureCount: count(patterns.structure),
    hasMainContent: exists(patterns.mainContent),
    metaDescription: meta ? meta.getAttribute('content') : null,
  };
}
"""


@lru_cache(maxsize=256)
def _registrable_domain(host: str) -> Optional[str]:
    """Extract the registrable domain from a hostname."""
    if not host:
        return None
    extracted = _EXTRACT(host)
    if not extracted.domain or not extracted.suffix:
        return host
    return f"{extracted.domain}.{extracted.suffix}"


def _host(url: Optional[str]) -> str:
    if not url:
        return ""
    return (urlparse(url).hostname or "").lower()


def redirected_to_auth_host(
    requested_url: str, final_url: Optional[str], auth_domains: Iterable[str]
) -> bool:
    """True when the page left the requested site for a known sign-in host."""
    requested = _registrable_domain(_host(requested_url))
    final = _registrable_domain(_host(final_url))
    if not requested or not final or requested == final:
        return False
    return final in set(auth_domains)


def select_best(candidates: Sequence[URLCandidate]) -> Optional[URLCandidate]:
    """Pick from candidates already sorted by descending confidence."""
    for candidate in candidates:
        if candidate.screenshotable:
            return candidate
    for candidate in candidates:
        if candidate.confidence > MIN_FALLBACK_CONFIDENCE:
            return candidate
    return candidates[0] if candidates else None


def rank_candidates(candidates: Iterable[URLCandidate]) -> List[URLCandidate]:
    return sorted(candidates, key=lambda candidate: candidate.confidence, reverse=True)


class URLTester:
    """Score candidate URLs for screenshot suitability."""

    def __init__(
        self,
        session: BrowserSession,
        *,
        patterns: Optional[DetectionPatterns] = None,
        profile: Optional[DeviceProfile] = None,
        max_concurrent: int = 3,
        test_timeout: float = 30.0,
        batch_delay: float = 1.0,
        bypass_secret: Optional[str] = None,
    ) -> None:
        self._session = session
        self.patterns = patterns or DetectionPatterns()
        self.profile = profile or DEVICE_PROFILES["desktop"]
        self.max_concurrent = max(1, max_concurrent)
        self.test_timeout = test_timeout
        self.batch_delay = batch_delay
        self.bypass_secret = bypass_secret

    @staticmethod
    def _allow_request(resource_type: str, url: str) -> bool:
        return resource_type not in BLOCKED_RESOURCE_TYPES

    def _signal_patterns(self) -> dict:
        return {
            "navigation": self.patterns.navigation_selectors,
            "buttons": self.patterns.button_selectors,
            "structure": self.patterns.structure_selectors,
            "mainContent": self.patterns.main_content_selectors,
            "maxText": MAX_BODY_TEXT_CHARS,
            "loginIndicators": self.patterns.login_indicators,
            "errorIndicators": self.patterns.error_indicators,
        }

    async def test_candidate(self, url: str, source: CandidateSource) -> URLCandidate:
        """Load *url* and score it. Never raises."""
        started = monotonic()
        candidate = URLCandidate(url=url, source=source)
        page = None

        try:
            page = await self._session.new_page(self.profile)
            await page.set_request_filter(self._allow_request)

            LOGGER.debug("Testing URL: %s", url)
            response = await page.goto(
                with_vercel_bypass(url, self.bypass_secret),
                timeout=self.test_timeout,
            )

            candidate.load_time_ms = int((monotonic() - started) * 1000)
            candidate.status_code = response.status if response else 0
            candidate.final_url = without_vercel_bypass(page.url or url)

            raw = await page.evaluate(PAGE_SIGNALS_SCRIPT, self._signal_patterns())
            raw = raw or {}
            signals = PageSignals.from_dict(raw)
            if not signals.title:
                try:
                    signals.title = await page.title()
                except Exception:
                    signals.title = ""
            candidate.page_title = signals.title
            candidate.meta_description = raw.get("metaDescription")

            gated = redirected_to_auth_host(
                url, candidate.final_url, self.patterns.auth_domains
            )
            if gated:
                LOGGER.info(
                    "Redirected off-site to sign-in host: %s -> %s",
                    url,
                    candidate.final_url,
                )
            score_candidate(candidate, signals, self.patterns, gated=gated)

            LOGGER.info(
                "URL tested: %s (score: %.2f, screenshotable: %s)",
                url,
                candidate.confidence,
                candidate.screenshotable,
            )
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            if self.bypass_secret:
                message = message.replace(self.bypass_secret, "***")
            LOGGER.warning("Failed to test URL %s: %s", url, message)
            candidate.load_time_ms = int((monotonic() - started) * 1000)
            candidate.is_error_page = True
            candidate.confidence = 0.0
            candidate.screenshotable = False
            candidate.error = message
        finally:
            if page is not None:
                await page.close()

        return candidate

    async def test_many(
        self, pairs: Sequence[Tuple[str, CandidateSource]]
    ) -> List[URLCandidate]:
        """Test candidates in bounded batches, pausing between batches."""
        results: List[URLCandidate] = []
        for start in range(0, len(pairs), self.max_concurrent):
            batch = pairs[start : start + self.max_concurrent]
            outcomes = await asyncio.gather(
                *(self.test_candidate(url, source) for url, source in batch),
                return_exceptions=True,
            )
            for (url, _), outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    LOGGER.warning("Candidate test crashed for %s: %s", url, outcome)
                    continue
                results.append(outcome)

            if start + self.max_concurrent < len(pairs) and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)
        return results

    async def find_best_url(
        self,
        project_name: str,
        deployment_url: Optional[str] = None,
        source_repo_url: Optional[str] = None,
    ) -> URLTestResult:
        """Generate, test and rank every candidate for a project."""
        pairs = generate_sourced_candidates(
            project_name, deployment_url, source_repo_url
        )
        LOGGER.info("Generated %d URL candidates for %s", len(pairs), project_name)

        ranked = rank_candidates(await self.test_many(pairs))
        best = select_best(ranked)

        if best is not None:
            LOGGER.info(
                "Best URL for %s: %s (score: %.2f)",
                project_name,
                best.url,
                best.confidence,
            )
        else:
            LOGGER.info("No URL candidates for %s", project_name)

        return URLTestResult(
            original_url=deployment_url or (pairs[0][0] if pairs else ""),
            best_url=best,
            all_candidates=ranked,
        )

    async def quick_health_check(self, url: str, *, timeout: float = 10.0) -> bool:
        """HEAD request reachability check, without a browser."""
        try:
            async with httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=True,
                headers={"User-Agent": DESKTOP_USER_AGENT},
            ) as client:
                response = await client.head(
                    with_vercel_bypass(url, self.bypass_secret)
                )
        except httpx.HTTPError as exc:
            LOGGER.debug("Health check failed for %s: %s", url, exc)
            return False
        return response.is_success
