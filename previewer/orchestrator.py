"""Per-project preview pipeline: rank URLs, capture, fall back.

Example usage:

    from previewer import PreviewOrchestrator, ProjectInput

    async with PreviewOrchestrator() as orchestrator:
        result = await orchestrator.generate_smart_screenshot(
            ProjectInput(id="42", name="My Cool App",
                         deployment_url="https://my-cool-app.vercel.app")
        )
        print(result.strategy, result.final_image_path)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from time import monotonic
from typing import Iterable, List, Optional, Set

from .browser import BrowserSession, PlaywrightSession
from .capture import CaptureOptions, ScreenshotCapturer
from .config import DetectionPatterns, PreviewSettings
from .fallback import FallbackChain
from .github import GitHubClient
from .models import (
    FALLBACK_STRATEGY_NAMES,
    BulkResult,
    HealthReport,
    PipelineResult,
    ProjectInput,
    URLCandidate,
    URLTestResult,
)
from .url_tester import URLTester, rank_candidates, select_best

LOGGER = logging.getLogger(__name__)

PRIMARY_RETRIES = 2
ALTERNATIVE_RETRIES = 1
MAX_ALTERNATIVES = 3
MIN_ALTERNATIVE_CONFIDENCE = 20
SLOW_LOAD_MS = 15_000


def _elapsed_ms(started: float) -> int:
    return int((monotonic() - started) * 1000)


class PreviewOrchestrator:
    """Single entry point per project.

    Owns one browser session shared by the URL tester and the capture
    engine. Use as an async context manager (or call :meth:`aclose`) so the
    browser is closed even when a run fails.
    """

    def __init__(
        self,
        session: Optional[BrowserSession] = None,
        settings: Optional[PreviewSettings] = None,
        *,
        patterns: Optional[DetectionPatterns] = None,
        capture_options: Optional[CaptureOptions] = None,
        github: Optional[GitHubClient] = None,
        tester: Optional[URLTester] = None,
        capturer: Optional[ScreenshotCapturer] = None,
        fallback: Optional[FallbackChain] = None,
    ) -> None:
        self.settings = settings or PreviewSettings.from_env()
        self.patterns = patterns or DetectionPatterns()
        self.session = session or PlaywrightSession()
        self.capture_options = capture_options or CaptureOptions()
        self.tester = tester or URLTester(
            self.session,
            patterns=self.patterns,
            batch_delay=self.settings.batch_delay,
            bypass_secret=self.settings.vercel_bypass_secret,
        )
        self.capturer = capturer or ScreenshotCapturer(
            self.session, self.settings, self.patterns
        )
        self.fallback = fallback or FallbackChain(
            self.settings,
            github=github or GitHubClient(self.settings.github_token),
        )

    async def aclose(self) -> None:
        await self.session.aclose()

    async def __aenter__(self) -> "PreviewOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------------

    async def _rank(self, project: ProjectInput) -> URLTestResult:
        url_result = await self.tester.find_best_url(
            project.name, project.deployment_url, project.source_repo_url
        )
        manual_urls = [url for url in project.manual_urls if url]
        if not manual_urls:
            return url_result

        LOGGER.info("Testing %d manual override URLs for %s", len(manual_urls), project.name)
        manual = await self.tester.test_many([(url, "manual") for url in manual_urls])
        ranked = rank_candidates([*url_result.all_candidates, *manual])
        url_result.all_candidates = ranked
        url_result.best_url = select_best(ranked)
        return url_result

    @staticmethod
    def _alternatives(
        candidates: Iterable[URLCandidate], exclude: Set[str]
    ) -> List[URLCandidate]:
        eligible = [
            candidate
            for candidate in candidates
            if candidate.confidence > MIN_ALTERNATIVE_CONFIDENCE
            and not candidate.is_login_page
            and not candidate.is_error_page
            and candidate.url not in exclude
        ]
        return eligible[:MAX_ALTERNATIVES]

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    async def _try_capture(
        self,
        result: PipelineResult,
        project: ProjectInput,
        candidate: URLCandidate,
        retries: int,
    ) -> bool:
        shot = await self.capturer.capture(
            candidate.url,
            project.name,
            replace(self.capture_options, retry_count=retries),
        )
        result.metadata.total_attempts += shot.attempts
        if not shot.success:
            LOGGER.warning(
                "Capture failed for %s at %s: %s", project.name, candidate.url, shot.error
            )
            if result.screenshot_result is None:
                result.screenshot_result = shot
            return False

        result.success = True
        result.strategy = "capture"
        result.final_image_path = shot.screenshot_path
        result.screenshot_result = shot
        result.metadata.best_url = candidate.url
        result.metadata.confidence = candidate.confidence
        return True

    async def _capture_phase(self, result: PipelineResult, project: ProjectInput) -> bool:
        LOGGER.info("Testing URLs for %s", project.name)
        url_result = await self._rank(project)
        result.url_test_result = url_result

        attempted: Set[str] = set()
        best = url_result.best_url
        if best is not None:
            result.metadata.best_url = best.url
            result.metadata.confidence = best.confidence

        if best is not None and best.screenshotable:
            LOGGER.info("Attempting screenshot for %s at %s", project.name, best.url)
            attempted.add(best.url)
            if await self._try_capture(result, project, best, PRIMARY_RETRIES):
                return True

        for candidate in self._alternatives(url_result.all_candidates, attempted):
            LOGGER.info("Trying alternative URL for %s: %s", project.name, candidate.url)
            attempted.add(candidate.url)
            if await self._try_capture(result, project, candidate, ALTERNATIVE_RETRIES):
                return True
        return False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate_smart_screenshot(self, project: ProjectInput) -> PipelineResult:
        """Produce the best available preview image for *project*.

        Raises:
            InvalidProjectError: If the input is missing its id or name.
                Nothing else propagates; failures are reported on the result.
        """
        project.validate()
        started = monotonic()
        result = PipelineResult(project_id=project.id)
        LOGGER.info("Starting preview generation for %s", project.name)

        capture_error: Optional[str] = None
        try:
            if await self._capture_phase(result, project):
                LOGGER.info("Screenshot successful for %s", project.name)
                result.metadata.processing_time_ms = _elapsed_ms(started)
                return result
        except Exception as exc:
            LOGGER.exception("Capture phase failed for %s", project.name)
            capture_error = str(exc) or exc.__class__.__name__

        LOGGER.info("Using fallback strategies for %s", project.name)
        result.metadata.total_attempts += 1
        try:
            fallback_result = await self.fallback.get_best_fallback(
                project.name,
                project.source_repo_url,
                project.framework,
                list(project.technologies),
                description=project.description,
                category=project.category,
            )
        except Exception as exc:
            LOGGER.exception("Fallback chain failed for %s", project.name)
            result.success = False
            result.error = f"Fallback failed: {exc}"
            if capture_error:
                result.error = f"Capture failed: {capture_error}. {result.error}"
            result.metadata.processing_time_ms = _elapsed_ms(started)
            return result

        result.fallback_result = fallback_result
        if fallback_result.success and fallback_result.fallback_type:
            result.success = True
            result.final_image_path = fallback_result.image_path
            result.strategy = FALLBACK_STRATEGY_NAMES[fallback_result.fallback_type]
            LOGGER.info("Fallback successful for %s: %s", project.name, result.strategy)
        else:
            result.success = False
            result.error = f"All strategies failed. Last error: {fallback_result.error}"
            LOGGER.error("All strategies failed for %s", project.name)

        result.metadata.processing_time_ms = _elapsed_ms(started)
        return result

    async def generate_bulk(self, projects: List[ProjectInput]) -> BulkResult:
        """Process *projects* one after another with a pause in between."""
        for project in projects:
            project.validate()

        bulk = BulkResult()
        total = len(projects)
        LOGGER.info("Starting bulk preview generation for %d projects", total)

        for index, project in enumerate(projects):
            try:
                result = await self.generate_smart_screenshot(project)
            except Exception as exc:
                LOGGER.exception("Failed to process project %s", project.name)
                result = PipelineResult(
                    project_id=project.id,
                    success=False,
                    error=str(exc) or exc.__class__.__name__,
                )
            bulk.results[project.id] = result
            LOGGER.info(
                "Progress: %d/%d (%d successful)",
                len(bulk.results),
                total,
                bulk.success_count,
            )
            if index + 1 < total and self.settings.project_delay > 0:
                await asyncio.sleep(self.settings.project_delay)

        LOGGER.info(
            "Bulk processing complete: %d/%d successful, strategies: %s",
            bulk.success_count,
            total,
            bulk.strategy_counts,
        )
        return bulk

    async def quick_health_check(self, url: str) -> HealthReport:
        """Reachability plus a full candidate test when reachable."""
        report = HealthReport(url=url, accessible=False)
        try:
            report.accessible = await self.tester.quick_health_check(url)
            if not report.accessible:
                report.issues.append("URL not accessible")
                return report

            candidate = await self.tester.test_candidate(url, "manual")
            report.screenshotable = candidate.screenshotable
            report.confidence = candidate.confidence
            if candidate.is_login_page:
                report.issues.append("Login page detected")
            if candidate.is_error_page:
                report.issues.append("Error page detected")
            if not candidate.has_main_content:
                report.issues.append("No main content detected")
            if candidate.load_time_ms > SLOW_LOAD_MS:
                report.issues.append("Slow loading time")
        except Exception as exc:
            LOGGER.warning("Health check failed for %s: %s", url, exc)
            report.accessible = False
            report.screenshotable = False
            report.confidence = 0.0
            report.issues.append(f"Health check failed: {exc}")
        return report
