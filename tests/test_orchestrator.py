"""Tests for previewer.orchestrator module."""

from __future__ import annotations

from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest

from previewer.github import GitHubClient
from previewer.models import FallbackResult, InvalidProjectError, ProjectInput
from previewer.orchestrator import PreviewOrchestrator

DEPLOYMENT = "https://my-cool-app.vercel.app"


def _github():
    github = MagicMock(spec=GitHubClient)
    github.fetch_readme = AsyncMock(return_value=None)
    github.fetch_repo_metadata = AsyncMock(return_value=None)
    return github


@pytest.fixture
def build(settings, fast_options):
    def _build(session, **kwargs):
        kwargs.setdefault("github", _github())
        return PreviewOrchestrator(
            session, settings, capture_options=fast_options, **kwargs
        )

    return _build


class TestGenerateSmartScreenshot:
    @pytest.mark.asyncio
    async def test_captures_healthy_deployment(self, build, make_session, make_site):
        session = make_session({DEPLOYMENT: make_site()})
        orchestrator = build(session)

        result = await orchestrator.generate_smart_screenshot(
            ProjectInput(id="1", name="My Cool App", deployment_url=DEPLOYMENT)
        )

        assert result.success
        assert result.strategy == "capture"
        assert result.final_image_path.startswith("/images/projects/generated/my-cool-app-")
        assert result.metadata.total_attempts == 1
        assert result.metadata.best_url == DEPLOYMENT
        assert result.metadata.confidence == 100
        assert result.fallback_result is None
        assert result.url_test_result.best_url.url == DEPLOYMENT
        assert result.metadata.processing_time_ms >= 0

    @pytest.mark.asyncio
    async def test_protected_deployment_captured_with_share_token(
        self, make_session, make_site, settings, fast_options
    ):
        session = make_session({DEPLOYMENT + "?_vercel_share=tok": make_site()})
        orchestrator = PreviewOrchestrator(
            session,
            replace(settings, vercel_bypass_secret="tok"),
            capture_options=fast_options,
            github=_github(),
        )

        result = await orchestrator.generate_smart_screenshot(
            ProjectInput(id="1", name="My Cool App", deployment_url=DEPLOYMENT)
        )

        assert result.success
        assert result.strategy == "capture"
        assert result.metadata.best_url == DEPLOYMENT

    @pytest.mark.asyncio
    async def test_login_gate_goes_to_placeholder(
        self, build, make_session, make_site, login_signals
    ):
        site = make_site(
            final_url="https://vercel.com/login?next=%2F",
            title="Log in to Vercel",
            signals=login_signals,
        )
        session = make_session({DEPLOYMENT: site})
        orchestrator = build(session)

        result = await orchestrator.generate_smart_screenshot(
            ProjectInput(id="1", name="My Cool App", deployment_url=DEPLOYMENT)
        )

        assert result.success
        assert result.strategy == "fallback-placeholder"
        assert result.final_image_path.startswith("/images/projects/placeholders/")
        assert result.metadata.total_attempts == 1
        assert site.screenshot_calls == 0
        assert session.screenshot_count == 0
        assert result.url_test_result.best_url.is_login_page

    @pytest.mark.asyncio
    async def test_transient_failures_retried(self, build, make_session, make_site):
        site = make_site(screenshot_failures=2)
        orchestrator = build(make_session({DEPLOYMENT: site}))

        result = await orchestrator.generate_smart_screenshot(
            ProjectInput(id="1", name="My Cool App", deployment_url=DEPLOYMENT)
        )

        assert result.success
        assert result.strategy == "capture"
        assert result.metadata.total_attempts == 3
        assert result.screenshot_result.attempts == 3

    @pytest.mark.asyncio
    async def test_manual_url_used(self, build, make_session, make_site):
        manual = "https://portfolio.example.org/cool"
        orchestrator = build(make_session({manual: make_site()}))

        result = await orchestrator.generate_smart_screenshot(
            ProjectInput(id="1", name="My Cool App", manual_urls=[manual])
        )

        assert result.success
        assert result.strategy == "capture"
        assert result.metadata.best_url == manual
        sources = {c.url: c.source for c in result.url_test_result.all_candidates}
        assert sources[manual] == "manual"

    @pytest.mark.asyncio
    async def test_alternative_after_best_fails(self, build, make_session, make_site):
        manual = "https://portfolio.example.org/cool"
        broken = make_site(screenshot_failures=10)
        session = make_session({DEPLOYMENT: broken, manual: make_site()})
        orchestrator = build(session)

        result = await orchestrator.generate_smart_screenshot(
            ProjectInput(
                id="1", name="My Cool App", deployment_url=DEPLOYMENT, manual_urls=[manual]
            )
        )

        assert result.success
        assert result.strategy == "capture"
        assert broken.screenshot_calls == 3
        assert result.metadata.total_attempts == 4
        assert result.metadata.best_url == manual

    @pytest.mark.asyncio
    async def test_everything_fails_then_placeholder(self, build, make_session, make_site):
        broken = make_site(screenshot_failures=100)
        orchestrator = build(make_session({DEPLOYMENT: broken}))

        result = await orchestrator.generate_smart_screenshot(
            ProjectInput(id="1", name="My Cool App", deployment_url=DEPLOYMENT)
        )

        assert result.success
        assert result.strategy == "fallback-placeholder"
        assert result.metadata.total_attempts == 4
        assert result.screenshot_result is not None
        assert not result.screenshot_result.success

    @pytest.mark.asyncio
    async def test_invalid_input_rejected_before_browser(self, build, make_session):
        session = make_session({})
        orchestrator = build(session)

        with pytest.raises(InvalidProjectError):
            await orchestrator.generate_smart_screenshot(ProjectInput(id="1", name="  "))
        with pytest.raises(InvalidProjectError):
            await orchestrator.generate_smart_screenshot(ProjectInput(id="", name="App"))
        assert session.pages == []

    @pytest.mark.asyncio
    async def test_ranking_crash_still_falls_back(self, build, make_session):
        tester = MagicMock()
        tester.find_best_url = AsyncMock(side_effect=RuntimeError("browser crashed"))
        orchestrator = build(make_session({}), tester=tester)

        result = await orchestrator.generate_smart_screenshot(
            ProjectInput(id="1", name="My Cool App", deployment_url=DEPLOYMENT)
        )

        assert result.success
        assert result.strategy == "fallback-placeholder"

    @pytest.mark.asyncio
    async def test_fallback_crash_is_terminal_error(self, build, make_session):
        fallback = MagicMock()
        fallback.get_best_fallback = AsyncMock(side_effect=RuntimeError("disk full"))
        orchestrator = build(make_session({}), fallback=fallback)

        result = await orchestrator.generate_smart_screenshot(
            ProjectInput(id="1", name="My Cool App")
        )

        assert not result.success
        assert "Fallback failed: disk full" in result.error
        assert result.final_image_path is None

    @pytest.mark.asyncio
    async def test_fallback_unsuccessful(self, build, make_session):
        fallback = MagicMock()
        fallback.get_best_fallback = AsyncMock(
            return_value=FallbackResult(success=False, error="no space", tried=["x"])
        )
        orchestrator = build(make_session({}), fallback=fallback)

        result = await orchestrator.generate_smart_screenshot(
            ProjectInput(id="1", name="My Cool App")
        )

        assert not result.success
        assert result.error == "All strategies failed. Last error: no space"
        assert result.metadata.total_attempts == 1

    @pytest.mark.asyncio
    async def test_readme_fallback_strategy_name(self, build, make_session):
        github = _github()
        github.fetch_readme = AsyncMock(return_value="![shot](docs/screenshot.png)")
        orchestrator = build(make_session({}), github=github)

        result = await orchestrator.generate_smart_screenshot(
            ProjectInput(
                id="1", name="My Cool App", source_repo_url="https://github.com/me/app"
            )
        )

        assert result.strategy == "fallback-readme"
        assert result.final_image_path == (
            "https://raw.githubusercontent.com/me/app/main/docs/screenshot.png"
        )


class TestGenerateBulk:
    @pytest.mark.asyncio
    async def test_every_project_reported(self, build, make_session, make_site):
        names = ["Alpha App", "Beta App", "Gamma App", "Delta App", "Epsilon App"]
        sites = {}
        projects = []
        for index, name in enumerate(names, start=1):
            if index == 3:
                projects.append(ProjectInput(id=str(index), name=name))
                continue
            url = f"https://{index}.example.org"
            sites[url] = make_site()
            projects.append(ProjectInput(id=str(index), name=name, deployment_url=url))
        orchestrator = build(make_session(sites))

        bulk = await orchestrator.generate_bulk(projects)

        assert list(bulk.results) == ["1", "2", "3", "4", "5"]
        assert bulk.results["3"].strategy == "fallback-placeholder"
        assert bulk.success_count == 5
        assert bulk.strategy_counts == {"capture": 4, "fallback-placeholder": 1}

    @pytest.mark.asyncio
    async def test_invalid_project_rejects_whole_batch(self, build, make_session):
        session = make_session({})
        orchestrator = build(session)

        with pytest.raises(InvalidProjectError):
            await orchestrator.generate_bulk(
                [ProjectInput(id="1", name="Fine"), ProjectInput(id="2", name="")]
            )
        assert session.pages == []

    @pytest.mark.asyncio
    async def test_project_crash_isolated(self, build, make_session, monkeypatch):
        orchestrator = build(make_session({}))
        original = orchestrator.generate_smart_screenshot

        async def flaky(project):
            if project.id == "2":
                raise RuntimeError("unexpected")
            return await original(project)

        monkeypatch.setattr(orchestrator, "generate_smart_screenshot", flaky)

        bulk = await orchestrator.generate_bulk(
            [
                ProjectInput(id="1", name="One"),
                ProjectInput(id="2", name="Two"),
                ProjectInput(id="3", name="Three"),
            ]
        )

        assert set(bulk.results) == {"1", "2", "3"}
        assert not bulk.results["2"].success
        assert bulk.results["2"].error == "unexpected"
        assert bulk.success_count == 2
        assert bulk.strategy_counts == {"fallback-placeholder": 2}
        assert bulk.results["2"].to_dict()["strategy"] is None


class TestQuickHealthCheck:
    @pytest.mark.asyncio
    async def test_healthy(self, build, make_session, make_site):
        orchestrator = build(make_session({DEPLOYMENT: make_site()}))
        orchestrator.tester.quick_health_check = AsyncMock(return_value=True)

        report = await orchestrator.quick_health_check(DEPLOYMENT)

        assert report.accessible
        assert report.screenshotable
        assert report.issues == []

    @pytest.mark.asyncio
    async def test_unreachable(self, build, make_session):
        orchestrator = build(make_session({}))
        orchestrator.tester.quick_health_check = AsyncMock(return_value=False)

        report = await orchestrator.quick_health_check(DEPLOYMENT)

        assert not report.accessible
        assert report.issues == ["URL not accessible"]

    @pytest.mark.asyncio
    async def test_login_page(self, build, make_session, make_site, login_signals):
        site = make_site(final_url="https://vercel.com/login", signals=login_signals)
        orchestrator = build(make_session({DEPLOYMENT: site}))
        orchestrator.tester.quick_health_check = AsyncMock(return_value=True)

        report = await orchestrator.quick_health_check(DEPLOYMENT)

        assert report.accessible
        assert not report.screenshotable
        assert "Login page detected" in report.issues
        assert "No main content detected" in report.issues

    @pytest.mark.asyncio
    async def test_check_crash(self, build, make_session):
        orchestrator = build(make_session({}))
        orchestrator.tester.quick_health_check = AsyncMock(side_effect=RuntimeError("boom"))

        report = await orchestrator.quick_health_check(DEPLOYMENT)

        assert not report.accessible
        assert report.issues == ["Health check failed: boom"]


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_context_manager_closes_session(self, build, make_session):
        session = make_session({})
        async with build(session) as orchestrator:
            assert orchestrator.session is session
        assert session.closed

    @pytest.mark.asyncio
    async def test_closes_session_on_error(self, build, make_session):
        session = make_session({})
        with pytest.raises(InvalidProjectError):
            async with build(session) as orchestrator:
                await orchestrator.generate_smart_screenshot(ProjectInput(id="1", name=""))
        assert session.closed
