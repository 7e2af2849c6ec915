"""Global pytest hooks and shared fakes.

The accounting guard fails the session on any skipped, deselected or xfail
test. The fakes implement the browser capability interface in memory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pytest

from previewer.browser import NavigationResponse
from previewer.capture import ANALYZE_SCRIPT, HERO_RECT_SCRIPT, HIDE_OVERLAYS_SCRIPT
from previewer.capture import CaptureOptions
from previewer.config import PreviewSettings
from previewer.url_tester import PAGE_SIGNALS_SCRIPT


@dataclass
class _TestAccounting:
    deselected: int = 0
    skipped: int = 0
    xfailed: int = 0
    xpassed: int = 0


_ACCOUNTING = _TestAccounting()


def pytest_deselected(items):  # pragma: no cover - pytest hook
    _ACCOUNTING.deselected += len(items)


def pytest_runtest_logreport(report):  # pragma: no cover - pytest hook
    if report.when not in {"setup", "call"}:
        return

    is_xfail = bool(getattr(report, "wasxfail", False))
    if is_xfail:
        if report.outcome == "skipped":
            _ACCOUNTING.xfailed += 1
        elif report.outcome == "passed":
            _ACCOUNTING.xpassed += 1
        return

    if report.outcome == "skipped":
        _ACCOUNTING.skipped += 1


def pytest_sessionfinish(session, exitstatus):  # pragma: no cover - pytest hook
    violations = []
    if _ACCOUNTING.deselected:
        violations.append(f"deselected={_ACCOUNTING.deselected}")
    if _ACCOUNTING.skipped:
        violations.append(f"skipped={_ACCOUNTING.skipped}")
    if _ACCOUNTING.xfailed:
        violations.append(f"xfailed={_ACCOUNTING.xfailed}")
    if _ACCOUNTING.xpassed:
        violations.append(f"xpassed={_ACCOUNTING.xpassed}")

    if not violations:
        return

    reporter = session.config.pluginmanager.get_plugin("terminalreporter")
    if reporter:
        reporter.write_sep(
            "=",
            "Strict guard failed: test accounting violations detected "
            f"({', '.join(violations)})",
        )
        reporter.write_line(
            "Hard guard requires zero skipped/deselected/xfail/xpass tests."
        )

    session.exitstatus = 1


# ---------------------------------------------------------------------------
# In-memory browser
# ---------------------------------------------------------------------------

RICH_SIGNALS: Dict[str, Any] = {
    "title": "My Cool App",
    "bodyText": "Welcome to my cool app. Build and ship great things fast. " * 20,
    "textLength": 1160,
    "imageCount": 5,
    "navigationCount": 1,
    "buttonCount": 3,
    "linkCount": 10,
    "structureCount": 4,
    "hasMainContent": True,
    "metaDescription": "A cool app",
}

LOGIN_SIGNALS: Dict[str, Any] = {
    "title": "Log in to Vercel",
    "bodyText": "Continue with GitHub. Enter your email.",
    "textLength": 40,
    "imageCount": 1,
    "navigationCount": 0,
    "buttonCount": 2,
    "linkCount": 2,
    "structureCount": 0,
    "hasMainContent": False,
    "metaDescription": None,
}


@dataclass
class FakeSite:
    """How one URL behaves in the fake browser."""

    status: int = 200
    final_url: Optional[str] = None
    title: str = "My Cool App"
    signals: Dict[str, Any] = field(default_factory=lambda: dict(RICH_SIGNALS))
    has_hero: bool = True
    hero: Optional[Dict[str, float]] = field(
        default_factory=lambda: {"x": 0, "y": 80, "width": 1200, "height": 400}
    )
    screenshot_failures: int = 0
    screenshot_bytes: bytes = b"\xff\xd8\xff\xe0fake-jpeg"
    screenshot_calls: int = 0


class FakePage:
    def __init__(self, session: "FakeSession", profile: Any) -> None:
        self.session = session
        self.profile = profile
        self.site: Optional[FakeSite] = None
        self.request_filter = None
        self.visited: List[str] = []
        self.evaluated: List[str] = []
        self.screenshot_kwargs: List[Dict[str, Any]] = []
        self.closed = False
        self._url = ""

    @property
    def url(self) -> str:
        return self._url

    async def set_request_filter(self, allow) -> None:
        self.request_filter = allow

    async def goto(self, url, *, timeout, wait_until="domcontentloaded"):
        self.visited.append(url)
        site = self.session.sites.get(url)
        if site is None:
            raise RuntimeError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        self.site = site
        self._url = site.final_url or url
        return NavigationResponse(status=site.status, ok=200 <= site.status < 300)

    async def title(self) -> str:
        return self.site.title if self.site else ""

    async def evaluate(self, script, arg=None):
        self.evaluated.append(script)
        if script == PAGE_SIGNALS_SCRIPT:
            return dict(self.site.signals)
        if script == ANALYZE_SCRIPT:
            return {"hasContent": True, "hasHeroSection": self.site.has_hero}
        if script == HIDE_OVERLAYS_SCRIPT:
            return 2
        if script == HERO_RECT_SCRIPT:
            return {
                "hero": self.site.hero,
                "viewport": {"width": self.profile.width, "height": self.profile.height},
            }
        raise AssertionError("unexpected script")

    async def wait_for_selector(self, selector, *, timeout):
        return None

    async def wait_for_function(self, script, *, timeout, arg=None):
        return None

    async def screenshot(self, *, quality, full_page=False, clip=None):
        self.screenshot_kwargs.append(
            {"quality": quality, "full_page": full_page, "clip": clip}
        )
        self.site.screenshot_calls += 1
        if self.site.screenshot_failures > 0:
            self.site.screenshot_failures -= 1
            raise RuntimeError("Execution context was destroyed")
        return self.site.screenshot_bytes

    async def close(self) -> None:
        self.closed = True


class FakeSession:
    def __init__(self, sites: Optional[Dict[str, FakeSite]] = None) -> None:
        self.sites: Dict[str, FakeSite] = dict(sites or {})
        self.pages: List[FakePage] = []
        self.closed = False

    async def new_page(self, profile) -> FakePage:
        page = FakePage(self, profile)
        self.pages.append(page)
        return page

    async def aclose(self) -> None:
        self.closed = True

    @property
    def screenshot_count(self) -> int:
        return sum(len(page.screenshot_kwargs) for page in self.pages)


@pytest.fixture
def make_site():
    return FakeSite


@pytest.fixture
def make_session():
    return FakeSession


@pytest.fixture
def login_signals() -> Dict[str, Any]:
    return dict(LOGIN_SIGNALS)


@pytest.fixture
def settings(tmp_path) -> PreviewSettings:
    return PreviewSettings(
        public_dir=tmp_path / "public",
        store_path=tmp_path / "projects.json",
        admin_secret="s3cret",
        github_token=None,
        project_delay=0,
        batch_delay=0,
    )


@pytest.fixture
def fast_options() -> CaptureOptions:
    return CaptureOptions(max_wait=0, settle_delay=0, retry_backoff=0)
