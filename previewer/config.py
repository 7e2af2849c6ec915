"""Pattern tables, device presets and runtime settings for the pipeline."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

LOGGER = logging.getLogger(__name__)

DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

# Keywords matched against the lowercased title, body text and final URL
LOGIN_INDICATORS: List[str] = [
    "login",
    "sign in",
    "authentication",
    "log in to vercel",
    "continue to vercel",
    "enter your email",
    "continue with",
    "authenticate",
    "please sign in",
]

# Host-specific auth paths matched against the final URL only
LOGIN_URL_FRAGMENTS: List[str] = [
    "vercel.com/login",
    "/auth/",
    "github.com/login",
    "netlify.com/login",
]

# Registrable domains of hosted sign-in pages; an off-site redirect to one of
# these is treated as a login gate
AUTH_DOMAINS: List[str] = [
    "vercel.com",
    "github.com",
    "netlify.com",
    "google.com",
    "auth0.com",
    "okta.com",
]

ERROR_INDICATORS: List[str] = [
    "404",
    "not found",
    "error",
    "page not found",
    "oops",
]

MAIN_CONTENT_SELECTORS: List[str] = [
    "main",
    "#app",
    "#root",
    ".app",
    ".container",
    "article",
    ".content",
    "#main",
    ".main-content",
    "section[role='main']",
    "[data-testid='main']",
]

NAVIGATION_SELECTORS: List[str] = [
    "nav",
    ".nav",
    ".navbar",
    ".navigation",
]

BUTTON_SELECTORS: List[str] = [
    "button",
    ".btn",
    "[role='button']",
]

STRUCTURE_SELECTORS: List[str] = [
    "section",
    "article",
    "aside",
    "header",
    "footer",
]

# Readiness selectors raced before capture
READY_CONTENT_SELECTORS: List[str] = [
    "main",
    "#app",
    "#root",
    ".app",
    "[role='main']",
    ".container",
]

READY_NAVIGATION_SELECTORS: List[str] = [
    "nav",
    ".nav",
    ".navbar",
    ".navigation",
    "header",
]

LOADING_SELECTORS: List[str] = [
    ".loading",
    ".spinner",
    "[class*='loading']",
]

HERO_SELECTORS: List[str] = [
    ".hero",
    ".banner",
    ".jumbotron",
    ".intro",
    ".landing",
    "[class*='hero']",
    "[class*='banner']",
    "[id*='hero']",
    "section:first-of-type",
    ".container > section:first-child",
    "main > section:first-child",
    ".main-content > section:first-child",
]

OVERLAY_SELECTORS: List[str] = [
    # Cookie banners
    "[class*='cookie']",
    "[id*='cookie']",
    ".cookie-consent",
    ".gdpr-banner",
    ".cookie-notice",
    ".cookie-bar",
    ".cookies-banner",
    "#onetrust-banner-sdk",
    ".cky-consent-container",
    # Modals and popups
    ".modal",
    ".popup",
    ".overlay",
    "[class*='modal']",
    "[class*='popup']",
    "[class*='overlay']",
    ".dialog",
    "[role='dialog']",
    # Chat widgets
    "[class*='chat']",
    "[id*='chat']",
    ".intercom",
    ".zendesk",
    ".helpscout",
    ".drift",
    ".livechat",
    # Newsletter popups
    "[class*='newsletter']",
    "[class*='subscribe']",
    ".mailchimp",
    # Notification bars
    ".notification",
    ".alert",
    ".banner",
    "[class*='notification']",
    ".announcement",
    ".promo-bar",
    # Loading and video overlays
    ".loading-overlay",
    ".spinner-overlay",
    "[class*='loading-overlay']",
    ".video-overlay",
    ".play-button-overlay",
]

# Image URLs containing one of these are loaded during capture
PRIORITY_IMAGE_HINTS: List[str] = [
    "logo",
    "hero",
    "banner",
    "og-image",
]

# Media URLs containing one of these are loaded during capture
PRIORITY_MEDIA_HINTS: List[str] = [
    "hero",
    "banner",
]


@dataclass
class DetectionPatterns:
    """Heuristic tables used for page classification.

    Injected into the URL tester and the capture engine so that they can be
    extended or tested without a browser.
    """

    login_indicators: List[str] = field(default_factory=lambda: list(LOGIN_INDICATORS))
    login_url_fragments: List[str] = field(
        default_factory=lambda: list(LOGIN_URL_FRAGMENTS)
    )
    auth_domains: List[str] = field(default_factory=lambda: list(AUTH_DOMAINS))
    error_indicators: List[str] = field(default_factory=lambda: list(ERROR_INDICATORS))
    main_content_selectors: List[str] = field(
        default_factory=lambda: list(MAIN_CONTENT_SELECTORS)
    )
    navigation_selectors: List[str] = field(
        default_factory=lambda: list(NAVIGATION_SELECTORS)
    )
    button_selectors: List[str] = field(default_factory=lambda: list(BUTTON_SELECTORS))
    structure_selectors: List[str] = field(
        default_factory=lambda: list(STRUCTURE_SELECTORS)
    )
    ready_content_selectors: List[str] = field(
        default_factory=lambda: list(READY_CONTENT_SELECTORS)
    )
    ready_navigation_selectors: List[str] = field(
        default_factory=lambda: list(READY_NAVIGATION_SELECTORS)
    )
    loading_selectors: List[str] = field(default_factory=lambda: list(LOADING_SELECTORS))
    hero_selectors: List[str] = field(default_factory=lambda: list(HERO_SELECTORS))
    overlay_selectors: List[str] = field(default_factory=lambda: list(OVERLAY_SELECTORS))
    priority_image_hints: List[str] = field(
        default_factory=lambda: list(PRIORITY_IMAGE_HINTS)
    )
    priority_media_hints: List[str] = field(
        default_factory=lambda: list(PRIORITY_MEDIA_HINTS)
    )
    overlay_min_z_index: int = 1000
    overlay_coverage_ratio: float = 0.8


@dataclass(frozen=True)
class DeviceProfile:
    """Viewport, device scale factor and user agent for one device class."""

    name: str
    width: int
    height: int
    device_scale_factor: float
    user_agent: str


DEVICE_PROFILES: Dict[str, DeviceProfile] = {
    "desktop": DeviceProfile(
        name="desktop",
        width=1200,
        height=800,
        device_scale_factor=1,
        user_agent=DESKTOP_USER_AGENT,
    ),
    "tablet": DeviceProfile(
        name="tablet",
        width=768,
        height=1024,
        device_scale_factor=2,
        user_agent=(
            "Mozilla/5.0 (iPad; CPU OS 14_7_1 like Mac OS X) "
            "AppleWebKit/605.1.15 (KHTML, like Gecko) "
            "Version/14.1.2 Mobile/15E148 Safari/604.1"
        ),
    ),
    "mobile": DeviceProfile(
        name="mobile",
        width=375,
        height=812,
        device_scale_factor=2,
        user_agent=(
            "Mozilla/5.0 (iPhone; CPU iPhone OS 14_7_1 like Mac OS X) "
            "AppleWebKit/605.1.15 (KHTML, like Gecko) "
            "Version/14.1.2 Mobile/15E148 Safari/604.1"
        ),
    ),
}


def get_device_profile(name: str) -> DeviceProfile:
    """Return the preset for *name*, falling back to desktop."""
    profile = DEVICE_PROFILES.get((name or "").lower())
    if profile is None:
        LOGGER.warning("Unknown device profile '%s'; using desktop.", name)
        return DEVICE_PROFILES["desktop"]
    return profile


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        LOGGER.warning("Invalid value for %s: %r; using %s", name, raw, default)
        return default


@dataclass
class PreviewSettings:
    """Runtime settings for the pipeline.

    Attributes:
        public_dir: Root of the public asset tree; images are written below
            ``images/projects``.
        store_path: JSON file backing the project store.
        admin_secret: Bearer secret for the administrative trigger.
        github_token: Token for the source-repository API.
        project_delay: Seconds to wait between projects in bulk runs.
        batch_delay: Seconds to wait between candidate test batches.
        vercel_bypass_secret: Deployment-protection share token appended to
            Vercel URLs before they are tested or captured.
    """

    public_dir: Path = field(default_factory=lambda: Path("public"))
    store_path: Path = field(default_factory=lambda: Path("projects.json"))
    admin_secret: Optional[str] = None
    github_token: Optional[str] = None
    project_delay: float = 2.0
    batch_delay: float = 1.0
    vercel_bypass_secret: Optional[str] = None

    @property
    def images_dir(self) -> Path:
        return self.public_dir / "images" / "projects"

    @property
    def screenshots_dir(self) -> Path:
        return self.images_dir / "generated"

    @property
    def placeholders_dir(self) -> Path:
        return self.images_dir / "placeholders"

    @classmethod
    def from_env(cls) -> "PreviewSettings":
        """Build settings from environment variables (read at call time)."""
        return cls(
            public_dir=Path(os.getenv("PREVIEW_PUBLIC_DIR", "public")).expanduser(),
            store_path=Path(
                os.getenv("PREVIEW_STORE_PATH", "projects.json")
            ).expanduser(),
            admin_secret=os.getenv("PREVIEW_ADMIN_SECRET") or None,
            github_token=(
                os.getenv("GITHUB_TOKEN")
                or os.getenv("GITHUB_PERSONAL_ACCESS_TOKEN")
                or None
            ),
            project_delay=_float_env("PREVIEW_PROJECT_DELAY", 2.0),
            batch_delay=_float_env("PREVIEW_BATCH_DELAY", 1.0),
            vercel_bypass_secret=os.getenv("VERCEL_BYPASS_SECRET") or None,
        )


def public_path(settings: PreviewSettings, file_path: Path) -> str:
    """Map a file under ``public_dir`` to its site-relative URL path."""
    relative = file_path.relative_to(settings.public_dir)
    return "/" + relative.as_posix()


def timestamped_path(directory: Path, slug: str, extension: str) -> Path:
    """Return an unused ``{slug}-{unix-ms}.{extension}`` path in *directory*.

    The directory is created when missing. On a same-millisecond collision
    the timestamp is bumped until the name is free.
    """
    directory.mkdir(parents=True, exist_ok=True)
    stamp = time.time_ns() // 1_000_000
    candidate = directory / f"{slug or 'project'}-{stamp}.{extension}"
    while candidate.exists():
        stamp += 1
        candidate = directory / f"{slug or 'project'}-{stamp}.{extension}"
    return candidate
