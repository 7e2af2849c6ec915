"""Fallback image strategies, tried in order when capture is impossible.

The chain is an ordered list of strategy objects. Each one either returns a
:class:`FallbackImage` or ``None``; an exception inside a strategy is logged
and treated as "unavailable", so the next tier always gets its turn. Adding
a tier is a matter of inserting another object into the list.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Set

from .candidates import parse_repo_url, slugify
from .config import PreviewSettings, public_path
from .github import GitHubClient, GitHubError, RepositoryMetadata
from .models import FallbackImage, FallbackResult
from .placeholder import PlaceholderCard, PlaceholderRenderer, default_description

LOGGER = logging.getLogger(__name__)

RAW_CONTENT_BASE = "https://raw.githubusercontent.com/{owner}/{repo}/{branch}/"
MIN_IMAGE_CONFIDENCE = 30
CACHED_SCREENSHOT_CONFIDENCE = 70.0
PLACEHOLDER_CONFIDENCE = 10.0

_MARKDOWN_IMAGE = re.compile(r"!\[([^\]]*)\]\(([^)\s]+)(?:\s+\"[^\"]*\")?\)")
_HTML_IMAGE = re.compile(r"<img[^>]+src=[\"']([^\"']+)[\"'][^>]*>", re.IGNORECASE)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp")
IMAGE_URL_HINTS = ("image", "screenshot", "preview")

# Substring -> confidence adjustment, applied to the lowercased URL
IMAGE_KEYWORD_WEIGHTS = (
    ("screenshot", 30),
    ("preview", 25),
    ("demo", 25),
    ("banner", 20),
    ("hero", 20),
    ("landing", 15),
    ("app", 10),
    ("web", 10),
    ("ui", 10),
    (".png", 10),
    ("logo", -10),
    ("icon", -15),
    ("avatar", -20),
    ("badge", -25),
)
JPEG_BONUS = 5


# ---------------------------------------------------------------------------
# README image helpers
# ---------------------------------------------------------------------------


def is_valid_image_url(url: str) -> bool:
    lowered = url.lower()
    return any(ext in lowered for ext in IMAGE_EXTENSIONS) or any(
        hint in lowered for hint in IMAGE_URL_HINTS
    )


def resolve_image_url(url: str, owner: str, repo: str, branch: str = "main") -> str:
    """Resolve a README image reference against the raw-content base."""
    if url.startswith(("http://", "https://")):
        return url
    base = RAW_CONTENT_BASE.format(owner=owner, repo=repo, branch=branch)
    if url.startswith("/"):
        return base + url.lstrip("/")
    cleaned = url
    while cleaned.startswith(("./", "../")):
        cleaned = cleaned.split("/", 1)[1]
    return base + cleaned


def image_confidence(url: str) -> float:
    lowered = url.lower()
    confidence = 50
    for keyword, weight in IMAGE_KEYWORD_WEIGHTS:
        if keyword in lowered:
            confidence += weight
    if ".jpg" in lowered or ".jpeg" in lowered:
        confidence += JPEG_BONUS
    return float(max(0, min(100, confidence)))


def extract_readme_images(
    content: str, owner: str, repo: str, branch: str = "main"
) -> List[FallbackImage]:
    """Scored README images above the confidence floor, best first."""
    references = [match.group(2) for match in _MARKDOWN_IMAGE.finditer(content)]
    references.extend(match.group(1) for match in _HTML_IMAGE.finditer(content))

    seen: Set[str] = set()
    images: List[FallbackImage] = []
    for reference in references:
        if not is_valid_image_url(reference):
            continue
        url = resolve_image_url(reference, owner, repo, branch)
        if url in seen:
            continue
        seen.add(url)
        confidence = image_confidence(url)
        if confidence > MIN_IMAGE_CONFIDENCE:
            images.append(
                FallbackImage(
                    type="readme-image",
                    url=url,
                    source=f"GitHub README: {owner}/{repo}",
                    confidence=confidence,
                )
            )

    images.sort(key=lambda image: image.confidence, reverse=True)
    return images


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


@dataclass
class FallbackRequest:
    """What the strategies know about the project."""

    project_name: str
    source_repo_url: Optional[str] = None
    framework: Optional[str] = None
    technologies: List[str] = field(default_factory=list)
    description: Optional[str] = None
    category: Optional[str] = None
    repo_metadata: Optional[RepositoryMetadata] = None


class FallbackStrategy(Protocol):
    name: str

    async def attempt(self, request: FallbackRequest) -> Optional[FallbackImage]: ...


class ReadmeImageStrategy:
    """Best image referenced by the repository README."""

    name = "readme-image"

    def __init__(self, github: GitHubClient) -> None:
        self._github = github

    async def attempt(self, request: FallbackRequest) -> Optional[FallbackImage]:
        repo = parse_repo_url(request.source_repo_url)
        if repo is None:
            return None
        owner, name = repo
        content = await self._github.fetch_readme(owner, name)
        if not content:
            LOGGER.info("No README available for %s/%s", owner, name)
            return None

        branch = request.repo_metadata.default_branch if request.repo_metadata else "main"
        images = extract_readme_images(content, owner, name, branch)
        if not images:
            return None
        LOGGER.info("Found %d README images for %s/%s", len(images), owner, name)
        return images[0]


class CachedScreenshotStrategy:
    """Most recent earlier capture of the same project."""

    name = "cached-screenshot"

    def __init__(self, settings: PreviewSettings) -> None:
        self.settings = settings

    async def attempt(self, request: FallbackRequest) -> Optional[FallbackImage]:
        directory = self.settings.screenshots_dir
        if not directory.is_dir():
            return None
        pattern = re.compile(
            rf"^{re.escape(slugify(request.project_name))}-(\d+)\.(jpg|jpeg|png)$"
        )

        newest = None
        newest_stamp = -1
        for path in directory.iterdir():
            match = pattern.match(path.name)
            if match and path.is_file() and int(match.group(1)) > newest_stamp:
                newest, newest_stamp = path, int(match.group(1))

        if newest is None:
            return None
        return FallbackImage(
            type="cached-screenshot",
            url=public_path(self.settings, newest),
            source=f"Cached screenshot: {newest.name}",
            confidence=CACHED_SCREENSHOT_CONFIDENCE,
        )


class PlaceholderStrategy:
    """Generated SVG card; fails only when the file cannot be written."""

    name = "generated-placeholder"

    def __init__(self, renderer: PlaceholderRenderer) -> None:
        self._renderer = renderer

    async def attempt(self, request: FallbackRequest) -> Optional[FallbackImage]:
        metadata = request.repo_metadata
        technologies = list(request.technologies)
        if not technologies and metadata is not None:
            technologies = metadata.technologies
        description = request.description
        if not description and metadata is not None:
            description = metadata.description
        if not description:
            description = default_description(request.framework)

        path = self._renderer.render(
            PlaceholderCard(
                project_name=request.project_name,
                description=description,
                technologies=tuple(technologies),
                framework=request.framework,
                category=request.category,
            )
        )
        return FallbackImage(
            type="generated-placeholder",
            url=path,
            source="Generated placeholder",
            confidence=PLACEHOLDER_CONFIDENCE,
        )


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------


class FallbackChain:
    """Run strategies in order; the first image wins."""

    def __init__(
        self,
        settings: Optional[PreviewSettings] = None,
        *,
        github: Optional[GitHubClient] = None,
        strategies: Optional[Sequence[FallbackStrategy]] = None,
    ) -> None:
        self.settings = settings or PreviewSettings()
        self._github = github or GitHubClient(self.settings.github_token)
        if strategies is None:
            strategies = [
                ReadmeImageStrategy(self._github),
                CachedScreenshotStrategy(self.settings),
                PlaceholderStrategy(PlaceholderRenderer(self.settings)),
            ]
        self.strategies: List[FallbackStrategy] = list(strategies)

    async def _repo_metadata(
        self, source_repo_url: Optional[str]
    ) -> Optional[RepositoryMetadata]:
        repo = parse_repo_url(source_repo_url)
        if repo is None:
            return None
        try:
            return await self._github.fetch_repo_metadata(*repo)
        except (GitHubError, ValueError) as exc:
            LOGGER.warning("Repository metadata unavailable for %s: %s", source_repo_url, exc)
            return None

    async def get_best_fallback(
        self,
        project_name: str,
        source_repo_url: Optional[str] = None,
        framework: Optional[str] = None,
        technologies: Optional[List[str]] = None,
        *,
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> FallbackResult:
        """Return the first image any strategy can provide."""
        LOGGER.info("Getting fallback image for %s", project_name)
        request = FallbackRequest(
            project_name=project_name,
            source_repo_url=source_repo_url,
            framework=framework,
            technologies=list(technologies or []),
            description=description,
            category=category,
            repo_metadata=await self._repo_metadata(source_repo_url),
        )

        tried: List[str] = []
        errors: List[str] = []
        for strategy in self.strategies:
            tried.append(strategy.name)
            try:
                image = await strategy.attempt(request)
            except Exception as exc:
                LOGGER.warning(
                    "Fallback strategy %s failed for %s: %s",
                    strategy.name,
                    project_name,
                    exc,
                )
                errors.append(f"{strategy.name}: {exc}")
                continue
            if image is None:
                LOGGER.debug("Fallback strategy %s had nothing for %s", strategy.name, project_name)
                continue

            LOGGER.info(
                "Fallback %s succeeded for %s: %s", strategy.name, project_name, image.url
            )
            return FallbackResult(
                success=True,
                fallback_type=image.type,
                image_path=image.url,
                image=image,
                tried=tried,
            )

        error = "; ".join(errors) if errors else "No fallback strategy produced an image"
        LOGGER.error("All fallback strategies failed for %s: %s", project_name, error)
        return FallbackResult(success=False, error=error, tried=tried)
