"""Data structures shared across the preview pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

CandidateSource = Literal["deployment", "source-repo-pages", "domain-pattern", "manual"]
FallbackType = Literal["readme-image", "cached-screenshot", "generated-placeholder"]
PipelineStrategy = Literal[
    "capture", "fallback-readme", "fallback-placeholder", "fallback-cached"
]

FALLBACK_STRATEGY_NAMES: Dict[str, str] = {
    "readme-image": "fallback-readme",
    "cached-screenshot": "fallback-cached",
    "generated-placeholder": "fallback-placeholder",
}


class PreviewError(Exception):
    """Base class for errors raised by the preview pipeline."""


class InvalidProjectError(PreviewError, ValueError):
    """Raised when a project input is rejected at the entry boundary."""


@dataclass(frozen=True)
class ProjectInput:
    """Immutable view of a project for one pipeline run."""

    id: str
    name: str
    deployment_url: Optional[str] = None
    source_repo_url: Optional[str] = None
    manual_urls: List[str] = field(default_factory=list)
    framework: Optional[str] = None
    technologies: List[str] = field(default_factory=list)
    description: Optional[str] = None
    category: Optional[str] = None

    def validate(self) -> None:
        """Raise InvalidProjectError if the input cannot be processed."""
        if not isinstance(self.id, str) or not self.id.strip():
            raise InvalidProjectError("Project id is required")
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidProjectError(f"Project {self.id!r} has no name")


@dataclass(slots=True)
class URLCandidate:
    """A URL hypothesized to be a project's live deployment."""

    url: str
    source: CandidateSource
    confidence: float = 0.0
    accessibility_score: float = 0.0
    content_quality: float = 0.0
    is_login_page: bool = False
    is_error_page: bool = False
    has_main_content: bool = False
    load_time_ms: int = 0
    status_code: int = 0
    final_url: Optional[str] = None
    page_title: Optional[str] = None
    meta_description: Optional[str] = None
    error: Optional[str] = None
    screenshotable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "source": self.source,
            "confidence": round(self.confidence, 2),
            "accessibilityScore": self.accessibility_score,
            "contentQuality": self.content_quality,
            "isLoginPage": self.is_login_page,
            "isErrorPage": self.is_error_page,
            "hasMainContent": self.has_main_content,
            "loadTime": self.load_time_ms,
            "statusCode": self.status_code,
            "finalUrl": self.final_url,
            "pageTitle": self.page_title,
            "error": self.error,
            "screenshotable": self.screenshotable,
        }


@dataclass(slots=True)
class URLTestResult:
    """Ranked outcome of testing every candidate for a project."""

    original_url: str
    best_url: Optional[URLCandidate] = None
    all_candidates: List[URLCandidate] = field(default_factory=list)


@dataclass(frozen=True)
class ScreenshotMetadata:
    url: str
    final_url: str
    page_title: str = ""
    load_time_ms: int = 0
    content_detected: bool = False
    hero_section_found: bool = False
    screenshot_size: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ScreenshotResult:
    """Outcome of one capture call (all of its attempts)."""

    success: bool
    metadata: ScreenshotMetadata
    screenshot_path: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0


@dataclass(slots=True)
class FallbackImage:
    type: FallbackType
    url: str
    source: str
    confidence: float


@dataclass(slots=True)
class FallbackResult:
    """Outcome of running the fallback chain."""

    success: bool
    fallback_type: Optional[FallbackType] = None
    image_path: Optional[str] = None
    image: Optional[FallbackImage] = None
    error: Optional[str] = None
    tried: List[str] = field(default_factory=list)


@dataclass(slots=True)
class PipelineMetadata:
    total_attempts: int = 0
    processing_time_ms: int = 0
    best_url: Optional[str] = None
    confidence: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "totalAttempts": self.total_attempts,
            "processingTime": self.processing_time_ms,
        }
        if self.best_url is not None:
            data["bestUrl"] = self.best_url
        if self.confidence is not None:
            data["confidence"] = round(self.confidence, 2)
        return data


@dataclass(slots=True)
class PipelineResult:
    """Top-level record produced for each project."""

    project_id: str
    success: bool = False
    strategy: PipelineStrategy = "capture"
    final_image_path: Optional[str] = None
    url_test_result: Optional[URLTestResult] = None
    screenshot_result: Optional[ScreenshotResult] = None
    fallback_result: Optional[FallbackResult] = None
    error: Optional[str] = None
    metadata: PipelineMetadata = field(default_factory=PipelineMetadata)

    @property
    def used_strategy(self) -> Optional[str]:
        """The strategy that produced the image, or None when nothing did."""
        return self.strategy if self.success else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "projectId": self.project_id,
            "success": self.success,
            "strategy": self.used_strategy,
            "imagePath": self.final_image_path,
            "error": self.error,
            "metadata": self.metadata.to_dict(),
        }


@dataclass(slots=True)
class BulkResult:
    """Aggregated results of a sequential multi-project run."""

    results: Dict[str, PipelineResult] = field(default_factory=dict)

    @property
    def success_count(self) -> int:
        return sum(1 for result in self.results.values() if result.success)

    @property
    def strategy_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for result in self.results.values():
            strategy = result.used_strategy
            if strategy is not None:
                counts[strategy] = counts.get(strategy, 0) + 1
        return counts


@dataclass(slots=True)
class HealthReport:
    """Quick suitability report for a single URL."""

    url: str
    accessible: bool
    screenshotable: bool = False
    confidence: float = 0.0
    issues: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "accessible": self.accessible,
            "screenshotable": self.screenshotable,
            "confidence": round(self.confidence, 2),
            "issues": list(self.issues),
        }
