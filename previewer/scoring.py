"""Heuristic scoring of tested URL candidates.

All weights and thresholds are module-level constants. They are tunable
defaults, not derived values.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable

from .config import DetectionPatterns
from .models import CandidateSource, URLCandidate

# Accessibility (max 100)
STATUS_OK_POINTS = 40
STATUS_2XX_POINTS = 30
STATUS_3XX_POINTS = 20
LOAD_TIME_BUCKETS = ((3000, 30), (8000, 20), (15000, 10))
NOT_LOGIN_POINTS = 20
NOT_ERROR_POINTS = 10

# Content quality (max 100)
IMAGES_POINTS = 15
NAVIGATION_POINTS = 15
BUTTONS_POINTS = 10
LINKS_POINTS = 10
STRUCTURE_POINTS = 20
TEXT_LENGTH_BUCKETS = ((500, 15), (200, 10), (50, 5))
WELL_STRUCTURED_BONUS = 15
MIN_LINKS = 3
MIN_STRUCTURAL_ELEMENTS = 2

# Confidence
ACCESSIBILITY_WEIGHT = 0.6
CONTENT_WEIGHT = 0.4
SOURCE_BONUS: Dict[str, float] = {
    "deployment": 20,
    "source-repo-pages": 10,
    "domain-pattern": 5,
    "manual": 0,
}
LOGIN_PENALTY = 80
ERROR_PENALTY = 70
NO_MAIN_CONTENT_PENALTY = 30

# Screenshotable thresholds
MIN_ACCESSIBILITY = 60
MIN_CONTENT_QUALITY = 40


@dataclass(slots=True)
class PageSignals:
    """Raw observations extracted from a loaded page."""

    title: str = ""
    body_text: str = ""
    text_length: int = 0
    image_count: int = 0
    navigation_count: int = 0
    button_count: int = 0
    link_count: int = 0
    structure_count: int = 0
    has_main_content: bool = False
    login_marker_in_body: bool = False
    error_marker_in_body: bool = False

    @classmethod
    def from_dict(cls, data: Dict) -> "PageSignals":
        body = str(data.get("bodyText") or "")
        return cls(
            title=str(data.get("title") or ""),
            body_text=body,
            text_length=int(data.get("textLength") or len(body)),
            image_count=int(data.get("imageCount") or 0),
            navigation_count=int(data.get("navigationCount") or 0),
            button_count=int(data.get("buttonCount") or 0),
            link_count=int(data.get("linkCount") or 0),
            structure_count=int(data.get("structureCount") or 0),
            has_main_content=bool(data.get("hasMainContent")),
            login_marker_in_body=bool(data.get("loginMarkerInBody")),
            error_marker_in_body=bool(data.get("errorMarkerInBody")),
        )


def _contains_any(haystacks: Iterable[str], needles: Iterable[str]) -> bool:
    lowered = [text.lower() for text in haystacks if text]
    return any(needle in text for needle in needles for text in lowered)


def detect_login_page(
    title: str, body_text: str, url: str, patterns: DetectionPatterns
) -> bool:
    if _contains_any((title, body_text, url), patterns.login_indicators):
        return True
    lowered_url = (url or "").lower()
    return any(fragment in lowered_url for fragment in patterns.login_url_fragments)


def detect_error_page(title: str, body_text: str, patterns: DetectionPatterns) -> bool:
    return _contains_any((title, body_text), patterns.error_indicators)


def accessibility_score(
    status_code: int, load_time_ms: int, is_login_page: bool, is_error_page: bool
) -> float:
    score = 0
    if status_code == 200:
        score += STATUS_OK_POINTS
    elif 200 <= status_code < 300:
        score += STATUS_2XX_POINTS
    elif 300 <= status_code < 400:
        score += STATUS_3XX_POINTS

    for limit, points in LOAD_TIME_BUCKETS:
        if load_time_ms < limit:
            score += points
            break

    if not is_login_page:
        score += NOT_LOGIN_POINTS
    if not is_error_page:
        score += NOT_ERROR_POINTS
    return float(min(score, 100))


def content_quality_score(signals: PageSignals) -> float:
    has_images = signals.image_count > 0
    has_navigation = signals.navigation_count > 0
    has_structure = signals.structure_count > MIN_STRUCTURAL_ELEMENTS

    score = 0
    if has_images:
        score += IMAGES_POINTS
    if has_navigation:
        score += NAVIGATION_POINTS
    if signals.button_count > 0:
        score += BUTTONS_POINTS
    if signals.link_count > MIN_LINKS:
        score += LINKS_POINTS
    if has_structure:
        score += STRUCTURE_POINTS

    for limit, points in TEXT_LENGTH_BUCKETS:
        if signals.text_length > limit:
            score += points
            break

    if has_navigation and has_structure and has_images:
        score += WELL_STRUCTURED_BONUS
    return float(min(score, 100))


def confidence_score(
    accessibility: float,
    content_quality: float,
    source: CandidateSource,
    *,
    is_login_page: bool,
    is_error_page: bool,
    has_main_content: bool,
) -> float:
    confidence = accessibility * ACCESSIBILITY_WEIGHT + content_quality * CONTENT_WEIGHT
    confidence += SOURCE_BONUS.get(source, 0)
    if is_login_page:
        confidence -= LOGIN_PENALTY
    if is_error_page:
        confidence -= ERROR_PENALTY
    if not has_main_content:
        confidence -= NO_MAIN_CONTENT_PENALTY
    return max(0.0, min(100.0, confidence))


def is_screenshotable(candidate: URLCandidate) -> bool:
    return (
        candidate.accessibility_score > MIN_ACCESSIBILITY
        and candidate.content_quality > MIN_CONTENT_QUALITY
        and not candidate.is_login_page
        and not candidate.is_error_page
        and candidate.status_code == 200
    )


def score_candidate(
    candidate: URLCandidate,
    signals: PageSignals,
    patterns: DetectionPatterns,
    *,
    gated: bool = False,
) -> URLCandidate:
    """Classify *candidate* from *signals* and fill in every score in place.

    ``gated`` forces the login flag, for gates detected outside the page
    content (e.g. a redirect to an authentication host).
    """
    inspected_url = candidate.final_url or candidate.url
    candidate.is_login_page = (
        gated
        or signals.login_marker_in_body
        or detect_login_page(signals.title, signals.body_text, inspected_url, patterns)
    )
    candidate.is_error_page = signals.error_marker_in_body or detect_error_page(
        signals.title, signals.body_text, patterns
    )
    candidate.has_main_content = signals.has_main_content

    candidate.accessibility_score = accessibility_score(
        candidate.status_code,
        candidate.load_time_ms,
        candidate.is_login_page,
        candidate.is_error_page,
    )
    candidate.content_quality = content_quality_score(signals)
    candidate.confidence = confidence_score(
        candidate.accessibility_score,
        candidate.content_quality,
        candidate.source,
        is_login_page=candidate.is_login_page,
        is_error_page=candidate.is_error_page,
        has_main_content=candidate.has_main_content,
    )
    candidate.screenshotable = is_screenshotable(candidate)
    return candidate
