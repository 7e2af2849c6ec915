"""SVG placeholder cards for projects that cannot be captured.

The markup is a pure function of the project metadata: rendering the same
project twice yields identical SVG, only the timestamped filename differs.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .candidates import slugify
from .config import PreviewSettings, public_path, timestamped_path

LOGGER = logging.getLogger(__name__)

DEFAULT_BACKGROUND = "#1a1a1a"
DEFAULT_TEXT_COLOR = "#ffffff"
DEFAULT_BADGE_COLOR = "#6b7280"
MAX_TECHNOLOGIES = 5
NAME_LINE_LENGTH = 20
DESCRIPTION_LINE_LENGTH = 50
DESCRIPTION_MAX_LINES = 2

BADGE_HEIGHT = 30
BADGE_PADDING = 15
BADGE_SPACING = 10
BADGE_CHAR_WIDTH = 8

TECHNOLOGY_COLORS: Dict[str, str] = {
    "react": "#61dafb",
    "vue": "#4fc08d",
    "angular": "#dd0031",
    "svelte": "#ff3e00",
    "next.js": "#000000",
    "nuxt.js": "#00c58e",
    "typescript": "#3178c6",
    "javascript": "#f7df1e",
    "node.js": "#339933",
    "python": "#3776ab",
    "java": "#ed8b00",
    "go": "#00add8",
    "rust": "#000000",
    "php": "#777bb4",
}

CATEGORY_COLORS: Dict[str, str] = {
    "frontend": "#3b82f6",
    "backend": "#059669",
    "fullstack": "#7c3aed",
    "mobile": "#f59e0b",
    "ai": "#ec4899",
    "devtools": "#6b7280",
    "library": "#8b5cf6",
}


@dataclass(frozen=True)
class PlaceholderCard:
    """Everything that determines the look of a placeholder card."""

    project_name: str
    description: str = "Modern web application"
    technologies: Sequence[str] = field(default_factory=tuple)
    framework: Optional[str] = None
    category: Optional[str] = None
    background_color: str = DEFAULT_BACKGROUND
    text_color: str = DEFAULT_TEXT_COLOR
    width: int = 1200
    height: int = 630


def default_description(framework: Optional[str]) -> str:
    if framework:
        return f"{framework} application showcasing modern development practices"
    return "Modern web application"


def technology_color(technology: str) -> str:
    return TECHNOLOGY_COLORS.get(technology.lower(), DEFAULT_BADGE_COLOR)


def category_color(category: str) -> str:
    return CATEGORY_COLORS.get(category.lower(), DEFAULT_BADGE_COLOR)


def adjust_color(color: str, amount: int) -> str:
    """Shift each RGB channel of a ``#rrggbb`` color by *amount*, clamped."""
    hex_value = color.lstrip("#")
    channels = []
    for offset in (0, 2, 4):
        value = int(hex_value[offset : offset + 2], 16) + amount
        channels.append(max(0, min(255, value)))
    return "#" + "".join(f"{channel:02x}" for channel in channels)


def split_text(text: str, max_length: int) -> List[str]:
    """Greedy word wrap; a single overlong word keeps its own line."""
    if len(text) <= max_length:
        return [text]

    lines: List[str] = []
    current = ""
    for word in text.split(" "):
        candidate = f"{current} {word}" if current else word
        if len(candidate) > max_length and current:
            lines.append(current)
            current = word
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines


def escape_xml(text: str) -> str:
    return html.escape(text, quote=True)


def _num(value: float) -> str:
    return f"{value:g}"


def _badges_svg(technologies: Sequence[str], center_x: float, y: float) -> List[str]:
    widths = [len(tech) * BADGE_CHAR_WIDTH + BADGE_PADDING * 2 for tech in technologies]
    total = sum(widths) + BADGE_SPACING * max(0, len(widths) - 1)
    x = center_x - total / 2

    parts: List[str] = []
    for tech, badge_width in zip(technologies, widths):
        parts.append(
            f'<rect x="{_num(x)}" y="{_num(y - BADGE_HEIGHT / 2)}" '
            f'width="{badge_width}" height="{BADGE_HEIGHT}" '
            f'fill="{technology_color(tech)}" rx="15"/>'
        )
        parts.append(
            f'<text x="{_num(x + badge_width / 2)}" y="{_num(y + 4)}" '
            'font-family="Arial, sans-serif" font-size="12" font-weight="bold" '
            f'fill="white" text-anchor="middle">{escape_xml(tech)}</text>'
        )
        x += badge_width + BADGE_SPACING
    return parts


def render_svg(card: PlaceholderCard) -> str:
    """Render the placeholder card markup."""
    width, height = card.width, card.height
    gradient_end = adjust_color(card.background_color, -20)
    technologies = list(card.technologies)[:MAX_TECHNOLOGIES]
    name_lines = split_text(card.project_name, NAME_LINE_LENGTH)
    description_lines = split_text(card.description, DESCRIPTION_LINE_LENGTH)[
        :DESCRIPTION_MAX_LINES
    ]

    parts: List[str] = [
        f'<svg width="{width}" height="{height}" xmlns="http://www.w3.org/2000/svg">',
        "<defs>",
        '<linearGradient id="backgroundGradient" x1="0%" y1="0%" x2="100%" y2="100%">',
        f'<stop offset="0%" style="stop-color:{card.background_color};stop-opacity:1"/>',
        f'<stop offset="100%" style="stop-color:{gradient_end};stop-opacity:1"/>',
        "</linearGradient>",
        '<pattern id="grid" width="50" height="50" patternUnits="userSpaceOnUse">',
        '<path d="M 50 0 L 0 0 0 50" fill="none" '
        'stroke="rgba(255,255,255,0.05)" stroke-width="1"/>',
        "</pattern>",
        "</defs>",
        '<rect width="100%" height="100%" fill="url(#backgroundGradient)"/>',
        '<rect width="100%" height="100%" fill="url(#grid)"/>',
    ]

    if card.category:
        parts.append(
            f'<rect x="40" y="20" width="{len(card.category) * 12 + 20}" height="30" '
            f'fill="{category_color(card.category)}" rx="15"/>'
        )
        parts.append(
            '<text x="50" y="40" font-family="Arial, sans-serif" font-size="14" '
            f'font-weight="bold" fill="white">{escape_xml(card.category.upper())}</text>'
        )

    parts.append(f'<g transform="translate({_num(width / 2)}, {_num(height * 0.3)})">')
    for index, line in enumerate(name_lines):
        parts.append(
            f'<text x="0" y="{index * 60}" font-family="Arial, sans-serif" '
            f'font-size="48" font-weight="bold" fill="{card.text_color}" '
            f'text-anchor="middle">{escape_xml(line)}</text>'
        )
    parts.append("</g>")

    description_color = adjust_color(card.text_color, -30)
    parts.append(
        f'<g transform="translate({_num(width / 2)}, {_num(height * 0.3 + 120)})">'
    )
    for index, line in enumerate(description_lines):
        parts.append(
            f'<text x="0" y="{index * 35}" font-family="Arial, sans-serif" '
            f'font-size="24" fill="{description_color}" '
            f'text-anchor="middle">{escape_xml(line)}</text>'
        )
    parts.append("</g>")

    if technologies:
        parts.extend(_badges_svg(technologies, width / 2, height - 100))

    if card.framework:
        parts.append(
            f'<text x="{_num(width / 2)}" y="{height - 40}" '
            'font-family="Arial, sans-serif" font-size="18" '
            f'fill="{adjust_color(card.text_color, -40)}" text-anchor="middle">'
            f"Built with {escape_xml(card.framework)}</text>"
        )

    parts.append("</svg>")
    return "\n".join(parts) + "\n"


class PlaceholderRenderer:
    """Writes placeholder cards under the placeholders directory."""

    def __init__(self, settings: Optional[PreviewSettings] = None) -> None:
        self.settings = settings or PreviewSettings()

    def render(self, card: PlaceholderCard) -> str:
        """Write the card and return its public path.

        Raises:
            OSError: If the file cannot be written.
        """
        path = timestamped_path(
            self.settings.placeholders_dir, slugify(card.project_name), "svg"
        )
        path.write_text(render_svg(card), encoding="utf-8")
        LOGGER.info("Placeholder written: %s", path)
        return public_path(self.settings, path)
