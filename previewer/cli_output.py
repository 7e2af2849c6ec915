"""Output and formatting helpers for CLI commands."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .models import HealthReport, PipelineResult, ScreenshotResult


def pipeline_to_dict(result: PipelineResult) -> Dict[str, Any]:
    """Full pipeline report, including the ranked candidates."""
    data = result.to_dict()
    if result.url_test_result is not None:
        data["candidates"] = [
            candidate.to_dict() for candidate in result.url_test_result.all_candidates
        ]
    if result.fallback_result is not None:
        data["fallbackTried"] = list(result.fallback_result.tried)
    return data


def screenshot_to_dict(result: ScreenshotResult) -> Dict[str, Any]:
    meta = result.metadata
    return {
        "success": result.success,
        "screenshotPath": result.screenshot_path,
        "error": result.error,
        "attempts": result.attempts,
        "metadata": {
            "url": meta.url,
            "finalUrl": meta.final_url,
            "pageTitle": meta.page_title,
            "loadTime": meta.load_time_ms,
            "contentDetected": meta.content_detected,
            "heroSectionFound": meta.hero_section_found,
            "screenshotSize": dict(meta.screenshot_size),
        },
    }


def format_pipeline_markdown(result: PipelineResult) -> str:
    status = (
        f"succeeded via `{result.strategy}`" if result.success else "failed"
    )
    lines = [
        f"# Preview: {result.project_id}",
        f"_Pipeline {status}_",
        "",
    ]
    if result.final_image_path:
        lines.append(f"**Image:** {result.final_image_path}")
    if result.error:
        lines.append(f"**Error:** {result.error}")
    meta = result.metadata
    lines.append(f"**Attempts:** {meta.total_attempts}")
    lines.append(f"**Time:** {meta.processing_time_ms} ms")
    if meta.best_url:
        lines.append(f"**Best URL:** {meta.best_url} ({meta.confidence or 0:.1f})")
    lines.append("")

    if result.url_test_result and result.url_test_result.all_candidates:
        lines.append("## Candidates")
        lines.append("")
        lines.append("| URL | Source | Confidence | Screenshotable | Notes |")
        lines.append("|---|---|---|---|---|")
        for candidate in result.url_test_result.all_candidates:
            notes = []
            if candidate.is_login_page:
                notes.append("login")
            if candidate.is_error_page:
                notes.append("error")
            if candidate.error:
                notes.append(candidate.error.splitlines()[0][:60])
            lines.append(
                f"| {candidate.url} | {candidate.source} | {candidate.confidence:.1f} "
                f"| {'yes' if candidate.screenshotable else 'no'} | {', '.join(notes)} |"
            )
        lines.append("")
    return "\n".join(lines)


def format_store_markdown(payload: Dict[str, Any]) -> str:
    lines = ["# Preview run", f"_{payload.get('message', '')}_", ""]
    if payload.get("error"):
        lines.append(f"**Error:** {payload['error']}")
    if payload.get("skipped") is True:
        lines.append(f"Skipped: existing image {payload.get('existingImageUrl')}")
    if payload.get("screenshotPath"):
        lines.append(f"**Image:** {payload['screenshotPath']} ({payload.get('strategy')})")

    stats = payload.get("strategyStats")
    if stats:
        lines.append(
            "**Strategies:** "
            + ", ".join(f"{name}={count}" for name, count in sorted(stats.items()))
        )
        lines.append("")

    for project_id, entry in (payload.get("results") or {}).items():
        outcome = entry.get("imagePath") if entry.get("success") else entry.get("error")
        marker = "ok" if entry.get("success") else "failed"
        lines.append(f"- `{project_id}` [{marker}] {entry.get('strategy') or ''} {outcome or ''}".rstrip())
    lines.append("")
    return "\n".join(lines)


def format_capture_markdown(results: Dict[str, ScreenshotResult]) -> str:
    lines = ["# Capture", ""]
    for device, result in results.items():
        if result.success:
            lines.append(
                f"- **{device}**: {result.screenshot_path} "
                f"({result.attempts} attempt{'s' if result.attempts != 1 else ''})"
            )
        else:
            lines.append(f"- **{device}**: failed after {result.attempts} attempts: {result.error}")
    lines.append("")
    return "\n".join(lines)


def format_health_markdown(report: HealthReport) -> str:
    lines = [
        f"# Health: {report.url}",
        "",
        f"**Accessible:** {'yes' if report.accessible else 'no'}",
        f"**Screenshotable:** {'yes' if report.screenshotable else 'no'}",
        f"**Confidence:** {report.confidence:.1f}",
    ]
    if report.issues:
        lines.append("")
        lines.append("## Issues")
        lines.extend(f"- {issue}" for issue in report.issues)
    lines.append("")
    return "\n".join(lines)


def render(data: Any, markdown: str, json_output: bool) -> str:
    if json_output:
        return json.dumps(data, indent=2, ensure_ascii=False)
    return markdown


def write_output(text: str, output: Optional[str]) -> None:
    """Print *text*, or write it to *output* when given."""
    if output is None:
        print(text)
        return
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    logging.info("Wrote %s", path)
