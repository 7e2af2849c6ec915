"""Preview image acquisition for portfolio projects.

Given a project whose live URL may be unknown, broken or behind a login,
this package produces a representative image through a cascade:

- URL candidate generation and health scoring
- Headless-browser capture with hero cropping and overlay suppression
- Fallback to README images, cached captures, and SVG placeholders

Example usage:

    from previewer import ProjectInput, generate_preview, generate_preview_async

    project = ProjectInput(
        id="42",
        name="My Cool App",
        deployment_url="https://my-cool-app.vercel.app",
        source_repo_url="https://github.com/me/my-cool-app",
    )

    # Async
    result = await generate_preview_async(project)
    print(result.strategy, result.final_image_path)

    # Sync
    result = generate_preview(project)

    # Several projects sharing one browser
    from previewer import PreviewOrchestrator

    async with PreviewOrchestrator() as orchestrator:
        bulk = await orchestrator.generate_bulk([project])
        print(bulk.success_count, bulk.strategy_counts)
"""

from __future__ import annotations

import asyncio
from typing import Optional

from .browser import BrowserUnavailableError, PlaywrightSession
from .candidates import generate_candidates, slugify
from .capture import CaptureOptions, ScreenshotCapturer
from .config import DetectionPatterns, PreviewSettings
from .fallback import FallbackChain
from .github import GitHubClient, GitHubError
from .models import (
    BulkResult,
    FallbackResult,
    HealthReport,
    InvalidProjectError,
    PipelineResult,
    PreviewError,
    ProjectInput,
    ScreenshotResult,
    URLCandidate,
    URLTestResult,
)
from .orchestrator import PreviewOrchestrator
from .url_tester import URLTester

__all__ = [
    # Data types
    "ProjectInput",
    "URLCandidate",
    "URLTestResult",
    "ScreenshotResult",
    "FallbackResult",
    "PipelineResult",
    "BulkResult",
    "HealthReport",
    # Errors
    "PreviewError",
    "InvalidProjectError",
    "GitHubError",
    "BrowserUnavailableError",
    # Components
    "generate_candidates",
    "slugify",
    "URLTester",
    "ScreenshotCapturer",
    "CaptureOptions",
    "FallbackChain",
    "GitHubClient",
    "PlaywrightSession",
    "PreviewOrchestrator",
    # Configuration
    "DetectionPatterns",
    "PreviewSettings",
    # Convenience
    "generate_preview",
    "generate_preview_async",
    # MCP Server
    "mcp",
]


def get_mcp_server():
    """Get the MCP server instance (lazy import to avoid dependency if not needed)."""
    from .mcp_server import mcp

    return mcp


# Lazy import for mcp to avoid requiring fastmcp if not used
def __getattr__(name):
    if name == "mcp":
        from .mcp_server import mcp

        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


async def generate_preview_async(
    project: ProjectInput,
    *,
    settings: Optional[PreviewSettings] = None,
) -> PipelineResult:
    """
    Run the full pipeline for one project with a private browser session.

    Args:
        project: The project to produce an image for.
        settings: Optional settings; read from the environment when omitted.

    Returns:
        PipelineResult describing the image and the strategy that produced it.

    Raises:
        InvalidProjectError: If the project has no id or name.
    """
    project.validate()
    async with PreviewOrchestrator(settings=settings) as orchestrator:
        return await orchestrator.generate_smart_screenshot(project)


def generate_preview(
    project: ProjectInput,
    *,
    settings: Optional[PreviewSettings] = None,
) -> PipelineResult:
    """Synchronous wrapper for :func:`generate_preview_async`."""
    return asyncio.run(generate_preview_async(project, settings=settings))
