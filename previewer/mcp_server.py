"""MCP server exposing the preview pipeline to operators.

Provides tools for:
- Generating preview images for stored projects (admin secret required)
- Checking whether a single URL is suitable for a screenshot

Supports both STDIO and HTTP transports.

Usage:
    # STDIO
    python -m previewer.mcp_server

    # HTTP
    python -m previewer.mcp_server --transport http --port 8000

Environment Variables:
    PREVIEW_ADMIN_SECRET: Secret every tool call must present
    PREVIEW_STORE_PATH: JSON project store (default: ./projects.json)
    PREVIEW_PUBLIC_DIR: Public asset root (default: ./public)
    GITHUB_TOKEN: Optional token for README and repository lookups
"""

from __future__ import annotations

import argparse
import json
import logging
from typing import List, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP

from .admin import AdminAuthError, AdminTrigger
from .config import PreviewSettings
from .orchestrator import PreviewOrchestrator
from .store import JsonProjectStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
LOGGER = logging.getLogger(__name__)

# Load .env before reading environment variables
load_dotenv()

mcp = FastMCP(
    name="Portfolio Previewer",
    instructions="""
    Generates representative preview images for portfolio projects.

    Tools:
       - generate_screenshots: Run the preview pipeline for one project, a
         list of projects, or every project still missing an image
       - check_url_health: Report whether a URL is reachable and worth
         capturing

    Every tool requires the admin token.
    """,
)


def _build_trigger(settings: PreviewSettings) -> AdminTrigger:
    return AdminTrigger(JsonProjectStore(settings.store_path), settings)


def _build_orchestrator(settings: PreviewSettings) -> PreviewOrchestrator:
    return PreviewOrchestrator(settings=settings)


def _unauthorized() -> str:
    return json.dumps({"error": "Unauthorized"})


# =============================================================================
# TOOLS
# =============================================================================


async def generate_screenshots(
    admin_token: str,
    project_id: Optional[str] = None,
    project_ids: Optional[List[str]] = None,
    force_regenerate: bool = False,
) -> str:
    """
    Generate preview images for stored projects.

    Args:
        admin_token: The operator secret (PREVIEW_ADMIN_SECRET)
        project_id: A single project id; takes precedence over project_ids
        project_ids: A list of project ids
        force_regenerate: Replace images that already exist

    Returns:
        JSON with per-project success, strategy and image path, plus
        successCount and strategyStats for multi-project runs
    """
    settings = PreviewSettings.from_env()
    trigger = _build_trigger(settings)
    try:
        payload = await trigger.run(
            admin_token,
            project_id=project_id,
            project_ids=project_ids,
            force_regenerate=force_regenerate,
        )
    except AdminAuthError:
        LOGGER.warning("Rejected unauthorized generate_screenshots call")
        return _unauthorized()
    except Exception as exc:
        LOGGER.error("Preview generation failed: %s", exc)
        return json.dumps(
            {"error": "Failed to generate previews", "details": str(exc)},
            ensure_ascii=False,
        )
    return json.dumps(payload, indent=2, ensure_ascii=False)


async def check_url_health(url: str, admin_token: str) -> str:
    """
    Check whether a URL is reachable and suitable for a screenshot.

    Args:
        url: The URL to check
        admin_token: The operator secret (PREVIEW_ADMIN_SECRET)

    Returns:
        JSON with accessible, screenshotable, confidence and issues
    """
    settings = PreviewSettings.from_env()
    try:
        _build_trigger(settings).authorize(admin_token)
    except AdminAuthError:
        LOGGER.warning("Rejected unauthorized check_url_health call")
        return _unauthorized()

    LOGGER.info("Checking URL health: %s", url)
    async with _build_orchestrator(settings) as orchestrator:
        report = await orchestrator.quick_health_check(url)
    return json.dumps(report.to_dict(), indent=2, ensure_ascii=False)


mcp.tool(generate_screenshots)
mcp.tool(check_url_health)


# =============================================================================
# CLI ENTRY POINT
# =============================================================================


def main():
    """CLI entry point for running the MCP server."""
    parser = argparse.ArgumentParser(
        description="Run the portfolio previewer MCP server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
    PREVIEW_ADMIN_SECRET  Secret required by every tool
    PREVIEW_STORE_PATH    JSON project store (default: ./projects.json)
    PREVIEW_PUBLIC_DIR    Public asset root (default: ./public)

Examples:
    # STDIO transport (default)
    python -m previewer.mcp_server

    # HTTP transport
    python -m previewer.mcp_server --transport http --host 0.0.0.0 --port 9000
""",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to for HTTP transport (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to for HTTP transport (default: 8000)",
    )

    args = parser.parse_args()

    settings = PreviewSettings.from_env()
    LOGGER.info("Project store: %s", settings.store_path)
    LOGGER.info("Admin secret: %s", "Configured" if settings.admin_secret else "Missing")

    if args.transport == "http":
        LOGGER.info("Starting MCP server on http://%s:%d/mcp", args.host, args.port)
        mcp.run(transport="http", host=args.host, port=args.port)
    else:
        LOGGER.info("Starting MCP server with STDIO transport")
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
