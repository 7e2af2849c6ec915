"""Command-line interface for the preview pipeline."""

from __future__ import annotations

import argparse
import asyncio
import logging
import shutil
import sys
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

from .admin import AdminTrigger
from .browser import PlaywrightSession
from .candidates import slugify
from .capture import CaptureOptions, ScreenshotCapturer
from .cli_config import load_config
from .cli_output import (
    format_capture_markdown,
    format_health_markdown,
    format_pipeline_markdown,
    format_store_markdown,
    pipeline_to_dict,
    render,
    screenshot_to_dict,
    write_output,
)
from .cli_parsers import parse_check_args, parse_preview_args
from .config import PreviewSettings
from .models import InvalidProjectError, ProjectInput
from .orchestrator import PreviewOrchestrator
from .store import JsonProjectStore

# Configuration directory for global CLI usage
CONFIG_DIR = Path.home() / ".config" / "previewer"
CONFIG_ENV_FILE = CONFIG_DIR / ".env"


def _load_config() -> None:
    """Load .env configuration with fallback to user config directory.

    Search order:
    1. .env in current working directory
    2. ~/.config/previewer/.env
    """
    load_config(
        config_dir=CONFIG_DIR,
        config_env_file=CONFIG_ENV_FILE,
        cwd=Path.cwd(),
        load_env=load_dotenv,
        copy_file=shutil.copy,
        example_file=Path(__file__).parent.parent / ".env.example",
    )


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _settings(args: argparse.Namespace) -> PreviewSettings:
    settings = PreviewSettings.from_env()
    if getattr(args, "public_dir", None):
        settings.public_dir = Path(args.public_dir).expanduser()
    if getattr(args, "store_path", None):
        settings.store_path = Path(args.store_path).expanduser()
    return settings


async def _run_project_async(args: argparse.Namespace) -> int:
    project = ProjectInput(
        id=args.project_id or slugify(args.name),
        name=args.name,
        deployment_url=args.url,
        source_repo_url=args.repo,
        manual_urls=list(args.manual_urls),
        framework=args.framework,
        technologies=list(args.technologies),
        description=args.description,
        category=args.category,
    )
    try:
        project.validate()
    except InvalidProjectError as exc:
        logging.error("Invalid project: %s", exc)
        return 2

    async with PreviewOrchestrator(settings=_settings(args)) as orchestrator:
        result = await orchestrator.generate_smart_screenshot(project)

    write_output(
        render(pipeline_to_dict(result), format_pipeline_markdown(result), args.json_output),
        args.output,
    )
    return 0 if result.success else 1


async def _run_store_async(args: argparse.Namespace) -> int:
    settings = _settings(args)
    logging.info("Using project store %s", settings.store_path)
    trigger = AdminTrigger(JsonProjectStore(settings.store_path), settings)
    payload = await trigger.generate(
        project_ids=list(args.project_ids) or None,
        force_regenerate=args.force_regenerate,
    )
    write_output(
        render(payload, format_store_markdown(payload), args.json_output),
        args.output,
    )
    return 0 if payload.get("success") else 1


async def _run_capture_async(args: argparse.Namespace) -> int:
    settings = _settings(args)
    name = args.name or urlparse(args.url).hostname or "capture"
    options = CaptureOptions(
        capture_full_page=args.full_page,
        hide_overlays=args.hide_overlays,
        retry_count=max(0, args.retries),
        device=args.device,
    )

    async with PlaywrightSession() as session:
        capturer = ScreenshotCapturer(session, settings)
        if args.responsive:
            results = await capturer.capture_responsive(args.url, name, options)
        else:
            results = {args.device: await capturer.capture(args.url, name, options)}

    data = {device: screenshot_to_dict(result) for device, result in results.items()}
    write_output(
        render(data, format_capture_markdown(results), args.json_output),
        args.output,
    )
    return 0 if all(result.success for result in results.values()) else 1


async def _run_preview_async(args: argparse.Namespace) -> int:
    """Main async entry point for the preview command."""
    if args.command == "store":
        return await _run_store_async(args)
    if args.command == "capture":
        return await _run_capture_async(args)
    return await _run_project_async(args)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for preview generation."""
    _load_config()
    args = parse_preview_args(argv if argv is not None else sys.argv[1:])
    _setup_logging(args.verbose)

    try:
        return asyncio.run(_run_preview_async(args))
    except KeyboardInterrupt:
        logging.info("Interrupted")
        return 130
    except Exception as exc:
        logging.error("Error: %s", exc)
        if args.verbose:
            logging.exception("Full traceback:")
        return 1


async def _run_check_async(args: argparse.Namespace) -> int:
    """Main async entry point for the URL health check."""
    async with PreviewOrchestrator(settings=PreviewSettings.from_env()) as orchestrator:
        report = await orchestrator.quick_health_check(args.url)

    write_output(
        render(report.to_dict(), format_health_markdown(report), args.json_output),
        None,
    )
    return 0 if report.accessible else 1


def check_main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the URL health check."""
    _load_config()
    args = parse_check_args(argv)
    _setup_logging(args.verbose)

    try:
        return asyncio.run(_run_check_async(args))
    except KeyboardInterrupt:
        logging.info("Interrupted")
        return 130
    except Exception as exc:
        logging.error("Error: %s", exc)
        if args.verbose:
            logging.exception("Full traceback:")
        return 1


if __name__ == "__main__":
    sys.exit(main())
