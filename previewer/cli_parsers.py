"""Argument parser construction for CLI commands."""

from __future__ import annotations

import argparse
from typing import List, Optional

PREVIEW_COMMANDS = {"project", "store", "capture"}


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Write the report to this file instead of stdout",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output as JSON instead of markdown",
    )
    parser.add_argument(
        "--public-dir",
        type=str,
        default=None,
        help="Public asset root (default: PREVIEW_PUBLIC_DIR or ./public)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def _add_project_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--name",
        type=str,
        required=True,
        help="Project name (also used for domain guesses and filenames)",
    )
    parser.add_argument(
        "--id",
        type=str,
        default=None,
        dest="project_id",
        help="Project id (default: the slugified name)",
    )
    parser.add_argument(
        "--url",
        type=str,
        default=None,
        help="Known deployment URL",
    )
    parser.add_argument(
        "--repo",
        type=str,
        default=None,
        help="Source repository URL (GitHub)",
    )
    parser.add_argument(
        "--manual-url",
        type=str,
        action="append",
        default=[],
        dest="manual_urls",
        help="Override URL to test as well (repeatable)",
    )
    parser.add_argument(
        "--framework",
        type=str,
        default=None,
        help="Framework caption for placeholders",
    )
    parser.add_argument(
        "--tech",
        type=str,
        nargs="+",
        default=[],
        dest="technologies",
        help="Technology badges for placeholders",
    )
    parser.add_argument(
        "--description",
        type=str,
        default=None,
        help="Short description for placeholders",
    )
    parser.add_argument(
        "--category",
        type=str,
        default=None,
        help="Category badge for placeholders (e.g. frontend, ai)",
    )
    _add_common_args(parser)


def _add_store_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--store",
        type=str,
        default=None,
        dest="store_path",
        help="JSON project store (default: PREVIEW_STORE_PATH or ./projects.json)",
    )
    parser.add_argument(
        "--id",
        type=str,
        action="append",
        default=[],
        dest="project_ids",
        help="Project id to process (repeatable; default: all without an image)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        dest="force_regenerate",
        help="Regenerate images that already exist",
    )
    _add_common_args(parser)


def _add_capture_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "url",
        help="URL to capture",
    )
    parser.add_argument(
        "--name",
        type=str,
        default=None,
        help="Project name for the filename (default: the URL host)",
    )
    parser.add_argument(
        "--device",
        type=str,
        choices=["desktop", "tablet", "mobile"],
        default="desktop",
        help="Device preset (default: desktop)",
    )
    parser.add_argument(
        "--responsive",
        action="store_true",
        help="Capture every device preset",
    )
    parser.add_argument(
        "--full-page",
        action="store_true",
        help="Capture the full page instead of the hero/top crop",
    )
    parser.add_argument(
        "--no-hide-overlays",
        action="store_false",
        dest="hide_overlays",
        help="Keep cookie banners, modals and chat widgets",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=2,
        help="Additional attempts after the first (default: 2)",
    )
    _add_common_args(parser)


def _build_preview_root_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="preview",
        description="Produce preview images for portfolio projects.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command")

    project_parser = subparsers.add_parser(
        "project",
        help=argparse.SUPPRESS,
        description="Run the full pipeline for one project given on the command line.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  # Known deployment
  preview --name "My Cool App" --url https://my-cool-app.vercel.app

  # Guess the deployment, fall back to README images or a placeholder
  preview --name "My Cool App" --repo https://github.com/me/my-cool-app \\
          --framework Next.js --tech React TypeScript --category frontend

  # JSON report to a file
  preview --name "My Cool App" --json -o report.json
""",
    )
    _add_project_args(project_parser)

    store_parser = subparsers.add_parser(
        "store",
        description="Run the pipeline for projects in the JSON store and save results.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  # Every project without an image
  preview store

  # Selected projects, replacing existing images
  preview store --id 12 --id 15 --force
""",
    )
    _add_store_args(store_parser)

    capture_parser = subparsers.add_parser(
        "capture",
        description="Capture a single URL without URL ranking or fallbacks.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  preview capture https://example.com --name Example
  preview capture https://example.com --responsive
""",
    )
    _add_capture_args(capture_parser)

    return parser


def _normalize_preview_argv(argv: Optional[List[str]]) -> List[str]:
    effective_argv = list(argv) if argv is not None else []
    if effective_argv and effective_argv[0] in PREVIEW_COMMANDS:
        return effective_argv
    if effective_argv and effective_argv[0] in {"-h", "--help"}:
        return effective_argv
    return ["project", *effective_argv]


def parse_preview_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = _build_preview_root_parser()
    args = parser.parse_args(_normalize_preview_argv(argv))
    if not getattr(args, "command", None):
        args.command = "project"
    return args


def parse_check_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="preview-check",
        description="Check whether a URL is reachable and worth capturing.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  preview-check https://my-cool-app.vercel.app
  preview-check https://my-cool-app.vercel.app --json
""",
    )
    parser.add_argument(
        "url",
        help="URL to check",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output as JSON instead of markdown",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args(argv)
