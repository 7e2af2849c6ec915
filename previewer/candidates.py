"""URL candidate generation from project metadata.

Purely string based: no network calls happen here. For the same inputs the
same ordered, deduplicated list is always produced.
"""

from __future__ import annotations

import re
from typing import List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from .models import CandidateSource

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_REPEATED_HYPHENS = re.compile(r"-+")
_GITHUB_REPO = re.compile(r"github\.com[/:]([^/\s]+)/([^/\s#?]+)", re.IGNORECASE)

DOMAIN_PATTERNS: List[str] = [
    "https://{slug}.com",
    "https://www.{slug}.com",
    "https://{slug}.vercel.app",
    "https://{slug}.netlify.app",
    "https://{slug}.app",
    "https://{slug}.io",
    "https://{slug}.dev",
]

SUFFIX_VARIANTS: List[str] = ["app", "web", "frontend", "demo", "project"]
SUFFIX_PATTERN = "https://{slug}-{suffix}.vercel.app"


def slugify(name: str) -> str:
    """Lowercase, replace non-alphanumerics with hyphens, collapse repeats."""
    slug = _NON_ALNUM.sub("-", (name or "").lower())
    slug = _REPEATED_HYPHENS.sub("-", slug)
    return slug.strip("-")


def parse_repo_url(repo_url: Optional[str]) -> Optional[Tuple[str, str]]:
    """Extract ``(owner, repo)`` from a GitHub URL, or None if unrecognized."""
    if not repo_url:
        return None
    match = _GITHUB_REPO.search(repo_url.strip())
    if not match:
        return None
    owner, repo = match.group(1), match.group(2)
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not owner or not repo:
        return None
    return owner, repo


def is_valid_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def generate_sourced_candidates(
    project_name: str,
    deployment_url: Optional[str] = None,
    source_repo_url: Optional[str] = None,
) -> List[Tuple[str, CandidateSource]]:
    """Return ``(url, source)`` pairs in priority order."""
    pairs: List[Tuple[str, CandidateSource]] = []

    if deployment_url:
        deployment_url = deployment_url.strip()
        pairs.append((deployment_url, "deployment"))
        if deployment_url.startswith("http://"):
            pairs.append(
                ("https://" + deployment_url[len("http://"):], "deployment")
            )

    slug = slugify(project_name)
    if slug:
        for pattern in DOMAIN_PATTERNS:
            pairs.append((pattern.format(slug=slug), "domain-pattern"))
        for suffix in SUFFIX_VARIANTS:
            pairs.append(
                (SUFFIX_PATTERN.format(slug=slug, suffix=suffix), "domain-pattern")
            )

    repo = parse_repo_url(source_repo_url)
    if repo:
        owner, name = repo
        pairs.append(
            (f"https://{owner.lower()}.github.io/{name}", "source-repo-pages")
        )

    seen = set()
    unique: List[Tuple[str, CandidateSource]] = []
    for url, source in pairs:
        if url in seen or not is_valid_url(url):
            continue
        seen.add(url)
        unique.append((url, source))
    return unique


def generate_candidates(
    project_name: str,
    deployment_url: Optional[str] = None,
    source_repo_url: Optional[str] = None,
) -> List[str]:
    """Derive plausible deployment URLs for a project.

    Args:
        project_name: Human readable project name, slugified for domains.
        deployment_url: Known deployment URL, tried first.
        source_repo_url: Source repository URL, used for a GitHub Pages guess.

    Returns:
        Ordered, deduplicated list of syntactically valid URLs.
    """
    return [
        url
        for url, _ in generate_sourced_candidates(
            project_name, deployment_url, source_repo_url
        )
    ]


VERCEL_BYPASS_PARAM = "_vercel_share"


def is_vercel_host(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return (
        host.endswith(".vercel.app")
        or host == "vercel.com"
        or host.endswith(".vercel.com")
    )


def with_vercel_bypass(url: str, secret: Optional[str]) -> str:
    """Append the deployment-protection share token to Vercel URLs.

    Non-Vercel URLs, and any URL when *secret* is empty, come back unchanged.
    """
    if not url or not secret or not is_vercel_host(url):
        return url
    parsed = urlparse(url)
    query = [
        (key, value)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
        if key != VERCEL_BYPASS_PARAM
    ]
    query.append((VERCEL_BYPASS_PARAM, secret))
    return urlunparse(parsed._replace(query=urlencode(query)))


def without_vercel_bypass(url: str) -> str:
    """Drop the share token so it never ends up in results or logs."""
    if not url or VERCEL_BYPASS_PARAM not in url:
        return url
    parsed = urlparse(url)
    query = [
        (key, value)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
        if key != VERCEL_BYPASS_PARAM
    ]
    return urlunparse(parsed._replace(query=urlencode(query)))
