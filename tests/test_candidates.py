"""Tests for previewer.candidates module."""

from previewer.candidates import (
    DOMAIN_PATTERNS,
    SUFFIX_VARIANTS,
    generate_candidates,
    generate_sourced_candidates,
    is_valid_url,
    parse_repo_url,
    slugify,
    with_vercel_bypass,
    without_vercel_bypass,
)


class TestSlugify:
    def test_basic(self):
        assert slugify("My Cool App") == "my-cool-app"

    def test_collapses_symbols(self):
        assert slugify("  Hello,   World!! 2.0 ") == "hello-world-2-0"

    def test_empty(self):
        assert slugify("") == ""
        assert slugify("!!!") == ""


class TestParseRepoUrl:
    def test_https(self):
        assert parse_repo_url("https://github.com/Me/my-cool-app") == ("Me", "my-cool-app")

    def test_git_suffix_and_trailing_path(self):
        assert parse_repo_url("https://github.com/me/app.git") == ("me", "app")
        assert parse_repo_url("https://github.com/me/app/tree/main") == ("me", "app")

    def test_ssh(self):
        assert parse_repo_url("git@github.com:me/app.git") == ("me", "app")

    def test_unrecognized(self):
        assert parse_repo_url(None) is None
        assert parse_repo_url("https://gitlab.com/me/app") is None
        assert parse_repo_url("not a url") is None


class TestIsValidUrl:
    def test_valid(self):
        assert is_valid_url("https://example.com")
        assert is_valid_url("http://localhost:3000/path")

    def test_invalid(self):
        assert not is_valid_url("ftp://example.com")
        assert not is_valid_url("https://")
        assert not is_valid_url("example.com")


class TestGenerateCandidates:
    def test_deterministic(self):
        first = generate_candidates(
            "My Cool App", None, "https://github.com/me/my-cool-app"
        )
        second = generate_candidates(
            "My Cool App", None, "https://github.com/me/my-cool-app"
        )
        assert first == second

    def test_name_only_patterns(self):
        urls = generate_candidates("My Cool App")
        assert "https://my-cool-app.vercel.app" in urls
        assert "https://my-cool-app.com" in urls
        assert "https://my-cool-app-demo.vercel.app" in urls
        assert len(urls) == len(DOMAIN_PATTERNS) + len(SUFFIX_VARIANTS)
        for url in urls:
            assert " " not in url
            assert url == url.lower()

    def test_deployment_first(self):
        urls = generate_candidates("My Cool App", "https://cool.example.org")
        assert urls[0] == "https://cool.example.org"

    def test_http_deployment_adds_https_variant(self):
        urls = generate_candidates("x", "http://cool.example.org")
        assert urls[:2] == ["http://cool.example.org", "https://cool.example.org"]

    def test_github_pages_candidate(self):
        urls = generate_candidates("Thing", None, "https://github.com/Me/my-cool-app")
        assert urls[-1] == "https://me.github.io/my-cool-app"

    def test_deduplicates_keeping_first_source(self):
        pairs = generate_sourced_candidates(
            "My Cool App", "https://my-cool-app.vercel.app"
        )
        urls = [url for url, _ in pairs]
        assert urls.count("https://my-cool-app.vercel.app") == 1
        assert pairs[0] == ("https://my-cool-app.vercel.app", "deployment")

    def test_invalid_deployment_dropped(self):
        urls = generate_candidates("App", "not-a-url")
        assert "not-a-url" not in urls
        assert urls[0] == "https://app.com"

    def test_nothing_to_guess(self):
        assert generate_candidates("!!!") == []

    def test_sources(self):
        pairs = generate_sourced_candidates(
            "App", "https://app.example.org", "https://github.com/me/app"
        )
        sources = {source for _, source in pairs}
        assert sources == {"deployment", "domain-pattern", "source-repo-pages"}


class TestVercelBypass:
    def test_appends_share_token(self):
        assert (
            with_vercel_bypass("https://my-cool-app.vercel.app", "tok")
            == "https://my-cool-app.vercel.app?_vercel_share=tok"
        )

    def test_keeps_existing_query(self):
        assert (
            with_vercel_bypass("https://my-cool-app.vercel.app/docs?tab=1", "tok")
            == "https://my-cool-app.vercel.app/docs?tab=1&_vercel_share=tok"
        )

    def test_replaces_stale_token(self):
        assert (
            with_vercel_bypass("https://my-cool-app.vercel.app/?_vercel_share=old", "tok")
            == "https://my-cool-app.vercel.app/?_vercel_share=tok"
        )

    def test_vercel_dashboard_host(self):
        assert with_vercel_bypass("https://vercel.com/me/app", "tok").endswith(
            "?_vercel_share=tok"
        )

    def test_other_hosts_unchanged(self):
        assert with_vercel_bypass("https://my-cool-app.com", "tok") == "https://my-cool-app.com"
        assert (
            with_vercel_bypass("https://notvercel.app.example.org", "tok")
            == "https://notvercel.app.example.org"
        )

    def test_no_secret_unchanged(self):
        assert with_vercel_bypass("https://my-cool-app.vercel.app", None) == (
            "https://my-cool-app.vercel.app"
        )
        assert with_vercel_bypass("https://my-cool-app.vercel.app", "") == (
            "https://my-cool-app.vercel.app"
        )

    def test_strip_token(self):
        assert (
            without_vercel_bypass("https://my-cool-app.vercel.app/docs?tab=1&_vercel_share=tok")
            == "https://my-cool-app.vercel.app/docs?tab=1"
        )
        assert (
            without_vercel_bypass("https://my-cool-app.vercel.app?_vercel_share=tok")
            == "https://my-cool-app.vercel.app"
        )
        assert without_vercel_bypass("https://my-cool-app.com/?q=1") == "https://my-cool-app.com/?q=1"
