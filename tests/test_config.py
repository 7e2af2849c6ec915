"""Tests for previewer.config module."""

from pathlib import Path

from previewer.config import (
    AUTH_DOMAINS,
    DEVICE_PROFILES,
    LOGIN_INDICATORS,
    DetectionPatterns,
    PreviewSettings,
    get_device_profile,
    public_path,
    timestamped_path,
)


class TestDetectionPatterns:
    def test_defaults_are_copies(self):
        a = DetectionPatterns()
        b = DetectionPatterns()
        a.login_indicators.append("anmelden")
        assert "anmelden" not in b.login_indicators
        assert "anmelden" not in LOGIN_INDICATORS

    def test_auth_domains(self):
        assert DetectionPatterns().auth_domains == AUTH_DOMAINS
        assert "vercel.com" in AUTH_DOMAINS


class TestDeviceProfiles:
    def test_presets(self):
        assert set(DEVICE_PROFILES) == {"desktop", "tablet", "mobile"}
        desktop = DEVICE_PROFILES["desktop"]
        assert (desktop.width, desktop.height, desktop.device_scale_factor) == (1200, 800, 1)
        mobile = DEVICE_PROFILES["mobile"]
        assert (mobile.width, mobile.height, mobile.device_scale_factor) == (375, 812, 2)
        assert "iPhone" in mobile.user_agent

    def test_lookup(self):
        assert get_device_profile("Tablet").name == "tablet"

    def test_unknown_falls_back_to_desktop(self):
        assert get_device_profile("watch").name == "desktop"


class TestPreviewSettings:
    def test_directories(self):
        settings = PreviewSettings(public_dir=Path("/srv/site/public"))
        assert settings.images_dir == Path("/srv/site/public/images/projects")
        assert settings.screenshots_dir == Path("/srv/site/public/images/projects/generated")
        assert settings.placeholders_dir == Path(
            "/srv/site/public/images/projects/placeholders"
        )

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PREVIEW_PUBLIC_DIR", str(tmp_path / "pub"))
        monkeypatch.setenv("PREVIEW_STORE_PATH", str(tmp_path / "db.json"))
        monkeypatch.setenv("PREVIEW_ADMIN_SECRET", "abc")
        monkeypatch.setenv("GITHUB_TOKEN", "gh-token")
        monkeypatch.setenv("PREVIEW_PROJECT_DELAY", "0.5")
        monkeypatch.setenv("PREVIEW_BATCH_DELAY", "0")
        monkeypatch.setenv("VERCEL_BYPASS_SECRET", "share-token")

        settings = PreviewSettings.from_env()
        assert settings.public_dir == tmp_path / "pub"
        assert settings.store_path == tmp_path / "db.json"
        assert settings.admin_secret == "abc"
        assert settings.github_token == "gh-token"
        assert settings.project_delay == 0.5
        assert settings.batch_delay == 0
        assert settings.vercel_bypass_secret == "share-token"

    def test_from_env_defaults(self, monkeypatch):
        for name in (
            "PREVIEW_PUBLIC_DIR",
            "PREVIEW_STORE_PATH",
            "PREVIEW_ADMIN_SECRET",
            "GITHUB_TOKEN",
            "GITHUB_PERSONAL_ACCESS_TOKEN",
            "PREVIEW_PROJECT_DELAY",
            "PREVIEW_BATCH_DELAY",
            "VERCEL_BYPASS_SECRET",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = PreviewSettings.from_env()
        assert settings.public_dir == Path("public")
        assert settings.admin_secret is None
        assert settings.github_token is None
        assert settings.project_delay == 2.0
        assert settings.batch_delay == 1.0
        assert settings.vercel_bypass_secret is None

    def test_invalid_delay_uses_default(self, monkeypatch):
        monkeypatch.setenv("PREVIEW_PROJECT_DELAY", "soon")
        assert PreviewSettings.from_env().project_delay == 2.0

    def test_personal_access_token_fallback(self, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.setenv("GITHUB_PERSONAL_ACCESS_TOKEN", "pat")
        assert PreviewSettings.from_env().github_token == "pat"


class TestPaths:
    def test_public_path(self, tmp_path):
        settings = PreviewSettings(public_dir=tmp_path)
        path = tmp_path / "images" / "projects" / "generated" / "a-1.jpg"
        assert public_path(settings, path) == "/images/projects/generated/a-1.jpg"

    def test_timestamped_path_creates_directory(self, tmp_path):
        directory = tmp_path / "out"
        path = timestamped_path(directory, "my-app", "jpg")
        assert directory.is_dir()
        assert path.parent == directory
        assert path.name.startswith("my-app-")
        assert path.suffix == ".jpg"
        assert path.stem.split("-")[-1].isdigit()

    def test_timestamped_path_avoids_collisions(self, tmp_path):
        first = timestamped_path(tmp_path, "my-app", "svg")
        first.write_text("x")
        second = timestamped_path(tmp_path, "my-app", "svg")
        assert second != first
        assert not second.exists()

    def test_empty_slug(self, tmp_path):
        assert timestamped_path(tmp_path, "", "svg").name.startswith("project-")
