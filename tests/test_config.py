"""Settings assembly from the environment and the command line."""

from __future__ import annotations

from pathlib import Path

from telemetry_center.core import Settings
from telemetry_center.web.server import build_parser, settings_from_args


class TestSettingsFromEnv:
    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings.host == "127.0.0.1"
        assert settings.port == 5000
        assert settings.security.enable_rate_limit
        assert settings.security.basic_auth_username is None

    def test_overrides(self, tmp_path):
        settings = Settings.from_env(
            {
                "TELEMETRY_CENTER_HOST": "0.0.0.0",
                "TELEMETRY_CENTER_PORT": "8080",
                "TELEMETRY_CENTER_DATA_DIR": str(tmp_path),
                "TELEMETRY_CENTER_ALLOWED_ORIGINS": "http://a.test, http://b.test ,",
                "TELEMETRY_CENTER_AUTH_USERNAME": "admin",
                "TELEMETRY_CENTER_AUTH_PASSWORD": "s3cret",
                "TELEMETRY_CENTER_RATE_LIMIT": "off",
            }
        )
        assert settings.host == "0.0.0.0"
        assert settings.port == 8080
        assert settings.data_dir == tmp_path
        assert settings.security.allowed_origins == ("http://a.test", "http://b.test")
        assert settings.security.basic_auth_password == "s3cret"
        assert not settings.security.enable_rate_limit

    def test_auth_needs_both_values(self):
        settings = Settings.from_env({"TELEMETRY_CENTER_AUTH_USERNAME": "admin"})
        assert settings.security.basic_auth_username is None


class TestCommandLine:
    def test_arguments_override_base_settings(self):
        args = build_parser().parse_args(["--port", "0", "--data-dir", "~/telemetry"])
        settings = settings_from_args(args, Settings.from_env({}))
        assert settings.port == 0
        assert settings.host == "127.0.0.1"
        assert settings.data_dir == Path("~/telemetry").expanduser()

    def test_no_arguments_keep_base(self):
        base = Settings.from_env({})
        assert settings_from_args(build_parser().parse_args([]), base) is base
