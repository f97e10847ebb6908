"""Tests for alfred_pinboard.settings (developer TOML settings)."""

from alfred_pinboard.settings import (
    LoggingConfig,
    PinboardConfig,
    Settings,
    UpdaterConfig,
    load_settings,
)


class TestSettingsDefaults:
    def test_default_logging_config(self):
        cfg = Settings()
        assert cfg.logging.level == "INFO"
        assert cfg.logging.output == "console"
        assert cfg.logging.file == ""
        assert cfg.logging.rotate is True
        assert cfg.logging.max_size_mb == 1
        assert cfg.logging.backup_count == 2

    def test_default_updater_config(self):
        cfg = Settings()
        assert cfg.updater.repo == "spamwax/alfred-pinboard-rs"
        assert cfg.updater.check_interval == 86400
        assert cfg.updater.api_url == "https://api.github.com"

    def test_default_pinboard_config(self):
        cfg = Settings()
        assert cfg.pinboard.api_url == "https://api.pinboard.in/v1"
        assert cfg.pinboard.timeout == 30.0


class TestLoadSettings:
    def test_no_path(self):
        assert load_settings(None) == Settings()

    def test_missing_file(self, tmp_path):
        assert load_settings(tmp_path / "settings.toml") == Settings()

    def test_full_file(self, tmp_path):
        path = tmp_path / "settings.toml"
        path.write_text(
            '[logging]\n'
            'level = "DEBUG"\n'
            'output = "both"\n'
            'file = "/tmp/apr.log"\n'
            'rotate = false\n'
            '\n'
            '[updater]\n'
            'repo = "someone/fork"\n'
            'check_interval = 3600\n'
            '\n'
            '[pinboard]\n'
            'api_url = "http://localhost:8080/v1"\n'
            'timeout = 5.0\n'
        )
        cfg = load_settings(path)
        assert cfg.logging == LoggingConfig(
            level="DEBUG", output="both", file="/tmp/apr.log", rotate=False,
        )
        assert cfg.updater == UpdaterConfig(repo="someone/fork", check_interval=3600)
        assert cfg.pinboard == PinboardConfig(api_url="http://localhost:8080/v1", timeout=5.0)

    def test_partial_file(self, tmp_path):
        path = tmp_path / "settings.toml"
        path.write_text('[logging]\nlevel = "DEBUG"\n')
        cfg = load_settings(path)
        assert cfg.logging.level == "DEBUG"
        assert cfg.logging.output == "console"
        assert cfg.updater == UpdaterConfig()

    def test_malformed_file_falls_back(self, tmp_path):
        path = tmp_path / "settings.toml"
        path.write_text("[logging\nlevel = ")
        assert load_settings(path) == Settings()
