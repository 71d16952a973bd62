"""
Unit tests for configuration loading.
"""
import json

import pytest

from config import Config


@pytest.fixture
def config_dir(temp_dir, monkeypatch):
    path = temp_dir / "config"
    path.mkdir()
    monkeypatch.setenv("CONFIG_DIR", str(path))
    for name in ("SFTP_HOST", "SFTP_PORT", "SFTP_TIMEOUT", "SNAPSHOT_RETENTION_COUNT"):
        monkeypatch.delenv(name, raising=False)
    return path


@pytest.mark.unit
class TestConfig:
    """Tests for Config defaults and overrides."""

    def test_defaults(self, config_dir):
        config = Config()
        assert config.sftp_host == "localhost"
        assert config.sftp_port == 22
        assert config.sftp_timeout is None
        assert config.simulation_ttl_minutes == 60
        assert config.snapshot_retention_count == 0

    def test_environment(self, config_dir, monkeypatch):
        monkeypatch.setenv("SFTP_HOST", "sftp.partner.test")
        monkeypatch.setenv("SFTP_PORT", "2222")
        monkeypatch.setenv("SFTP_TIMEOUT", "7.5")

        config = Config()

        assert config.sftp_host == "sftp.partner.test"
        assert config.sftp_port == 2222
        assert config.sftp_timeout == 7.5

    def test_settings_file_overlay(self, config_dir):
        (config_dir / "sync_settings.json").write_text(json.dumps({
            "_comment": "ignored",
            "sftp_host": "from-file",
            "snapshot_retention_count": "5",
            "db_path": "/not/tunable.db",
        }))

        config = Config()

        assert config.sftp_host == "from-file"
        assert config.snapshot_retention_count == 5
        assert str(config.db_path) != "/not/tunable.db"

    def test_environment_wins_over_file(self, config_dir, monkeypatch):
        (config_dir / "sync_settings.json").write_text(json.dumps({"sftp_host": "from-file"}))
        monkeypatch.setenv("SFTP_HOST", "from-env")
        assert Config().sftp_host == "from-env"

    def test_broken_settings_file_is_ignored(self, config_dir):
        (config_dir / "sync_settings.json").write_text("{not json")
        assert Config().sftp_host == "localhost"
