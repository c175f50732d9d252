"""Unit tests for settings loading."""

from pathlib import Path

import pytest
from ncctl.core.config import Settings, load_settings
from ncctl.core.errors import ConfigError


class TestSettings:
    """Tests for the Settings model."""

    def test_defaults(self) -> None:
        settings = Settings()

        assert settings.domain == "localhost"
        assert settings.db_port == 3306
        assert settings.php_version == "8.3"
        assert settings.retain_days == 7
        assert settings.backup_remote is None

    def test_is_frozen(self) -> None:
        settings = Settings()
        with pytest.raises(ValueError):
            settings.domain = "other"  # type: ignore[misc]

    def test_derived_values(self) -> None:
        settings = Settings(php_version="8.2", nextcloud_root=Path("/srv/nc"))

        assert settings.php_fpm_service == "php8.2-fpm"
        assert settings.php_fpm_socket == Path("/run/php/php8.2-fpm-nextcloud.sock")
        assert settings.occ_path == Path("/srv/nc/occ")

    @pytest.mark.parametrize(
        ("domain", "ssl_enabled", "wanted"),
        [
            ("cloud.example.com", True, True),
            ("cloud.example.com", False, False),
            ("localhost", True, False),
            ("127.0.0.1", True, False),
        ],
    )
    def test_certificates_wanted(self, domain: str, ssl_enabled: bool, wanted: bool) -> None:
        settings = Settings(domain=domain, ssl_enabled=ssl_enabled)
        assert settings.certificates_wanted is wanted

    def test_log_level_is_case_insensitive(self) -> None:
        assert Settings(log_level="debug").log_level == "DEBUG"  # type: ignore[arg-type]

    def test_empty_remote_is_none(self) -> None:
        assert Settings(backup_remote="  ").backup_remote is None


class TestLoadSettings:
    """Tests for load_settings."""

    def test_reads_key_value_file(self, tmp_path: Path) -> None:
        config = tmp_path / "install-config.conf"
        config.write_text(
            "# Nextcloud settings\n"
            "DOMAIN=cloud.example.com\n"
            'DB_NAME="ncdb"\n'
            "REDIS_PORT=6380\n"
            "SSL_ENABLED=false\n"
        )

        settings, path = load_settings(config, environ={})

        assert path == config
        assert settings.domain == "cloud.example.com"
        assert settings.db_name == "ncdb"
        assert settings.redis_port == 6380
        assert settings.ssl_enabled is False

    def test_environment_overrides_file(self, tmp_path: Path) -> None:
        config = tmp_path / "install-config.conf"
        config.write_text("DOMAIN=from-file.example\n")

        settings, _ = load_settings(config, environ={"DOMAIN": "from-env.example"})

        assert settings.domain == "from-env.example"

    def test_unknown_keys_are_ignored(self, tmp_path: Path) -> None:
        config = tmp_path / "install-config.conf"
        config.write_text("SOMETHING_ELSE=1\nDOMAIN=a.example\n")

        settings, _ = load_settings(config, environ={"HOME": "/root"})

        assert settings.domain == "a.example"

    def test_missing_explicit_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "missing.conf", environ={})

    def test_invalid_value_raises(self, tmp_path: Path) -> None:
        config = tmp_path / "install-config.conf"
        config.write_text("DB_PORT=not-a-port\n")

        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_settings(config, environ={})

    def test_out_of_range_value_raises(self, tmp_path: Path) -> None:
        config = tmp_path / "install-config.conf"
        config.write_text("SWAPPINESS=250\n")

        with pytest.raises(ConfigError):
            load_settings(config, environ={})

    def test_defaults_without_any_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("NCCTL_CONFIG", raising=False)
        monkeypatch.setattr("ncctl.core.paths.DEFAULT_CONFIG_PATH", tmp_path / "none.conf")

        settings, path = load_settings(environ={})

        assert path is None
        assert settings.domain == "localhost"

    def test_finds_dotenv_in_working_directory(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / ".env").write_text("DOMAIN=dotenv.example\n")
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("NCCTL_CONFIG", raising=False)

        settings, path = load_settings(environ={})

        assert path == tmp_path / ".env"
        assert settings.domain == "dotenv.example"
