"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from journify_storage.config import DEFAULT_STORAGE_PATH, JournifyConfig, load_config


class TestDefaults:
    """Tests for JournifyConfig defaults and checks."""

    def test_defaults(self) -> None:
        config = JournifyConfig()

        assert config.app_version == "1.0.0"
        assert config.storage_backend == "file"
        assert config.quota_bytes == 10 * 1024 * 1024
        assert config.compression_threshold == 1000
        assert config.auth_token_ttl_seconds == 3600
        assert config.refresh_token_ttl_seconds == 604800
        assert config.cache_ttl_seconds == 300
        assert config.resolved_storage_path == DEFAULT_STORAGE_PATH

    def test_refresh_delay(self) -> None:
        """Test that the refresh timer fires five minutes before expiry."""
        assert JournifyConfig().refresh_delay_seconds == 3300
        assert JournifyConfig(auth_token_ttl_seconds=60).refresh_delay_seconds == 0

    def test_invalid_values(self) -> None:
        with pytest.raises(ValueError, match="storage_backend"):
            JournifyConfig(storage_backend="cloud")
        with pytest.raises(ValueError, match="bcrypt_rounds"):
            JournifyConfig(bcrypt_rounds=3)

    def test_storage_path_expanded(self) -> None:
        config = JournifyConfig(storage_path="~/journify-data")

        assert config.resolved_storage_path == Path.home() / "journify-data"

    def test_to_dict_masks_secrets(self) -> None:
        data = JournifyConfig(encryption_key="k", token_secret="s").to_dict()

        assert data["encryption_key"] == "***"
        assert data["token_secret"] == "***"
        assert data["storage_backend"] == "file"
        assert JournifyConfig().to_dict()["token_secret"] is None


class TestFromFile:
    """Tests for loading the YAML settings file."""

    def test_journify_section(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text(
            "journify:\n"
            "  storage_backend: memory\n"
            "  cache_ttl_seconds: 60\n"
            "  not_a_setting: 1\n"
            "other:\n"
            "  storage_backend: file\n"
        )

        config = JournifyConfig.from_file(path)

        assert config.storage_backend == "memory"
        assert config.cache_ttl_seconds == 60

    def test_missing_file(self, tmp_path: Path) -> None:
        assert JournifyConfig.from_file(tmp_path / "absent.yaml") == JournifyConfig()

    def test_unreadable_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("journify: [unclosed\n")

        assert JournifyConfig.from_file(path) == JournifyConfig()

    def test_rejected_values_keep_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text(
            "journify:\n"
            "  storage_backend: cloud\n"
            "  bcrypt_rounds: many\n"
            "  cache_ttl_seconds: 60\n"
        )

        config = JournifyConfig.from_file(path)

        assert config.storage_backend == "file"
        assert config.bcrypt_rounds == 12
        assert config.cache_ttl_seconds == 60

    def test_no_section(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("theme: dark\n")

        assert JournifyConfig.from_file(path) == JournifyConfig()


class TestFromEnvironment:
    """Tests for environment variable overrides."""

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("JOURNIFY_STORAGE_BACKEND", "memory")
        monkeypatch.setenv("JOURNIFY_BCRYPT_ROUNDS", "5")
        monkeypatch.setenv("JOURNIFY_DEBUG", "true")
        monkeypatch.setenv("JOURNIFY_COMPRESSION", "off")
        monkeypatch.setenv("JOURNIFY_CACHE_TTL", "12.5")

        config = JournifyConfig.from_environment()

        assert config.storage_backend == "memory"
        assert config.bcrypt_rounds == 5
        assert config.debug is True
        assert config.compression_enabled is False
        assert config.cache_ttl_seconds == 12.5

    def test_invalid_value_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("JOURNIFY_QUOTA_BYTES", "lots")

        config = JournifyConfig.from_environment(JournifyConfig(quota_bytes=1024))

        assert config.quota_bytes == 1024

    def test_rejected_value_keeps_base(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that values the config refuses are skipped, not raised."""
        monkeypatch.setenv("JOURNIFY_BCRYPT_ROUNDS", "2")
        monkeypatch.setenv("JOURNIFY_STORAGE_BACKEND", "cloud")
        monkeypatch.setenv("JOURNIFY_CACHE_TTL", "30")

        config = JournifyConfig.from_environment(JournifyConfig(bcrypt_rounds=6))

        assert config.bcrypt_rounds == 6
        assert config.storage_backend == "file"
        assert config.cache_ttl_seconds == 30

    def test_load_config_layers(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that environment values win over the settings file."""
        path = tmp_path / "settings.yaml"
        path.write_text("journify:\n  storage_backend: memory\n  cache_ttl_seconds: 60\n")
        monkeypatch.setenv("JOURNIFY_CACHE_TTL", "10")

        config = load_config(path)

        assert config.storage_backend == "memory"
        assert config.cache_ttl_seconds == 10
