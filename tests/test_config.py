"""Tests for configuration loading, env overrides and validation."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from syncarr.config import DEFAULTS, Config, ConfigError, setup_logging
from syncarr.events import JsonEventFormatter


class TestConfigLoading:
    """Tests for YAML and environment sources."""

    def test_env_only_config_is_valid(self, base_env: dict) -> None:
        """Config should load from the environment when no file exists."""
        config = Config(None, environ=base_env)
        assert config.get("source.host") == "source.local"
        assert config.get("sync.label") == "sync"
        assert config.get("source.port") == 32400
        assert config.get("sync.interval") == 60

    def test_yaml_values_are_loaded(self, tmp_path: Path) -> None:
        """Config should read nested keys from the YAML file."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "source: {host: a, token: t1}\n"
            "destination: {host: b, token: t2, port: 32401}\n"
            "sync: {label: mirror, interval: 15}\n"
        )
        config = Config(str(path), environ={})
        assert config.get("destination.port") == 32401
        assert config.get("sync.interval") == 15
        assert config.get("sync.log_level") == "INFO"

    def test_env_overrides_yaml(self, tmp_path: Path, base_env: dict) -> None:
        """Environment variables should win over YAML values."""
        path = tmp_path / "config.yaml"
        path.write_text("sync: {label: from-yaml, interval: 15}\n")
        config = Config(str(path), environ={**base_env, "SYNC_INTERVAL": "5"})
        assert config.get("sync.label") == "sync"
        assert config.get("sync.interval") == 5

    def test_bool_env_values(self, base_env: dict) -> None:
        """Boolean variables should accept the usual truthy spellings."""
        config = Config(None, environ={**base_env, "DRY_RUN": "yes", "SOURCE_PLEX_REQUIRES_HTTPS": "false"})
        assert config.get("sync.dry_run") is True
        assert config.get("source.requires_https") is False

    def test_invalid_integer_env(self, base_env: dict) -> None:
        """A non-numeric port should be reported by variable name."""
        with pytest.raises(ConfigError, match="SOURCE_PLEX_PORT"):
            Config(None, environ={**base_env, "SOURCE_PLEX_PORT": "abc"})

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Broken YAML should raise ConfigError."""
        path = tmp_path / "config.yaml"
        path.write_text("source: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            Config(str(path), environ={})

    def test_defaults_are_not_shared(self, base_env: dict) -> None:
        """Setting a value on one Config should not leak into DEFAULTS."""
        config = Config(None, environ=base_env)
        config.set("sync.interval", 999)
        assert DEFAULTS["sync"]["interval"] == 60
        assert Config(None, environ=base_env).get("sync.interval") == 60


class TestConfigValidation:
    """Tests for validation rules."""

    @pytest.mark.parametrize(
        "missing", ["SOURCE_PLEX_HOST", "SOURCE_PLEX_TOKEN", "DEST_PLEX_HOST", "DEST_PLEX_TOKEN", "SYNC_LABEL"]
    )
    def test_required_values(self, base_env: dict, missing: str) -> None:
        """Each required value should be enforced."""
        env = dict(base_env)
        del env[missing]
        with pytest.raises(ConfigError):
            Config(None, environ=env)

    def test_port_range(self, base_env: dict) -> None:
        """Ports outside 1..65535 should be rejected."""
        with pytest.raises(ConfigError, match="port"):
            Config(None, environ={**base_env, "DEST_PLEX_PORT": "70000"})

    def test_replace_pair_must_be_complete(self, base_env: dict) -> None:
        """Setting only one side of the path replacement should fail."""
        with pytest.raises(ConfigError, match="replace"):
            Config(None, environ={**base_env, "SOURCE_REPLACE_FROM": "/data"})

    def test_dest_root_required_with_ssh(self, base_env: dict) -> None:
        """SSH credentials without a destination root should fail."""
        env = {**base_env, "SSH_USER": "media", "SSH_PASSWORD": "secret"}
        with pytest.raises(ConfigError, match="dest_root"):
            Config(None, environ=env)

    def test_unknown_log_level(self, base_env: dict) -> None:
        """Unknown log levels should be rejected."""
        with pytest.raises(ConfigError, match="log_level"):
            Config(None, environ={**base_env, "LOG_LEVEL": "LOUD"})

    def test_interval_minimum(self, base_env: dict) -> None:
        """Intervals under one minute should be rejected."""
        with pytest.raises(ConfigError, match="interval"):
            Config(None, environ={**base_env, "SYNC_INTERVAL": "0"})


class TestSshConfigured:
    """Tests for SSH credential detection."""

    def test_password_credentials(self, base_env: dict) -> None:
        """User plus password should count as configured."""
        env = {**base_env, "SSH_USER": "media", "SSH_PASSWORD": "secret", "DEST_ROOT_DIR": "/srv"}
        assert Config(None, environ=env).ssh_configured is True

    def test_key_credentials(self, base_env: dict) -> None:
        """User plus key path should count as configured."""
        env = {**base_env, "SSH_USER": "media", "SSH_KEY_PATH": "/keys/id", "DEST_ROOT_DIR": "/srv"}
        assert Config(None, environ=env).ssh_configured is True

    def test_placeholders_do_not_count(self, base_env: dict) -> None:
        """Template placeholder credentials should not enable SSH."""
        env = {**base_env, "SSH_USER": "your-ssh-username", "SSH_PASSWORD": "your-ssh-password"}
        assert Config(None, environ=env).ssh_configured is False

    def test_user_alone_does_not_count(self, base_env: dict) -> None:
        """A user without a password or key should not enable SSH."""
        assert Config(None, environ={**base_env, "SSH_USER": "media"}).ssh_configured is False


class TestServerUrl:
    """Tests for server URL construction."""

    def test_https_default(self, base_env: dict) -> None:
        """Servers should default to HTTPS on port 32400."""
        assert Config(None, environ=base_env).server_url("source") == "https://source.local:32400"

    def test_plain_http(self, base_env: dict) -> None:
        """Disabling HTTPS should switch the scheme."""
        env = {**base_env, "DEST_PLEX_REQUIRES_HTTPS": "0", "DEST_PLEX_PORT": "8080"}
        assert Config(None, environ=env).server_url("destination") == "http://dest.local:8080"


class TestSetupLogging:
    """Tests for logging setup."""

    def test_text_logging(self, base_env: dict) -> None:
        """Logging should use the configured level."""
        setup_logging(Config(None, environ={**base_env, "LOG_LEVEL": "WARN"}))
        assert logging.getLogger().level == logging.WARNING

    def test_json_logging(self, base_env: dict, tmp_path: Path) -> None:
        """JSON format should install the event formatter on every handler."""
        log_file = tmp_path / "syncarr.log"
        setup_logging(Config(None, environ={**base_env, "LOG_FORMAT": "json", "LOG_FILE": str(log_file)}))
        handlers = logging.getLogger().handlers
        assert len(handlers) == 2
        assert all(isinstance(h.formatter, JsonEventFormatter) for h in handlers)
