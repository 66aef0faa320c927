"""Configuration management."""

import copy
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import yaml


class ConfigError(Exception):
    """Configuration error."""
    pass


# Environment variable -> (dot-notation key, type)
ENV_OVERRIDES = {
    "SOURCE_PLEX_HOST": ("source.host", str),
    "SOURCE_PLEX_PORT": ("source.port", int),
    "SOURCE_PLEX_TOKEN": ("source.token", str),
    "SOURCE_PLEX_REQUIRES_HTTPS": ("source.requires_https", bool),
    "DEST_PLEX_HOST": ("destination.host", str),
    "DEST_PLEX_PORT": ("destination.port", int),
    "DEST_PLEX_TOKEN": ("destination.token", str),
    "DEST_PLEX_REQUIRES_HTTPS": ("destination.requires_https", bool),
    "SYNC_LABEL": ("sync.label", str),
    "SYNC_INTERVAL": ("sync.interval", int),
    "DRY_RUN": ("sync.dry_run", bool),
    "FORCE_FULL_SYNC": ("sync.force_full_sync", bool),
    "LOG_LEVEL": ("sync.log_level", str),
    "LOG_FILE": ("sync.log_file", str),
    "LOG_FORMAT": ("sync.log_format", str),
    "SOURCE_REPLACE_FROM": ("paths.replace_from", str),
    "SOURCE_REPLACE_TO": ("paths.replace_to", str),
    "DEST_ROOT_DIR": ("paths.dest_root", str),
    "TRANSFER_METHOD": ("transfer.method", str),
    "TRANSFER_MAX_ATTEMPTS": ("transfer.max_attempts", int),
    "TRANSFER_BUFFER_SIZE": ("transfer.buffer_size", int),
    "MAX_CONCURRENT_TRANSFERS": ("transfer.max_concurrent", int),
    "ENABLE_COMPRESSION": ("transfer.enable_compression", bool),
    "SSH_HOST": ("ssh.host", str),
    "SSH_USER": ("ssh.user", str),
    "SSH_PASSWORD": ("ssh.password", str),
    "SSH_PORT": ("ssh.port", int),
    "SSH_KEY_PATH": ("ssh.key_path", str),
}

DEFAULTS = {
    "source": {"port": 32400, "requires_https": True},
    "destination": {"port": 32400, "requires_https": True},
    "sync": {
        "interval": 60,
        "dry_run": False,
        "force_full_sync": False,
        "log_level": "INFO",
        "log_format": "text",
    },
    "paths": {},
    "transfer": {
        "method": "",
        "max_attempts": 3,
        "buffer_size": 1024 * 1024,
        "max_concurrent": 3,
        "enable_compression": True,
    },
    "ssh": {"port": 22},
}

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "WARNING", "ERROR")
VALID_TRANSFER_METHODS = ("", "auto", "rsync", "sftp", "scp")
SSH_PLACEHOLDERS = ("your-ssh-username", "your-ssh-password")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """Configuration container."""

    def __init__(self, config_path: Optional[str] = None, environ: Optional[dict] = None):
        """Load configuration from YAML file and environment.

        The YAML file is optional; environment variables override any
        value it sets.

        Args:
            config_path: Path to config.yaml
            environ: Environment mapping (defaults to os.environ)

        Raises:
            ConfigError: If config is invalid
        """
        self.config_path = Path(config_path) if config_path else None
        self.data = _merge(copy.deepcopy(DEFAULTS), self._load_file())
        self._apply_env(os.environ if environ is None else environ)
        self._validate()

    def _load_file(self) -> dict:
        if self.config_path is None or not self.config_path.exists():
            return {}

        try:
            with open(self.config_path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file must contain a mapping: {self.config_path}")
        return data

    def _apply_env(self, environ):
        for name, (key, kind) in ENV_OVERRIDES.items():
            raw = environ.get(name)
            if raw is None or raw == "":
                continue
            if kind is bool:
                value = _parse_bool(raw)
            elif kind is int:
                try:
                    value = int(raw)
                except ValueError:
                    raise ConfigError(f"{name} must be an integer, got {raw!r}")
            else:
                value = raw
            self.set(key, value)

    def _validate(self):
        """Validate required configuration."""
        for side in ("source", "destination"):
            if not self.get(f"{side}.host"):
                raise ConfigError(f"{side}.host is required in config")
            if not self.get(f"{side}.token"):
                raise ConfigError(f"{side}.token is required in config")
            port = self.get(f"{side}.port")
            if not isinstance(port, int) or not 0 < port < 65536:
                raise ConfigError(f"{side}.port must be between 1 and 65535")

        if not self.get("sync.label"):
            raise ConfigError("sync.label is required in config")

        if bool(self.get("paths.replace_from")) != bool(self.get("paths.replace_to")):
            raise ConfigError(
                "paths.replace_from and paths.replace_to must be set together"
            )

        if self.ssh_configured and not self.get("paths.dest_root"):
            raise ConfigError("paths.dest_root is required when SSH is configured")

        log_level = str(self.get("sync.log_level", "INFO")).upper()
        if log_level not in VALID_LOG_LEVELS:
            raise ConfigError(
                f"sync.log_level must be one of {', '.join(VALID_LOG_LEVELS)}"
            )

        if str(self.get("transfer.method", "")).lower() not in VALID_TRANSFER_METHODS:
            raise ConfigError("transfer.method must be one of rsync, sftp or empty")

        if self.get("sync.interval", 60) < 1:
            raise ConfigError("sync.interval must be at least 1 minute")

        if self.get("transfer.max_attempts", 3) < 1:
            raise ConfigError("transfer.max_attempts must be at least 1")

        if not 1 <= self.get("transfer.max_concurrent", 3) <= 16:
            raise ConfigError("transfer.max_concurrent must be between 1 and 16")

        if self.get("transfer.buffer_size", 1024 * 1024) < 1024:
            raise ConfigError("transfer.buffer_size must be at least 1024 bytes")

    @property
    def ssh_configured(self) -> bool:
        """True when credentials for the destination host are present."""
        user = self.get("ssh.user")
        password = self.get("ssh.password")
        key_path = self.get("ssh.key_path")
        if not user or user in SSH_PLACEHOLDERS:
            return False
        if password and password not in SSH_PLACEHOLDERS:
            return True
        return bool(key_path)

    def server_url(self, side: str) -> str:
        """Base URL for the 'source' or 'destination' server."""
        scheme = "https" if self.get(f"{side}.requires_https", True) else "http"
        host = self.get(f"{side}.host")
        port = self.get(f"{side}.port", 32400)
        return f"{scheme}://{host}:{port}"

    def get(self, key: str, default=None):
        """Get config value by dot-notation key.

        Args:
            key: Dot-notation key (e.g., 'source.token')
            default: Default value if not found

        Returns:
            Config value or default
        """
        keys = key.split(".")
        value = self.data

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

            if value is None:
                return default

        return value

    def set(self, key: str, value):
        """Set config value by dot-notation key."""
        keys = key.split(".")
        target = self.data
        for k in keys[:-1]:
            if not isinstance(target.get(k), dict):
                target[k] = {}
            target = target[k]
        target[keys[-1]] = value


def setup_logging(config: Config):
    """Setup logging configuration.

    Args:
        config: Config object
    """
    from .events import JsonEventFormatter

    log_level_str = str(config.get("sync.log_level", "INFO")).upper()
    if log_level_str == "WARN":
        log_level_str = "WARNING"
    log_level = getattr(logging, log_level_str, logging.INFO)
    log_file = config.get("sync.log_file")
    use_json = str(config.get("sync.log_format", "text")).lower() == "json"

    handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    if use_json:
        console_formatter = JsonEventFormatter()
    else:
        console_formatter = logging.Formatter(
            "%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    console_handler.setFormatter(console_formatter)
    handlers.append(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        if use_json:
            file_formatter = JsonEventFormatter()
        else:
            file_formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
        file_handler.setFormatter(file_formatter)
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True,
    )

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("paramiko").setLevel(logging.WARNING)
