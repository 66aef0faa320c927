"""Application context for CLI."""

from pathlib import Path
from typing import Optional

from ...config import Config, ConfigError, setup_logging
from .exceptions import ConfigurationError
from .hooks import get_hook_manager


class SyncarrContext:
    """Shared application context passed through Click commands.

    The configuration is loaded on first use, so a ``--config`` option
    given after the subcommand name still takes effect.
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path) if config_path else None
        self._config: Optional[Config] = None

    @property
    def config(self) -> Config:
        """
        Load, validate and apply the configuration once.

        Raises:
            ConfigurationError: If config is invalid
        """
        if self._config is None:
            try:
                config = Config(self.config_path)
            except ConfigError as e:
                raise ConfigurationError(str(e))

            setup_logging(config)
            get_hook_manager().load_from_config(config)
            self._config = config
        return self._config

    @property
    def loaded(self) -> bool:
        return self._config is not None
