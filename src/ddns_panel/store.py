"""
Durable storage of the panel configuration.

The configuration is stored as a JSON document. Writes go to a temporary
file in the same directory which then replaces the target, so a crash never
leaves a truncated file behind.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from ddns_panel.errors import ConfigNotFoundError, PersistenceError
from ddns_panel.models import Configuration

logger = logging.getLogger(__name__)


DEFAULT_STORE_PATH = "~/.ddns_panel_config.json"


class ConfigStore:
    """
    JSON file store for ``Configuration``.

    Parameters
    ----------
    path : Path | str
        Location of the configuration file (``~`` is expanded).
    """

    def __init__(self, path: Path | str = DEFAULT_STORE_PATH) -> None:
        self.path = Path(path).expanduser()

    def exists(self) -> bool:
        """Whether a configuration file is present."""
        return self.path.is_file()

    def load(self) -> Configuration:
        """
        Load the stored configuration.

        Returns
        -------
        Configuration
            The stored configuration.

        Raises
        ------
        ConfigNotFoundError
            If no configuration file exists.
        PersistenceError
            If the file cannot be read or is not a valid configuration.
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError as e:
            msg = f'Configuration file not found: "{self.path}".'
            raise ConfigNotFoundError(msg) from e
        except OSError as e:
            logger.exception('Failed to read configuration file "%s".', self.path)
            raise PersistenceError(reason=str(e)) from e

        try:
            config = Configuration.model_validate_json(raw)
        except ValidationError as e:
            logger.exception('Invalid configuration file "%s".', self.path)
            raise PersistenceError(reason=str(e)) from e

        logger.info(
            'Loaded configuration from "%s" (%d domain entries).',
            self.path,
            len(config.dns_conf),
        )
        return config

    def save(self, config: Configuration) -> None:
        """
        Write the configuration atomically.

        Parameters
        ----------
        config : Configuration
            Configuration to store.

        Raises
        ------
        PersistenceError
            If the file cannot be written.
        """
        data = config.model_dump_json(indent=2)
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                dir=self.path.parent,
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            # The file holds credentials, keep it private to the owner
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            logger.error('Failed to save configuration to "%s": %s', self.path, e)  # noqa: TRY400
            raise PersistenceError(reason=str(e)) from e

        logger.info('Configuration saved to "%s".', self.path)
