"""
Owner of the live panel configuration.

``ConfigService`` holds the current ``Configuration`` together with the
force-recompute flag read by synchronization passes. Both are guarded by a
state lock that is never held during disk writes; a separate write lock keeps
commits and their writes in order. Callers never mutate the held
configuration: they read a copy with its version and commit a complete
replacement by compare-and-swap.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from ddns_panel.errors import ConcurrentUpdateError, ConfigNotFoundError
from ddns_panel.models import Configuration

if TYPE_CHECKING:
    from ddns_panel.store import ConfigStore


logger = logging.getLogger(__name__)


class ConfigService:
    """
    Lock-guarded holder of the configuration and the force-recompute flag.

    Parameters
    ----------
    store : ConfigStore
        Persistence gateway used by ``load`` and ``commit``.
    """

    def __init__(self, store: ConfigStore) -> None:
        self._store = store
        self._lock = threading.RLock()
        self._write_lock = threading.Lock()
        self._config = Configuration()
        self._version = 0
        self._has_persisted = False
        self._force_recompute = False

    def load(self) -> bool:
        """
        Load the stored configuration, if any.

        Returns
        -------
        bool
            True if a stored configuration was found.

        Raises
        ------
        PersistenceError
            If a stored configuration exists but cannot be read.
        """
        with self._lock:
            try:
                config = self._store.load()
            except ConfigNotFoundError:
                logger.info("No stored configuration found, waiting for initial setup.")
                return False
            self._config = config
            self._version += 1
            self._has_persisted = True
            return True

    @property
    def has_persisted(self) -> bool:
        """Whether a configuration has been loaded from or written to storage."""
        with self._lock:
            return self._has_persisted

    @property
    def version(self) -> int:
        """Counter bumped by every successful load or commit."""
        with self._lock:
            return self._version

    def get(self) -> tuple[Configuration, int]:
        """
        Return a private copy of the configuration and its version.

        Returns
        -------
        tuple[Configuration, int]
            ``(configuration, version)``.
        """
        with self._lock:
            return self._config.model_copy(deep=True), self._version

    def commit(self, expected_version: int, config: Configuration) -> None:
        """
        Replace the configuration if it has not changed, then persist it.

        The in-memory swap happens before the write, so a failed write
        still leaves the new configuration in effect.

        Parameters
        ----------
        expected_version : int
            Version returned by the ``get`` the new configuration is based on.
        config : Configuration
            Complete replacement configuration.

        Raises
        ------
        ConcurrentUpdateError
            If another commit happened since ``expected_version``.
        PersistenceError
            If the store fails to write the configuration.
        """
        with self._write_lock:
            with self._lock:
                if expected_version != self._version:
                    raise ConcurrentUpdateError
                snapshot = config.model_copy(deep=True)
                self._config = snapshot
                self._version += 1
            # Readers are not blocked by the write
            self._store.save(snapshot)
            with self._lock:
                self._has_persisted = True

    def request_force_recompute(self) -> None:
        """Make the next synchronization pass skip its "no change" shortcut."""
        with self._lock:
            self._force_recompute = True

    def consume_force_recompute(self) -> bool:
        """Return the force-recompute flag and clear it."""
        with self._lock:
            force = self._force_recompute
            self._force_recompute = False
            return force

    def snapshot_for_sync(self) -> tuple[Configuration, bool]:
        """
        Read the configuration and consume the force flag in one step.

        Returns
        -------
        tuple[Configuration, bool]
            ``(configuration copy, force)``.
        """
        with self._lock:
            return self._config.model_copy(deep=True), self.consume_force_recompute()
