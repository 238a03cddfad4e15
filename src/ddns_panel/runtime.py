"""
Wiring of the panel's long-lived components.

``build_runtime`` assembles the store, configuration service, bootstrap
window, password policy, sync worker and save pipeline from the
application settings. The server keeps the result on ``app.state``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ddns_panel.bootstrap import BootstrapWindow
from ddns_panel.credentials import PasswordPolicy
from ddns_panel.logging_config import get_memory_handler
from ddns_panel.pipeline import SavePipeline
from ddns_panel.service import ConfigService
from ddns_panel.store import ConfigStore
from ddns_panel.sync import BaseSyncEngine, LoggingSyncEngine, SyncWorker

if TYPE_CHECKING:
    from collections.abc import Callable

    from ddns_panel.config import Config
    from ddns_panel.logging_config import MemoryLogHandler


@dataclass
class PanelRuntime:
    """
    Live components of a running panel.

    Attributes
    ----------
    config : Config
        Application settings.
    service : ConfigService
        Owner of the panel configuration.
    window : BootstrapWindow
        Bootstrap window armed at startup.
    pipeline : SavePipeline
        Save request handler.
    worker : SyncWorker
        Synchronization worker.
    log_buffer : MemoryLogHandler
        Recent log lines for the "/logs" page.
    """

    config: Config
    service: ConfigService
    window: BootstrapWindow
    pipeline: SavePipeline
    worker: SyncWorker
    log_buffer: MemoryLogHandler

    def start(self) -> None:
        """Start background work."""
        self.worker.start()

    def stop(self) -> None:
        """Stop background work."""
        self.worker.stop()


def build_runtime(
    config: Config,
    engine: BaseSyncEngine | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> PanelRuntime:
    """
    Assemble the panel components and load the stored configuration.

    Parameters
    ----------
    config : Config
        Application settings.
    engine : BaseSyncEngine | None, optional
        Synchronization engine; ``LoggingSyncEngine`` when omitted.
    clock : Callable[[], float], optional
        Monotonic clock for the bootstrap window.

    Returns
    -------
    PanelRuntime
        The assembled, not yet started, runtime.

    Raises
    ------
    PersistenceError
        If a stored configuration exists but cannot be read.
    """
    service = ConfigService(ConfigStore(config.store.path_as_path))
    service.load()

    window = BootstrapWindow(config.security.bootstrap_window, clock)
    policy = PasswordPolicy(
        min_entropy_wan=config.security.min_entropy_wan,
        min_entropy_lan=config.security.min_entropy_lan,
    )
    worker = SyncWorker(
        service,
        engine or LoggingSyncEngine(),
        interval=config.sync.interval,
        first_delay=config.sync.first_delay,
    )
    pipeline = SavePipeline(service, window, policy, worker)

    return PanelRuntime(
        config=config,
        service=service,
        window=window,
        pipeline=pipeline,
        worker=worker,
        log_buffer=get_memory_handler(config.logging.buffer_size),
    )
