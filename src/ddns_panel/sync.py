"""
Synchronization trigger and worker.

A ``SyncWorker`` schedules synchronization passes on an APScheduler
background scheduler: one per "configuration changed" event published with
``trigger()``, plus one every ``interval`` seconds. What a pass does is up to
the ``BaseSyncEngine`` it drives.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler

if TYPE_CHECKING:
    from ddns_panel.models import Configuration
    from ddns_panel.service import ConfigService


logger = logging.getLogger(__name__)

PERIODIC_JOB_ID = "periodic_sync"


class BaseSyncEngine(ABC):
    """
    Abstract base class for synchronization engines.

    An engine reconciles the DNS records of every configured domain with the
    current public addresses. Engines must be safe to call from the worker
    thread; they receive a private copy of the configuration.
    """

    @abstractmethod
    def run_once(self, config: Configuration, *, force: bool) -> None:
        """
        Run one synchronization pass.

        Parameters
        ----------
        config : Configuration
            Snapshot of the configuration taken for this pass.
        force : bool
            If True, update records even when the detected address has not
            changed since the previous pass.
        """
        ...


class LoggingSyncEngine(BaseSyncEngine):
    """Engine that only logs the records a pass would reconcile."""

    def run_once(self, config: Configuration, *, force: bool) -> None:
        """Log every enabled domain of the configuration."""
        if not config.dns_conf:
            logger.info("[sync] No domain entries configured.")
            return
        for index, domain in enumerate(config.dns_conf, start=1):
            for family, ip_config in (("ipv4", domain.ipv4), ("ipv6", domain.ipv6)):
                if not ip_config.enable or not ip_config.domains:
                    continue
                logger.info(
                    "[sync] entry=%d provider=%s family=%s get_type=%s domains=%s force=%s",
                    index,
                    domain.dns.name,
                    family,
                    ip_config.get_type,
                    ",".join(ip_config.domains),
                    force,
                )


class SyncWorker:
    """
    Scheduler-driven runner of synchronization passes.

    Parameters
    ----------
    service : ConfigService
        Source of configuration snapshots and of the force-recompute flag.
    engine : BaseSyncEngine
        Engine executing the passes.
    interval : float, optional
        Seconds between periodic passes.
    first_delay : float, optional
        Seconds before the first periodic pass.
    """

    def __init__(
        self,
        service: ConfigService,
        engine: BaseSyncEngine,
        interval: float = 300.0,
        first_delay: float = 0.1,
    ) -> None:
        self.service = service
        self.engine = engine
        self.interval = interval
        self.first_delay = first_delay
        self._scheduler = self._new_scheduler()

    @staticmethod
    def _new_scheduler() -> BackgroundScheduler:
        # A single executor thread keeps passes from overlapping
        return BackgroundScheduler(
            executors={"default": ThreadPoolExecutor(max_workers=1)},
            timezone="UTC",
            daemon=True,
        )

    @property
    def running(self) -> bool:
        """Whether the scheduler is running."""
        return self._scheduler.running

    @property
    def pending(self) -> int:
        """Number of triggered passes not yet started."""
        return sum(1 for job in self._scheduler.get_jobs() if job.id != PERIODIC_JOB_ID)

    def start(self) -> None:
        """
        Start the scheduler (no-op if already running).

        Passes triggered while the worker was stopped run right away.
        """
        if self.running:
            return
        self._scheduler.add_job(
            self.run_once,
            "interval",
            seconds=self.interval,
            id=PERIODIC_JOB_ID,
            next_run_time=datetime.now(timezone.utc) + timedelta(seconds=self.first_delay),
            coalesce=True,
            max_instances=1,
            misfire_grace_time=None,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            "Sync worker started (first pass in %.1fs, then every %.0fs).",
            self.first_delay,
            self.interval,
        )

    def stop(self, wait: bool = True) -> None:
        """
        Stop the scheduler.

        Parameters
        ----------
        wait : bool, optional
            If True, wait for the pass in progress to finish.
        """
        if not self.running:
            return
        self._scheduler.shutdown(wait=wait)
        # A shut down executor cannot be restarted
        self._scheduler = self._new_scheduler()
        logger.info("Sync worker stopped.")

    def trigger(self) -> None:
        """
        Publish a "configuration changed" event.

        Sets the force-recompute flag and schedules exactly one immediate
        pass. Returns without waiting for the pass.
        """
        self.service.request_force_recompute()
        self._scheduler.add_job(self.run_once, misfire_grace_time=None)

    def run_once(self) -> None:
        """
        Run one pass in the calling thread.

        Errors raised by the engine are logged, not propagated.
        """
        config, force = self.service.snapshot_for_sync()
        logger.debug("[sync] Running pass (force=%s).", force)
        try:
            self.engine.run_once(config, force=force)
        except Exception:
            logger.exception("Synchronization pass failed.")
