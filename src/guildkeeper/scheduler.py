"""Process-wide cron scheduler shared by all plugins.

A thin wrapper around APScheduler 3.x ``BackgroundScheduler``. Plugins
register plain callables with crontab expressions; every run goes through a
wrapper that logs exceptions, so a failing job ends only that invocation
and the next tick runs normally.

Jobs execute on APScheduler's thread pool. A job that is still running when
its next tick fires is skipped for that tick rather than run twice.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from guildkeeper.exceptions import ConfigError

logger = logging.getLogger(__name__)


class Scheduler:
    """Cron scheduler running jobs on a background thread pool.

    Jobs may be added before or after :meth:`start`.

    Example::

        scheduler = Scheduler()
        scheduler.add_cron_job("*/10 * * * *", plugin.refresh, name="schedule")
        scheduler.start()
    """

    def __init__(self, scheduler: Optional[BackgroundScheduler] = None) -> None:
        self._scheduler = scheduler or BackgroundScheduler(
            job_defaults={"coalesce": True, "max_instances": 1}
        )

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    def add_cron_job(self, expression: str, fn: Callable[[], None], name: str) -> str:
        """Run *fn* whenever the five-field crontab *expression* matches.

        Args:
            expression: Standard crontab expression, e.g. ``"*/5 * * * *"``.
            fn: Job body. Exceptions are logged, never propagated.
            name: Human-readable job name used in log lines.

        Returns:
            The APScheduler job id.

        Raises:
            ConfigError: If *expression* is not a valid crontab expression.
        """
        try:
            trigger = CronTrigger.from_crontab(expression)
        except ValueError as exc:
            raise ConfigError(f"invalid cron expression {expression!r} for {name}: {exc}") from exc

        def _job_wrapper() -> None:
            try:
                fn()
            except Exception:
                logger.exception("Scheduled job %s failed", name)

        job = self._scheduler.add_job(_job_wrapper, trigger, name=name)
        logger.debug("Scheduled %s with %r", name, expression)
        return job.id

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Scheduler started with %d job(s)", len(self._scheduler.get_jobs()))

    def shutdown(self) -> None:
        """Stop scheduling; running jobs are not waited for."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
