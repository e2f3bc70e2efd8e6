"""
Periodic jobs: quote refresh and retention cleanup.

Runs on APScheduler's BackgroundScheduler (worker threads). The refresh
job never fetches by itself; it goes through the refresh coordinator like
any on-demand caller, so a timer tick can only join or skip a refresh that
is already running.

config.yaml:

    scheduler:
      refresh: {enabled: true, interval_minutes: 5}
      cleanup: {enabled: true, cron: "0 * * * *"}

Each job takes either `interval_minutes` or a five-field `cron`.
"""

from typing import Any, Callable, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED, JobExecutionEvent
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from arbedge.core.config import Settings, get_settings, load_yaml_config
from arbedge.core.logging import get_logger
from arbedge.services.persistence import PersistenceService
from arbedge.services.refresh import RefreshCoordinator

logger = get_logger("scheduler")

DEFAULT_JOBS = {
    "refresh": {"enabled": True, "interval_minutes": 5},
    "cleanup": {"enabled": True, "cron": "0 * * * *"},
}


def run_scheduled_refresh(coordinator: RefreshCoordinator) -> None:
    """Refresh tick. Failures are logged; the next tick retries."""
    try:
        result = coordinator.ensure_fresh(trigger="scheduled")
    except Exception as e:
        logger.error(f"Scheduled refresh failed: {e}", exc_info=True)
        return

    if result.error:
        logger.warning(f"Scheduled refresh: {result.error}")


def run_cleanup(persistence: PersistenceService) -> None:
    """Retention tick."""
    try:
        persistence.cleanup_old_data()
    except Exception as e:
        logger.error(f"Cleanup job failed: {e}", exc_info=True)


class SchedulerService:
    """Owns the BackgroundScheduler and the jobs registered on it."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        config: Optional[dict] = None,
    ):
        self.settings = settings or get_settings()
        self.config = config if config is not None else load_yaml_config()
        self._scheduler: Optional[BackgroundScheduler] = None

    @property
    def scheduler(self) -> BackgroundScheduler:
        if self._scheduler is None:
            self._scheduler = BackgroundScheduler(timezone=self.settings.timezone)
            self._scheduler.add_listener(
                self._on_job_event, EVENT_JOB_ERROR | EVENT_JOB_MISSED
            )
        return self._scheduler

    @staticmethod
    def _on_job_event(event: JobExecutionEvent) -> None:
        if event.exception is not None:
            logger.error(f"Job {event.job_id} raised: {event.exception}")
        else:
            logger.warning(f"Job {event.job_id} missed its run at {event.scheduled_run_time}")

    def build_trigger(self, job_config: dict[str, Any]) -> BaseTrigger:
        """
        Trigger from a job's config entry.

        Raises:
            ValueError: Neither interval_minutes nor a valid cron is given
        """
        if "interval_minutes" in job_config:
            minutes = float(job_config["interval_minutes"])
            if minutes <= 0:
                raise ValueError(f"interval_minutes must be positive, got {minutes}")
            return IntervalTrigger(minutes=minutes, timezone=self.settings.timezone)

        cron = job_config.get("cron")
        if not cron:
            raise ValueError("Job needs interval_minutes or cron")
        return CronTrigger.from_crontab(cron, timezone=self.settings.timezone)

    def add_job(
        self,
        name: str,
        func: Callable,
        job_config: dict[str, Any],
        kwargs: Optional[dict] = None,
    ) -> str:
        """
        Register (or replace) a job.

        A job never overlaps itself; runs missed while the previous one was
        still going collapse into one.
        """
        trigger = self.build_trigger(job_config)
        job = self.scheduler.add_job(
            func,
            trigger=trigger,
            kwargs=kwargs or {},
            id=name,
            name=name,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info(f"Scheduled job {name}: {trigger}")
        return job.id

    def remove_job(self, name: str) -> bool:
        if self.scheduler.get_job(name) is None:
            return False
        self.scheduler.remove_job(name)
        logger.info(f"Removed job {name}")
        return True

    def setup_from_config(
        self,
        coordinator: RefreshCoordinator,
        persistence: PersistenceService,
    ) -> None:
        """Register the refresh and cleanup jobs enabled in config.yaml."""
        jobs_config = self.config.get("scheduler", {})
        targets = {
            "refresh": (run_scheduled_refresh, {"coordinator": coordinator}),
            "cleanup": (run_cleanup, {"persistence": persistence}),
        }

        for name, (func, kwargs) in targets.items():
            job_config = {**DEFAULT_JOBS[name], **jobs_config.get(name, {})}
            if not job_config.pop("enabled", True):
                logger.info(f"Job {name} disabled in config")
                continue
            if "cron" in jobs_config.get(name, {}):
                job_config.pop("interval_minutes", None)
            self.add_job(name, func, job_config, kwargs=kwargs)

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Scheduler started")

    def stop(self, wait: bool = True) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Scheduler stopped")

    @property
    def job_names(self) -> list[str]:
        return [job.name for job in self.scheduler.get_jobs()]

    def get_jobs(self) -> list[dict[str, Any]]:
        """Jobs with their next run time (None until the scheduler starts)."""
        jobs = []
        for job in self.scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "id": job.id,
                "name": job.name,
                "trigger": str(job.trigger),
                "next_run": next_run.isoformat() if next_run else None,
            })
        return jobs


def create_scheduler_service(
    settings: Optional[Settings] = None,
    config: Optional[dict] = None,
) -> SchedulerService:
    """Create scheduler service."""
    return SchedulerService(settings=settings, config=config)
