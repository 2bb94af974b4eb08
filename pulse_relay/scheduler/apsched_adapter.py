"""APScheduler wrapper driving the periodic poll tick."""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..logging_conf import configure_logging

TICK_JOB_ID = "relay::tick"


class APSchedulerAdapter:
    """Own the background scheduler that fires tick boundaries."""

    def __init__(self) -> None:
        self.scheduler = BackgroundScheduler()
        self.logger = configure_logging().bind(component="scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_tick(
        self,
        callback: Callable[[], object],
        interval_s: float,
        run_immediately: bool = True,
    ) -> None:
        trigger = self._build_trigger(interval_s)
        job_kwargs: dict = {}
        if run_immediately:
            # a None next_run_time would add the job paused, so only pass it when set
            job_kwargs["next_run_time"] = datetime.now()
        # one timer; a late tick is coalesced rather than run twice
        self.scheduler.add_job(
            callback,
            trigger=trigger,
            id=TICK_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **job_kwargs,
        )
        self.logger.info("tick_scheduled", interval_s=interval_s)

    def remove_tick(self) -> None:
        try:
            self.scheduler.remove_job(TICK_JOB_ID)
        except Exception:  # noqa: BLE001
            self.logger.warning("job_remove_failed", job=TICK_JOB_ID)

    def _build_trigger(self, interval_s: float) -> IntervalTrigger:
        if interval_s <= 0:
            raise ValueError("Tick interval must be > 0 seconds")
        return IntervalTrigger(seconds=float(interval_s))

    def list_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
            )
        return jobs


__all__ = ["APSchedulerAdapter", "TICK_JOB_ID"]
