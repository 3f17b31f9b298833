"""
Periodic background jobs: scheduled warming and the two sweeps.

Each job runs on its own thread with its own interval and timezone, so a
slow warm never delays a sweep. A failed run is logged and the job waits
for its next tick; there is no retry in between.
"""
import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, List, Optional, Sequence
from zoneinfo import ZoneInfo

from config.settings import settings
from grocery_cache.cache import CacheStore
from grocery_cache.product_client import ProductSearchClient
from grocery_cache.sweeper import EvictionSweeper
from grocery_cache.warming import WarmingScheduler

logger = logging.getLogger("jobs")

_SCHEDULE_PATTERN = re.compile(r"^every\s+(\d+)\s+(minute|hour|day)s?$", re.IGNORECASE)


def parse_schedule(schedule: str) -> timedelta:
    """
    Parse an "every N minutes|hours|days" schedule string.

    Raises:
        ValueError: Unsupported format or a non-positive interval
    """
    match = _SCHEDULE_PATTERN.match((schedule or "").strip())
    if not match:
        raise ValueError(f"Unsupported schedule: {schedule!r}")
    count = int(match.group(1))
    if count <= 0:
        raise ValueError(f"Schedule interval must be positive: {schedule!r}")
    return timedelta(**{f"{match.group(2).lower()}s": count})


@dataclass
class JobSpec:
    """A named periodic job."""
    name: str
    schedule: str
    timezone: str
    func: Callable[[], Any]

    def __post_init__(self):
        # Fail at definition time, not on the first tick
        self.interval = parse_schedule(self.schedule)
        self.zone = ZoneInfo(self.timezone)

    def next_run_at(self, now: Optional[datetime] = None) -> datetime:
        """Next run time, in the job's timezone."""
        now = now or datetime.now(self.zone)
        return now.astimezone(self.zone) + self.interval


def default_jobs(store: CacheStore) -> List[JobSpec]:
    """The warm job and both sweep jobs, configured from settings."""
    scheduler = WarmingScheduler(store, ProductSearchClient(store))
    sweeper = EvictionSweeper(store)
    timezone = settings.schedule_timezone
    return [
        JobSpec("warm-product-cache", settings.warm_schedule, timezone, scheduler.run_scheduled_warm),
        JobSpec("cleanup-product-cache", settings.sweep_schedule, timezone, sweeper.sweep_product_cache),
        JobSpec("cleanup-meal-image-cache", settings.sweep_schedule, timezone, sweeper.sweep_image_cache),
    ]


def run_job(job: JobSpec) -> bool:
    """Run one tick of a job. Returns False if it raised."""
    logger.info(f"Running job {job.name}")
    try:
        job.func()
    except Exception:
        logger.exception(f"Job {job.name} failed")
        return False
    return True


def _job_loop(job: JobSpec, stop_event: threading.Event, run_immediately: bool) -> None:
    if run_immediately:
        run_job(job)
    while True:
        logger.info(f"Next run of {job.name} at {job.next_run_at().isoformat()}")
        if stop_event.wait(job.interval.total_seconds()):
            return
        run_job(job)


def run_forever(
    jobs: Sequence[JobSpec],
    stop_event: Optional[threading.Event] = None,
    run_immediately: bool = False,
) -> None:
    """
    Run every job on its own thread until ``stop_event`` is set.

    Ctrl-C sets the event and waits for the job threads to finish their
    current tick.
    """
    stop_event = stop_event or threading.Event()
    threads = []
    for job in jobs:
        thread = threading.Thread(
            target=_job_loop,
            args=(job, stop_event, run_immediately),
            name=f"job-{job.name}",
            daemon=True,
        )
        thread.start()
        threads.append(thread)
        logger.info(f"Scheduled {job.name}: {job.schedule} ({job.timezone})")

    try:
        for thread in threads:
            while thread.is_alive():
                thread.join(timeout=1.0)
    except KeyboardInterrupt:
        logger.info("Stopping jobs")
        stop_event.set()
        for thread in threads:
            thread.join()
