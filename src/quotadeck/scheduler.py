"""Single-threaded periodic refresh scheduling for watch mode."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

HISTORY_REFRESH_INTERVAL = 300


@dataclass
class Job:
    name: str
    interval: float
    func: Callable[[], None]
    next_run: float = 0.0


class RefreshScheduler:
    """Runs jobs at fixed intervals from one loop.

    Jobs run to completion in turn; a slow job only delays the ones after it.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.clock = clock
        self.sleep = sleep
        self.jobs: Dict[str, Job] = {}

    def add_job(
        self, name: str, interval: float, func: Callable[[], None], run_now: bool = False
    ) -> None:
        """Register (or replace) a job. Intervals <= 0 disable the job."""
        if interval <= 0:
            self.jobs.pop(name, None)
            logger.debug(f"[scheduler] job {name} disabled")
            return
        first = self.clock() if run_now else self.clock() + interval
        self.jobs[name] = Job(name=name, interval=interval, func=func, next_run=first)

    def seconds_until_next(self) -> Optional[float]:
        if not self.jobs:
            return None
        return max(0.0, min(job.next_run for job in self.jobs.values()) - self.clock())

    def run_pending(self) -> List[str]:
        """Run every job that is due. Returns the names of jobs that ran."""
        now = self.clock()
        ran = []
        for job in sorted(self.jobs.values(), key=lambda j: j.next_run):
            if job.next_run > now:
                continue
            job.next_run = now + job.interval
            try:
                job.func()
            except Exception as e:
                logger.error(f"[scheduler] job {job.name} failed: {e}")
            ran.append(job.name)
        return ran

    def run_forever(self, should_stop: Callable[[], bool] = lambda: False) -> None:
        while not should_stop():
            wait = self.seconds_until_next()
            if wait is None:
                return
            if wait > 0:
                self.sleep(wait)
            self.run_pending()
