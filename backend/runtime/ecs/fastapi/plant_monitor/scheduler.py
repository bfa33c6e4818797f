import logging
import threading
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Optional

from .models import ensure_utc

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def next_fire_time(now: datetime, hour: int, minute: int) -> datetime:
    """First instant strictly after ``now`` whose UTC time is ``hour:minute:00``."""
    now = ensure_utc(now)
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class DailyMessageScheduler:
    """Fires ``job(now)`` once per UTC day at a fixed wall-clock time.

    ``tick`` holds the firing decision and can be driven by a simulated clock;
    ``start`` runs it on a background thread that sleeps until the next fire
    time instead of polling.
    """

    def __init__(
        self,
        job: Callable[[datetime], Any],
        hour: int,
        minute: int,
        clock: Clock = utc_now,
    ) -> None:
        self.job = job
        self.hour = hour
        self.minute = minute
        self.clock = clock
        self.last_fired_on: Optional[date] = None
        self.next_fire = next_fire_time(clock(), hour, minute)
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def tick(self, now: Optional[datetime] = None) -> bool:
        """Fire if the next fire time has been reached. Returns True when the job ran."""
        with self._lock:
            now = ensure_utc(now or self.clock())
            if now < self.next_fire:
                return False

            fire_date = self.next_fire.date()
            self.next_fire = next_fire_time(now, self.hour, self.minute)
            if self.last_fired_on == fire_date:
                return False

            self.last_fired_on = fire_date
            logger.info("Daily message firing for %s", fire_date.isoformat())
            try:
                self.job(now)
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("Scheduled job raised")
            return True

    def seconds_until_next_fire(self, now: Optional[datetime] = None) -> float:
        now = ensure_utc(now or self.clock())
        return max(0.0, (self.next_fire - now).total_seconds())

    def _run(self) -> None:
        logger.info("Scheduler started; next fire at %s", self.next_fire.isoformat())
        while not self._stop.wait(self.seconds_until_next_fire()):
            self.tick()
        logger.info("Scheduler stopped")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="daily-message-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
