import threading
from datetime import datetime, timedelta, timezone

import pytest

from plant_monitor.scheduler import DailyMessageScheduler, next_fire_time

DAY_START = datetime(2024, 6, 1, 0, 0, tzinfo=timezone.utc)


class SimulatedClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> datetime:
        self.now += delta
        return self.now


def _scheduler(clock, fired, hour=13, minute=11):
    return DailyMessageScheduler(fired.append, hour=hour, minute=minute, clock=clock)


class TestNextFireTime:
    def test_later_today(self):
        now = datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc)
        assert next_fire_time(now, 13, 11) == datetime(2024, 6, 1, 13, 11, tzinfo=timezone.utc)

    def test_already_passed_rolls_to_tomorrow(self):
        now = datetime(2024, 6, 1, 13, 11, 30, tzinfo=timezone.utc)
        assert next_fire_time(now, 13, 11) == datetime(2024, 6, 2, 13, 11, tzinfo=timezone.utc)

    def test_exact_match_is_not_after_now(self):
        now = datetime(2024, 6, 1, 13, 11, tzinfo=timezone.utc)
        assert next_fire_time(now, 13, 11) == datetime(2024, 6, 2, 13, 11, tzinfo=timezone.utc)

    def test_month_rollover(self):
        now = datetime(2024, 6, 30, 23, 59, tzinfo=timezone.utc)
        assert next_fire_time(now, 0, 0) == datetime(2024, 7, 1, 0, 0, tzinfo=timezone.utc)


class TestDailyMessageScheduler:
    def test_fires_once_over_a_day_of_minute_ticks(self):
        clock = SimulatedClock(DAY_START)
        fired = []
        scheduler = _scheduler(clock, fired)

        firing_ticks = []
        for _ in range(24 * 60):
            now = clock.advance(timedelta(minutes=1))
            if scheduler.tick(now):
                firing_ticks.append(now)

        assert firing_ticks == [datetime(2024, 6, 1, 13, 11, tzinfo=timezone.utc)]
        assert fired == firing_ticks

    def test_fires_once_with_sub_minute_ticks(self):
        clock = SimulatedClock(DAY_START + timedelta(hours=13))
        fired = []
        scheduler = _scheduler(clock, fired)

        # Every second from 13:00 to 14:00, several ticks inside 13:11
        for _ in range(3600):
            scheduler.tick(clock.advance(timedelta(seconds=1)))

        assert len(fired) == 1
        assert fired[0] == datetime(2024, 6, 1, 13, 11, tzinfo=timezone.utc)

    def test_fires_once_per_day_over_several_days(self):
        clock = SimulatedClock(DAY_START)
        fired = []
        scheduler = _scheduler(clock, fired, hour=6, minute=0)

        for _ in range(3 * 24 * 60):
            scheduler.tick(clock.advance(timedelta(minutes=1)))

        assert [moment.date().day for moment in fired] == [1, 2, 3]
        assert all(moment.hour == 6 and moment.minute == 0 for moment in fired)

    def test_late_tick_still_fires_once(self):
        clock = SimulatedClock(DAY_START)
        fired = []
        scheduler = _scheduler(clock, fired)

        assert scheduler.tick(datetime(2024, 6, 1, 13, 40, tzinfo=timezone.utc)) is True
        assert scheduler.tick(datetime(2024, 6, 1, 13, 41, tzinfo=timezone.utc)) is False
        assert len(fired) == 1
        assert scheduler.next_fire == datetime(2024, 6, 2, 13, 11, tzinfo=timezone.utc)

    def test_started_after_trigger_waits_for_tomorrow(self):
        clock = SimulatedClock(datetime(2024, 6, 1, 15, 0, tzinfo=timezone.utc))
        fired = []
        scheduler = _scheduler(clock, fired)

        assert scheduler.tick(clock.advance(timedelta(minutes=1))) is False
        assert scheduler.seconds_until_next_fire() == pytest.approx(22 * 3600 + 10 * 60)

    def test_job_failure_does_not_stop_schedule(self):
        clock = SimulatedClock(DAY_START)
        calls = []

        def failing_job(now):
            calls.append(now)
            raise RuntimeError("boom")

        scheduler = DailyMessageScheduler(failing_job, hour=0, minute=5, clock=clock)
        for _ in range(2 * 24 * 60):
            scheduler.tick(clock.advance(timedelta(minutes=1)))

        assert len(calls) == 2

    def test_concurrent_ticks_fire_once(self):
        clock = SimulatedClock(datetime(2024, 6, 1, 13, 10, tzinfo=timezone.utc))
        fired = []
        scheduler = _scheduler(clock, fired)
        moment = datetime(2024, 6, 1, 13, 11, tzinfo=timezone.utc)

        threads = [threading.Thread(target=scheduler.tick, args=(moment,)) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(fired) == 1

    def test_background_thread_runs_and_stops(self):
        fired = threading.Event()
        start = datetime.now(timezone.utc)
        # Fire time two seconds from now on the real clock
        target = start + timedelta(seconds=2)
        scheduler = DailyMessageScheduler(lambda now: fired.set(), hour=target.hour, minute=target.minute)
        scheduler.next_fire = target

        scheduler.start()
        try:
            assert scheduler.running
            assert fired.wait(timeout=10)
        finally:
            scheduler.stop()
        assert not scheduler.running
