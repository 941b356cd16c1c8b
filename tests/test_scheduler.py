import threading
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from services.scheduler import CronError, CronSchedule, PriceWatchScheduler

IST = ZoneInfo("Asia/Kolkata")


class TestCronSchedule:
    def test_every_five_minutes(self):
        schedule = CronSchedule("*/5 * * * *", "Asia/Kolkata")
        start = datetime(2030, 1, 10, 9, 2, 30, tzinfo=IST)

        fires = []
        for fire in schedule.iter_fire_times(start):
            fires.append(fire)
            if len(fires) == 3:
                break

        assert [f.strftime("%H:%M") for f in fires] == ["09:05", "09:10", "09:15"]
        assert all(f.tzinfo == IST for f in fires)

    def test_next_after_is_strictly_later(self):
        schedule = CronSchedule("*/5 * * * *", "Asia/Kolkata")
        exactly_on_tick = datetime(2030, 1, 10, 9, 5, 0, tzinfo=IST)

        assert schedule.next_after(exactly_on_tick) == datetime(2030, 1, 10, 9, 10, tzinfo=IST)

    def test_evaluated_in_schedule_zone(self):
        schedule = CronSchedule("30 9 * * *", "Asia/Kolkata")
        # 03:00 UTC is 08:30 IST
        start = datetime(2030, 1, 10, 3, 0, tzinfo=timezone.utc)

        fire = schedule.next_after(start)

        assert fire == datetime(2030, 1, 10, 9, 30, tzinfo=IST)
        assert fire.astimezone(timezone.utc).hour == 4

    def test_rolls_over_to_next_day(self):
        schedule = CronSchedule("0 6 * * *", "UTC")
        start = datetime(2030, 1, 31, 7, 0, tzinfo=timezone.utc)

        assert schedule.next_after(start) == datetime(2030, 2, 1, 6, 0, tzinfo=ZoneInfo("UTC"))

    def test_lists_ranges_and_steps(self):
        schedule = CronSchedule("0,30 8-10/2 * * *", "UTC")

        assert schedule.minutes == {0, 30}
        assert schedule.hours == {8, 10}

    def test_day_of_week_sunday_aliases(self):
        # 2030-01-13 is a Sunday
        for expr in ("0 12 * * 0", "0 12 * * 7"):
            schedule = CronSchedule(expr, "UTC")
            fire = schedule.next_after(datetime(2030, 1, 10, tzinfo=timezone.utc))
            assert fire.date().isoformat() == "2030-01-13"

    def test_day_of_month_or_day_of_week(self):
        # 1st of month OR Monday; 2030-01-14 is the first Monday after the 10th
        schedule = CronSchedule("0 0 1 * 1", "UTC")
        fire = schedule.next_after(datetime(2030, 1, 10, tzinfo=timezone.utc))
        assert fire.date().isoformat() == "2030-01-14"

    def test_naive_start_is_read_in_schedule_zone(self):
        schedule = CronSchedule("*/5 * * * *", "Asia/Kolkata")
        fire = schedule.next_after(datetime(2030, 1, 10, 9, 1))
        assert fire == datetime(2030, 1, 10, 9, 5, tzinfo=IST)

    @pytest.mark.parametrize(
        "expression",
        ["* * * *", "61 * * * *", "*/0 * * * *", "a * * * *", "5-1 * * * *", "* * * 13 *", "1,,2 * * * *"],
    )
    def test_invalid_expressions(self, expression):
        with pytest.raises(CronError):
            CronSchedule(expression, "UTC")

    def test_impossible_date_never_fires(self):
        schedule = CronSchedule("0 0 31 2 *", "UTC")
        with pytest.raises(CronError):
            schedule.next_after(datetime(2030, 1, 1, tzinfo=timezone.utc))


class TestPriceWatchScheduler:
    def test_tick_swallows_job_errors(self):
        calls = []

        def job():
            calls.append(1)
            raise RuntimeError("boom")

        scheduler = PriceWatchScheduler(job, CronSchedule("*/5 * * * *", "UTC"))

        scheduler.tick()
        scheduler.tick()

        assert len(calls) == 2
        assert scheduler.ticks == 2

    def test_runs_job_when_fire_time_reached_and_stops(self):
        ran = threading.Event()
        schedule = CronSchedule("*/5 * * * *", "UTC")
        # Pretend it's one microsecond before a tick so the loop fires immediately
        almost = datetime(2030, 1, 10, 9, 4, 59, 999999, tzinfo=ZoneInfo("UTC"))

        scheduler = PriceWatchScheduler(ran.set, schedule, now_fn=lambda: almost)
        scheduler.start()
        try:
            assert ran.wait(timeout=5)
        finally:
            scheduler.stop(timeout=5)

        assert scheduler.running is False
        assert scheduler.ticks >= 1

    def test_stop_interrupts_wait(self):
        calls = []
        schedule = CronSchedule("0 0 1 1 *", "UTC")
        scheduler = PriceWatchScheduler(lambda: calls.append(1), schedule)

        scheduler.start()
        assert scheduler.running is True
        scheduler.stop(timeout=5)

        assert scheduler.running is False
        assert calls == []

    def test_early_wakeup_does_not_refire_same_slot(self):
        calls = []
        refired = threading.Event()
        ran = threading.Event()

        def job():
            calls.append(1)
            if len(calls) > 1:
                refired.set()
            ran.set()

        schedule = CronSchedule("*/5 * * * *", "UTC")
        # The clock keeps reporting a moment just before 09:05, as after an early wake
        almost = datetime(2030, 1, 10, 9, 4, 59, 999999, tzinfo=ZoneInfo("UTC"))

        scheduler = PriceWatchScheduler(job, schedule, now_fn=lambda: almost)
        scheduler.start()
        try:
            assert ran.wait(timeout=5)
            assert not refired.wait(timeout=0.3)
        finally:
            scheduler.stop(timeout=5)

        assert calls == [1]

    def test_next_fire_moves_past_last_fired_slot(self):
        scheduler = PriceWatchScheduler(lambda: None, CronSchedule("*/5 * * * *", "UTC"))
        utc = ZoneInfo("UTC")
        scheduler._last_fire_at = datetime(2030, 1, 10, 9, 5, tzinfo=utc)

        early = datetime(2030, 1, 10, 9, 4, 59, 990000, tzinfo=utc)

        assert scheduler._next_fire(early) == datetime(2030, 1, 10, 9, 10, tzinfo=utc)

    def test_never_firing_schedule_fails_on_start(self):
        scheduler = PriceWatchScheduler(lambda: None, CronSchedule("0 0 31 2 *", "UTC"))

        with pytest.raises(CronError):
            scheduler.start()

        assert scheduler.running is False
