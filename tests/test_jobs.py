"""
Tests for schedule parsing and the background job runner.
"""
import threading
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from grocery_cache.jobs import JobSpec, default_jobs, parse_schedule, run_forever, run_job


class TestParseSchedule:
    """Tests for parse_schedule."""

    @pytest.mark.parametrize("schedule,expected", [
        ("every 12 hours", timedelta(hours=12)),
        ("every 24 hours", timedelta(hours=24)),
        ("every 1 hour", timedelta(hours=1)),
        ("Every 30 Minutes", timedelta(minutes=30)),
        ("every 2 days", timedelta(days=2)),
    ])
    def test_valid(self, schedule, expected):
        assert parse_schedule(schedule) == expected

    @pytest.mark.parametrize("schedule", ["", "hourly", "every hours", "every 0 hours", "every 3 weeks"])
    def test_invalid(self, schedule):
        with pytest.raises(ValueError):
            parse_schedule(schedule)


class TestJobSpec:
    """Tests for JobSpec."""

    def test_bad_schedule_fails_at_definition(self):
        with pytest.raises(ValueError):
            JobSpec("broken", "twice a day", "America/New_York", lambda: None)

    def test_bad_timezone_fails_at_definition(self):
        with pytest.raises(Exception):
            JobSpec("broken", "every 12 hours", "Mars/Olympus_Mons", lambda: None)

    def test_next_run_in_job_timezone(self):
        job = JobSpec("warm", "every 12 hours", "America/New_York", lambda: None)
        now = datetime(2026, 10, 18, 12, 0, tzinfo=ZoneInfo("UTC"))

        next_run = job.next_run_at(now)

        assert next_run.tzinfo == ZoneInfo("America/New_York")
        assert next_run - now == timedelta(hours=12)

    def test_default_jobs(self, store):
        jobs = default_jobs(store)
        assert [job.name for job in jobs] == [
            "warm-product-cache",
            "cleanup-product-cache",
            "cleanup-meal-image-cache",
        ]
        assert jobs[0].interval == timedelta(hours=12)
        assert jobs[1].interval == timedelta(hours=24)


class TestRunner:
    """Tests for run_job and run_forever."""

    def test_run_job_success(self):
        calls = []
        assert run_job(JobSpec("ok", "every 1 hour", "UTC", lambda: calls.append(1))) is True
        assert calls == [1]

    def test_failed_job_is_logged_not_raised(self):
        def boom():
            raise RuntimeError("upstream down")

        assert run_job(JobSpec("boom", "every 1 hour", "UTC", boom)) is False

    def test_run_forever_runs_immediately_and_stops(self):
        stop_event = threading.Event()
        calls = []

        def tick():
            calls.append(1)
            stop_event.set()

        run_forever(
            [JobSpec("tick", "every 1 hour", "UTC", tick)],
            stop_event=stop_event,
            run_immediately=True,
        )

        assert calls == [1]
