"""
Tests for the in-process job registry.
"""

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from innoaccess.core import scheduler


@pytest.fixture(autouse=True)
def empty_registry(monkeypatch):
    monkeypatch.setattr(scheduler, "_job_registry", {})
    monkeypatch.setattr(scheduler, "_scheduler", None)


class TestRegistry:
    """Tests for registering and manually running jobs."""

    def test_registered_job_is_listed_as_not_scheduled(self):
        async def job():
            return {"ok": True}

        scheduler.register_job("demo", job, IntervalTrigger(minutes=1))

        assert scheduler.list_registered_jobs() == [
            {"job_id": "demo", "registered": True, "next_run_time": None, "is_paused": True}
        ]

    @pytest.mark.asyncio
    async def test_trigger_returns_job_result(self):
        async def job():
            return {"sent": 3}

        scheduler.register_job("demo", job, IntervalTrigger(minutes=1))
        outcome = await scheduler.trigger_job_manually("demo")

        assert outcome["status"] == "success"
        assert outcome["result"] == {"sent": 3}

    @pytest.mark.asyncio
    async def test_trigger_reports_failure(self):
        async def job():
            raise RuntimeError("boom")

        scheduler.register_job("demo", job, IntervalTrigger(minutes=1))
        outcome = await scheduler.trigger_job_manually("demo")

        assert outcome["status"] == "error"
        assert outcome["error"] == "boom"

    @pytest.mark.asyncio
    async def test_trigger_unknown_job(self):
        with pytest.raises(ValueError):
            await scheduler.trigger_job_manually("missing")

    def test_pause_without_scheduler(self):
        assert scheduler.pause_job("demo") is False
        assert scheduler.resume_job("demo") is False
