"""Tests for the periodic refresh scheduler."""

from __future__ import annotations

import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from streamhub.config import settings
from streamhub.services.scheduler_service import REFRESH_JOB_ID, RefreshScheduler


class TestRefreshJob:
    @pytest.mark.asyncio
    async def test_runs_registered_callback(self):
        scheduler = RefreshScheduler()
        scheduler._refresh = AsyncMock(return_value=SimpleNamespace(error=None, degraded=False))

        await scheduler._refresh_job()

        scheduler._refresh.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_exceptions_are_logged_not_raised(self, caplog):
        scheduler = RefreshScheduler()
        scheduler._refresh = AsyncMock(side_effect=RuntimeError("boom"))

        with caplog.at_level(logging.ERROR):
            await scheduler._refresh_job()

        assert "Exception in scheduled refresh: boom" in caplog.text

    @pytest.mark.asyncio
    async def test_degraded_result_is_not_an_error(self, caplog):
        scheduler = RefreshScheduler()
        scheduler._refresh = AsyncMock(return_value=SimpleNamespace(error="Using cached data", degraded=True))

        with caplog.at_level(logging.ERROR):
            await scheduler._refresh_job()

        assert "Scheduled refresh failed" not in caplog.text


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_registers_interval_job(self):
        scheduler = RefreshScheduler()
        scheduler.start(AsyncMock())
        try:
            assert scheduler.running is True
            job = scheduler.scheduler.get_job(REFRESH_JOB_ID)
            assert job.max_instances == settings.refresh_max_overlap
            assert job.trigger.interval.total_seconds() == settings.refresh_interval_sec
            assert scheduler.get_next_run_time() is not None
        finally:
            scheduler.shutdown()

        assert scheduler.running is False
        assert scheduler.get_next_run_time() is None

    def test_shutdown_before_start_is_noop(self):
        scheduler = RefreshScheduler()
        scheduler.shutdown()
        assert scheduler.running is False
