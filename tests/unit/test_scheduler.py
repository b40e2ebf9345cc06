"""Unit tests for the background job scheduler."""

import pytest

from servicedesk.sla.infrastructure import ServiceDeskScheduler


async def _noop():
    return None


class TestServiceDeskScheduler:

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        scheduler = ServiceDeskScheduler()
        scheduler.add_interval_job(_noop, seconds=60, job_id="escalation_scan")
        scheduler.add_interval_job(_noop, seconds=30, job_id="notification_delivery")

        await scheduler.start()
        try:
            assert scheduler.is_running
            assert scheduler.job_ids == ["escalation_scan", "notification_delivery"]
        finally:
            await scheduler.stop()

        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_stop_before_start_is_a_noop(self):
        scheduler = ServiceDeskScheduler()
        await scheduler.stop()
        assert not scheduler.is_running
