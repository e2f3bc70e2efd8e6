"""Tests for the scheduler service."""

import pytest
from unittest.mock import Mock

from arbedge.core.errors import ProviderError
from arbedge.domain.models import RefreshResult
from arbedge.services.scheduler import (
    SchedulerService,
    run_cleanup,
    run_scheduled_refresh,
)
from tests.conftest import TEST_CONFIG


@pytest.fixture
def service(settings):
    return SchedulerService(settings=settings, config=TEST_CONFIG)


class TestSchedulerService:
    """Tests for job registration."""

    def test_setup_registers_jobs(self, service):
        service.setup_from_config(Mock(), Mock())

        assert service.job_names == ["refresh", "cleanup"]
        assert {job["name"] for job in service.get_jobs()} == {"refresh", "cleanup"}
        assert not service.scheduler.running

    def test_disabled_jobs_are_skipped(self, settings):
        config = {
            "scheduler": {
                "refresh": {"enabled": False},
                "cleanup": {"enabled": True, "cron": "30 2 * * *"},
            }
        }
        service = SchedulerService(settings=settings, config=config)

        service.setup_from_config(Mock(), Mock())

        assert service.job_names == ["cleanup"]

    def test_invalid_cron(self, service):
        with pytest.raises(ValueError):
            service.add_job("bad", lambda: None, {"cron": "every hour"})

    def test_missing_trigger(self, service):
        with pytest.raises(ValueError):
            service.add_job("bad", lambda: None, {})

    def test_cron_overrides_default_interval(self, settings):
        config = {"scheduler": {"refresh": {"cron": "*/10 * * * *"}}}
        service = SchedulerService(settings=settings, config=config)

        service.setup_from_config(Mock(), Mock())

        triggers = {job["name"]: job["trigger"] for job in service.get_jobs()}
        assert triggers["refresh"].startswith("cron")
        assert triggers["cleanup"].startswith("cron")

    def test_remove_job(self, service):
        service.add_job("refresh", lambda: None, {"interval_minutes": 5})

        assert service.remove_job("refresh")
        assert not service.remove_job("refresh")
        assert service.job_names == []

    def test_start_and_stop(self, service):
        service.setup_from_config(Mock(), Mock())

        service.start()
        try:
            assert service.scheduler.running
            assert all(job["next_run"] for job in service.get_jobs())
        finally:
            service.stop()

        assert not service.scheduler.running


class TestJobFunctions:
    """Tests for the job entry points."""

    def test_refresh_goes_through_coordinator(self):
        coordinator = Mock()
        coordinator.ensure_fresh.return_value = RefreshResult(refreshed=True, trigger="scheduled")

        run_scheduled_refresh(coordinator)

        coordinator.ensure_fresh.assert_called_once_with(trigger="scheduled")

    def test_refresh_failure_is_logged_not_raised(self):
        coordinator = Mock()
        coordinator.ensure_fresh.side_effect = ProviderError("down", provider="odds_api")

        run_scheduled_refresh(coordinator)

        coordinator.ensure_fresh.assert_called_once()

    def test_cleanup_failure_is_logged_not_raised(self):
        persistence = Mock()
        persistence.cleanup_old_data.side_effect = RuntimeError("locked")

        run_cleanup(persistence)

        persistence.cleanup_old_data.assert_called_once_with()
