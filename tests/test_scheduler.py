"""
Accounting Back Office
Tests — background scheduler.

Covers:
    1. Job registration + DB records
    2. Job execution (success, failure, single-flight skip)
    3. Interval thread start/stop
    4. Scheduler API
"""

import threading
from unittest.mock import patch

import click
import pytest
from flask import Flask

from backoffice.models import db
from backoffice.models.scheduling import ScheduledJob
from backoffice.models.task import Task
from backoffice.services import scheduler_service
from backoffice.services.scheduler_service import (
    SchedulerService,
    _get_default_schedule,
    get_registered_jobs,
)

JOB = "recurring_task_generation"


# ═══════════════════════════════════════════════════════════════════════════
#  1. REGISTRATION
# ═══════════════════════════════════════════════════════════════════════════

def test_generation_job_is_registered():
    assert JOB in get_registered_jobs()


def test_ensure_jobs_registered_creates_record():
    SchedulerService.ensure_jobs_registered()

    record = ScheduledJob.query.filter_by(job_name=JOB).first()
    assert record is not None
    assert record.is_enabled is True
    assert record.schedule_type == "interval"
    assert record.schedule_config["run_on_start"] is True


def test_ensure_jobs_registered_is_idempotent():
    SchedulerService.ensure_jobs_registered()
    assert SchedulerService.ensure_jobs_registered() == []
    assert ScheduledJob.query.filter_by(job_name=JOB).count() == 1


def test_default_schedule_uses_config_interval(app):
    schedule = _get_default_schedule(JOB, app)
    assert schedule["interval_hours"] == app.config["RECURRING_TASK_INTERVAL_HOURS"]


def test_scheduler_not_started_under_test():
    assert SchedulerService.is_running() is False



@pytest.fixture()
def serving_app(app):
    """Bare app with the scheduler switched on; restores the session app after."""
    served = Flask("scheduler_autostart")
    served.config.update(RECURRING_TASK_SCHEDULER_ENABLED=True, TESTING=False,
                         RECURRING_TASK_INTERVAL_HOURS=24)
    yield served
    SchedulerService.init_app(app)


@pytest.mark.parametrize("command", ["db", "upgrade", "generate-recurring-tasks"])
def test_init_app_does_not_start_thread_under_cli(serving_app, command):
    with patch.object(SchedulerService, "start") as start:
        with click.Context(click.Command(command), info_name=command):
            SchedulerService.init_app(serving_app)

    start.assert_not_called()
    assert SchedulerService.is_running() is False


def test_init_app_starts_thread_under_flask_run(serving_app):
    with patch.object(SchedulerService, "start") as start:
        with click.Context(click.Command("run"), info_name="run"):
            SchedulerService.init_app(serving_app)

    start.assert_called_once_with(24)


def test_init_app_starts_thread_under_wsgi_server(serving_app):
    with patch.object(SchedulerService, "start") as start:
        SchedulerService.init_app(serving_app)

    start.assert_called_once_with(24)


def test_init_app_respects_disabled_flag(serving_app):
    serving_app.config["RECURRING_TASK_SCHEDULER_ENABLED"] = False
    with patch.object(SchedulerService, "start") as start:
        SchedulerService.init_app(serving_app)

    start.assert_not_called()


# ═══════════════════════════════════════════════════════════════════════════
#  2. EXECUTION
# ═══════════════════════════════════════════════════════════════════════════

def test_run_job_generates_tasks(tenant, make_template):
    make_template(tenant.id)
    SchedulerService.ensure_jobs_registered()

    result = SchedulerService.run_job(JOB)

    assert result["status"] == "success"
    assert result["result"]["created"] == 1
    db.session.expire_all()
    assert Task.query.filter_by(tenant_id=tenant.id, is_auto_generated=True).count() == 1
    record = ScheduledJob.query.filter_by(job_name=JOB).first()
    assert record.run_count == 1
    assert record.last_run_status == "success"


def test_run_job_records_failure():
    SchedulerService.ensure_jobs_registered()
    with patch(
        "backoffice.services.recurring_task_service.RecurringTaskGenerator."
        "generate_upcoming_recurring_tasks",
        side_effect=RuntimeError("database unavailable"),
    ):
        result = SchedulerService.run_job(JOB)

    assert result["status"] == "failed"
    assert "database unavailable" in result["error"]
    db.session.expire_all()
    record = ScheduledJob.query.filter_by(job_name=JOB).first()
    assert record.error_count == 1
    assert record.last_error == "database unavailable"


def test_run_job_skips_when_already_running():
    lock = scheduler_service._job_locks[JOB]
    assert lock.acquire(blocking=False)
    try:
        result = SchedulerService.run_job(JOB)
    finally:
        lock.release()

    assert result["status"] == "skipped"
    assert result["error"] == "Job already running"


def test_overlapping_firings_run_once(tenant, make_template):
    make_template(tenant.id)
    started = threading.Event()
    release = threading.Event()
    calls = []

    def _slow(app):
        calls.append(1)
        started.set()
        release.wait(5)
        return {"ok": True}

    with patch.dict(scheduler_service._job_registry, {JOB: _slow}):
        worker = threading.Thread(target=SchedulerService.run_job, args=(JOB,))
        worker.start()
        assert started.wait(5)
        second = SchedulerService.run_job(JOB)
        release.set()
        worker.join(5)

    assert second["status"] == "skipped"
    assert len(calls) == 1


def test_run_unknown_job():
    result = SchedulerService.run_job("no_such_job")
    assert result["status"] == "error"


def test_paused_job_is_not_run():
    SchedulerService.ensure_jobs_registered()
    SchedulerService.toggle_job(JOB, False)

    with patch.object(SchedulerService, "run_job") as run_job:
        results = SchedulerService.run_enabled_jobs()

    run_job.assert_not_called()
    assert results == []


# ═══════════════════════════════════════════════════════════════════════════
#  3. INTERVAL THREAD
# ═══════════════════════════════════════════════════════════════════════════

def test_start_fires_immediately_then_stops():
    fired = threading.Event()

    def _tick(cls=None):
        fired.set()
        return []

    with patch.object(SchedulerService, "run_enabled_jobs", side_effect=_tick):
        assert SchedulerService.start(interval_hours=24) is True
        try:
            assert SchedulerService.start(interval_hours=24) is False
            assert fired.wait(5)
            assert SchedulerService.is_running() is True
        finally:
            SchedulerService.stop()

    assert SchedulerService.is_running() is False


def test_tick_failure_does_not_kill_loop():
    calls = []
    second = threading.Event()

    def _tick():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        second.set()
        return []

    with patch.object(SchedulerService, "run_enabled_jobs", side_effect=_tick):
        SchedulerService.start(interval_hours=0.0001)
        try:
            assert second.wait(5)
        finally:
            SchedulerService.stop()


# ═══════════════════════════════════════════════════════════════════════════
#  4. API
# ═══════════════════════════════════════════════════════════════════════════

class TestSchedulerAPI:

    def test_list_jobs(self, client):
        res = client.get("/api/v1/scheduler/jobs")
        assert res.status_code == 200
        data = res.get_json()
        assert JOB in [j["job_name"] for j in data["jobs"]]
        assert data["running"] is False

    def test_get_job(self, client):
        client.get("/api/v1/scheduler/jobs")
        res = client.get(f"/api/v1/scheduler/jobs/{JOB}")
        assert res.status_code == 200
        assert res.get_json()["job_name"] == JOB

    def test_get_missing_job_404(self, client):
        res = client.get("/api/v1/scheduler/jobs/nope")
        assert res.status_code == 404

    def test_trigger(self, client, tenant, make_template):
        make_template(tenant.id)
        res = client.post(f"/api/v1/scheduler/jobs/{JOB}/trigger")
        assert res.status_code == 200
        assert res.get_json()["result"]["created"] == 1

    def test_trigger_while_running_409(self, client):
        lock = scheduler_service._job_locks[JOB]
        lock.acquire()
        try:
            res = client.post(f"/api/v1/scheduler/jobs/{JOB}/trigger")
        finally:
            lock.release()
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"

    def test_trigger_unknown_404(self, client):
        res = client.post("/api/v1/scheduler/jobs/nope/trigger")
        assert res.status_code == 404

    @pytest.mark.parametrize("enabled,status", [(False, "paused"), (True, "active")])
    def test_toggle(self, client, enabled, status):
        res = client.patch(f"/api/v1/scheduler/jobs/{JOB}/toggle", json={"enabled": enabled})
        assert res.status_code == 200
        data = res.get_json()
        assert data["is_enabled"] is enabled
        assert data["status"] == status

    def test_toggle_requires_enabled(self, client):
        res = client.patch(f"/api/v1/scheduler/jobs/{JOB}/toggle", json={})
        assert res.status_code == 400

    @pytest.mark.parametrize("value", ["false", "true", 0, 1, "no"])
    def test_toggle_rejects_non_boolean(self, client, value):
        client.patch(f"/api/v1/scheduler/jobs/{JOB}/toggle", json={"enabled": True})

        res = client.patch(f"/api/v1/scheduler/jobs/{JOB}/toggle", json={"enabled": value})

        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"
        db.session.expire_all()
        assert ScheduledJob.query.filter_by(job_name=JOB).first().is_enabled is True
