"""
Accounting Back Office
Scheduler Service.

Lightweight background job scheduler: a daemon thread fires every
registered job once at start-up and then once per interval (24h by
default). Jobs can also be triggered manually via the API.

Architecture:
    - register_job: decorator adding a job function to the registry
    - SchedulerService: job persistence, execution, interval thread
    - Jobs are stored in the ScheduledJob model for run history
    - Each job runs single-flight: a firing that starts while the same job
      is still running is skipped, never run concurrently
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator

import click
from flask import Flask

from backoffice.models import db
from backoffice.models.scheduling import ScheduledJob

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Job Registry
# ═══════════════════════════════════════════════════════════════════════════

_job_registry: dict[str, Callable] = {}
_job_locks: dict[str, threading.Lock] = {}


def register_job(name: str):
    """Decorator to register a job function.

    Usage:
        @register_job("recurring_task_generation")
        def generate_recurring_tasks(app):
            ...
    """
    def decorator(fn: Callable) -> Callable:
        _job_registry[name] = fn
        _job_locks.setdefault(name, threading.Lock())
        return fn
    return decorator


def get_registered_jobs() -> dict[str, Callable]:
    """Return all registered job functions."""
    return dict(_job_registry)


@contextmanager
def single_flight(job_name: str) -> Iterator[bool]:
    """Hold the job's run lock for the duration of the block.

    Yields False without waiting when another caller already holds it.
    """
    lock = _job_locks.setdefault(job_name, threading.Lock())
    acquired = lock.acquire(blocking=False)
    try:
        yield acquired
    finally:
        if acquired:
            lock.release()


def is_job_running(job_name: str) -> bool:
    lock = _job_locks.get(job_name)
    return lock is not None and lock.locked()


def _serving_process() -> bool:
    """False inside a flask CLI command other than `flask run`."""
    ctx = click.get_current_context(silent=True)
    return ctx is None or ctx.info_name == "run"


class SchedulerService:
    """
    Lightweight scheduler service.

    Manages job registration, persistence, and execution.
    Jobs are executed within Flask app context.
    """

    _app: Flask | None = None
    _thread: threading.Thread | None = None
    _stop_event: threading.Event | None = None

    @classmethod
    def init_app(cls, app: Flask) -> None:
        """Initialize scheduler with Flask app context.

        Starts the interval thread when RECURRING_TASK_SCHEDULER_ENABLED is
        set, the app is not under test and the process is serving requests.
        One-shot CLI commands (`flask db upgrade`, `flask generate-recurring-tasks`)
        never start it.
        """
        cls._app = app
        app.extensions["scheduler"] = cls
        logger.info("SchedulerService initialized with %d registered jobs",
                    len(_job_registry))
        if not app.config.get("RECURRING_TASK_SCHEDULER_ENABLED") or app.testing:
            return
        if not _serving_process():
            logger.info("CLI command in progress, scheduler thread not started")
            return
        cls.start(app.config.get("RECURRING_TASK_INTERVAL_HOURS", 24))

    @classmethod
    def ensure_jobs_registered(cls) -> list[ScheduledJob]:
        """
        Ensure all registered jobs have a corresponding DB record.
        Creates missing records with default config.
        """
        if not cls._app:
            return []

        created = []
        with cls._app.app_context():
            for name, fn in _job_registry.items():
                existing = ScheduledJob.query.filter_by(job_name=name).first()
                if not existing:
                    job = ScheduledJob(
                        job_name=name,
                        description=(fn.__doc__ or f"Scheduled job: {name}").strip(),
                        schedule_type="interval",
                        schedule_config=_get_default_schedule(name, cls._app),
                        status="active",
                        is_enabled=True,
                    )
                    db.session.add(job)
                    created.append(job)
            if created:
                db.session.commit()
                logger.info("Created %d scheduled job records", len(created))
        return created

    @classmethod
    def run_job(cls, job_name: str) -> dict:
        """
        Execute a single job by name.

        Returns:
            Dict with status, duration_ms, result or error. Status is
            "skipped" when a previous firing of the job is still running.
        """
        fn = _job_registry.get(job_name)
        if not fn:
            return {"status": "error", "error": f"Unknown job: {job_name}"}

        if not cls._app:
            return {"status": "error", "error": "Scheduler not initialized"}

        with single_flight(job_name) as acquired:
            if not acquired:
                logger.warning("Job %s is already running, skipping this firing", job_name,
                               extra={"job_name": job_name})
                return {
                    "job_name": job_name,
                    "status": "skipped",
                    "duration_ms": 0,
                    "result": None,
                    "error": "Job already running",
                }

            start = time.monotonic()
            result = None
            error = None
            status = "success"

            try:
                with cls._app.app_context():
                    result = fn(cls._app)
            except Exception as exc:
                status = "failed"
                error = str(exc)
                logger.exception("Job %s failed: %s", job_name, exc,
                                 extra={"job_name": job_name})

            duration_ms = int((time.monotonic() - start) * 1000)
            cls._record_run(job_name, status, duration_ms, result, error)

        return {
            "job_name": job_name,
            "status": status,
            "duration_ms": duration_ms,
            "result": result,
            "error": error,
        }

    @classmethod
    def _record_run(cls, job_name, status, duration_ms, result, error) -> None:
        try:
            with cls._app.app_context():
                job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
                if job_record:
                    job_record.record_run(
                        status=status,
                        duration_ms=duration_ms,
                        result=result if isinstance(result, dict) else {"output": str(result)},
                        error=error,
                    )
                    db.session.commit()
        except Exception:
            logger.exception("Failed to update job record for %s", job_name)

    # ── Interval thread ──────────────────────────────────────────────────

    @classmethod
    def start(cls, interval_hours: float = 24) -> bool:
        """Start the background thread; returns False if already running."""
        if cls._thread is not None and cls._thread.is_alive():
            return False
        cls._stop_event = threading.Event()
        cls._thread = threading.Thread(
            target=cls._run_loop,
            args=(interval_hours * 3600, cls._stop_event),
            name="scheduler",
            daemon=True,
        )
        cls._thread.start()
        logger.info("Scheduler thread started (every %sh)", interval_hours)
        return True

    @classmethod
    def stop(cls, timeout: float | None = 5) -> None:
        if cls._stop_event is not None:
            cls._stop_event.set()
        if cls._thread is not None:
            cls._thread.join(timeout)
        cls._thread = None

    @classmethod
    def is_running(cls) -> bool:
        return cls._thread is not None and cls._thread.is_alive()

    @classmethod
    def run_enabled_jobs(cls) -> list[dict]:
        """Fire every registered job whose DB record is enabled."""
        cls.ensure_jobs_registered()
        results = []
        for name in list(_job_registry):
            with cls._app.app_context():
                record = ScheduledJob.query.filter_by(job_name=name).first()
                enabled = record is None or record.is_enabled
            if not enabled:
                logger.info("Job %s is paused, skipping", name, extra={"job_name": name})
                continue
            results.append(cls.run_job(name))
        return results

    @classmethod
    def _run_loop(cls, interval_seconds: float, stop_event: threading.Event) -> None:
        # First firing happens immediately, then once per interval.
        while not stop_event.is_set():
            try:
                cls.run_enabled_jobs()
            except Exception:
                logger.exception("Scheduler tick failed")
            stop_event.wait(interval_seconds)

    # ── Queries ──────────────────────────────────────────────────────────

    @classmethod
    def list_jobs(cls) -> list[dict]:
        """List all registered jobs with their DB status."""
        jobs = []
        for name in _job_registry:
            job_record = ScheduledJob.query.filter_by(job_name=name).first()
            jobs.append({
                "job_name": name,
                "registered": True,
                "running": is_job_running(name),
                "db_record": job_record.to_dict() if job_record else None,
            })
        return jobs

    @classmethod
    def get_job_status(cls, job_name: str) -> dict | None:
        """Get status of a specific job."""
        job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
        if job_record:
            return job_record.to_dict()
        return None

    @classmethod
    def toggle_job(cls, job_name: str, enabled: bool) -> dict | None:
        """Enable or disable a scheduled job."""
        job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
        if not job_record:
            return None
        job_record.is_enabled = enabled
        job_record.status = "active" if enabled else "paused"
        db.session.commit()
        return job_record.to_dict()


def _get_default_schedule(job_name: str, app: Flask | None = None) -> dict:
    """Return default schedule config for known job types."""
    hours = app.config.get("RECURRING_TASK_INTERVAL_HOURS", 24) if app else 24
    defaults = {
        "recurring_task_generation": {
            "interval_hours": hours,
            "run_on_start": True,
            "description": f"At start-up, then every {hours}h",
        },
    }
    return defaults.get(job_name, {"interval_hours": hours,
                                   "description": f"Every {hours}h"})
