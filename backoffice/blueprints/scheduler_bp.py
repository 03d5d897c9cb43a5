"""
Scheduler Blueprint — inspect and trigger background jobs.

Routes:
  GET    /scheduler/jobs                      – registered jobs with run history
  GET    /scheduler/jobs/<job_name>           – one job's DB record
  POST   /scheduler/jobs/<job_name>/trigger   – run a job now
  PATCH  /scheduler/jobs/<job_name>/toggle    – enable / pause a job
"""

import logging

from flask import Blueprint, jsonify, request

from backoffice.services.scheduler_service import SchedulerService
from backoffice.utils.errors import E, api_error

logger = logging.getLogger(__name__)

scheduler_bp = Blueprint("scheduler_bp", __name__, url_prefix="/api/v1/scheduler")


@scheduler_bp.route("/jobs", methods=["GET"])
def list_scheduled_jobs():
    """List all registered jobs with their status."""
    SchedulerService.ensure_jobs_registered()
    jobs = SchedulerService.list_jobs()
    return jsonify({"jobs": jobs, "total": len(jobs), "running": SchedulerService.is_running()})


@scheduler_bp.route("/jobs/<job_name>", methods=["GET"])
def get_job_status(job_name):
    """Get status of a specific scheduled job."""
    status = SchedulerService.get_job_status(job_name)
    if not status:
        return api_error(E.NOT_FOUND, f"Job '{job_name}' not found")
    return jsonify(status)


@scheduler_bp.route("/jobs/<job_name>/trigger", methods=["POST"])
def trigger_job(job_name):
    """Manually trigger a scheduled job."""
    SchedulerService.ensure_jobs_registered()
    result = SchedulerService.run_job(job_name)
    if result.get("status") == "error" and "Unknown job" in result.get("error", ""):
        return api_error(E.NOT_FOUND, result["error"])
    if result.get("status") == "skipped":
        return api_error(E.CONFLICT_STATE, f"Job '{job_name}' is already running",
                         details=result)
    return jsonify(result)


@scheduler_bp.route("/jobs/<job_name>/toggle", methods=["PATCH"])
def toggle_job_status(job_name):
    """Enable or disable a scheduled job."""
    data = request.get_json(silent=True) or {}
    enabled = data.get("enabled")
    if enabled is None:
        return api_error(E.VALIDATION_REQUIRED, "'enabled' field is required (true/false)")
    if not isinstance(enabled, bool):
        return api_error(E.VALIDATION_INVALID, "'enabled' must be a boolean",
                         details={"enabled": enabled})

    SchedulerService.ensure_jobs_registered()
    result = SchedulerService.toggle_job(job_name, enabled)
    if not result:
        return api_error(E.NOT_FOUND, f"Job '{job_name}' not found")

    logger.info("Job %s %s", job_name, "enabled" if enabled else "paused")
    return jsonify(result)
