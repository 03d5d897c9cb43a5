"""
Recurring Task Blueprint — generation trigger and approval review.

Routes:
  POST   /admin/generate-recurring-tasks              – run generation (one or all tenants)
  GET    /auto-generated-tasks                        – tasks awaiting approval
  POST   /auto-generated-tasks/<tid>/approve          – approve one task
  POST   /auto-generated-tasks/<tid>/reject           – reject (delete) one task
  POST   /auto-generated-tasks/approve-all            – approve every pending task
  GET    /recurring-tasks/settings                    – tenant lead time / auto-approve
  PUT    /recurring-tasks/settings                    – update them
  GET    /tasks/active                                – active work items

tenant_id comes from the tenant context middleware (X-Tenant-ID header or
tenant_id query param) or the JSON body.
"""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request

from backoffice.blueprints import page_of
from backoffice.core.exceptions import NotFoundError, ValidationError
from backoffice.models.tenant import SETTING_AUTO_APPROVE, SETTING_LEAD_DAYS
from backoffice.services.recurring_task_service import RecurringTaskGenerator
from backoffice.services.scheduled_jobs import GENERATION_JOB
from backoffice.services.scheduler_service import single_flight
from backoffice.services.task_approval_service import TaskApprovalService
from backoffice.services.task_store import TaskStore
from backoffice.utils.errors import E, api_error

logger = logging.getLogger(__name__)

recurring_task_bp = Blueprint("recurring_task_bp", __name__, url_prefix="/api/v1")


# ── Tenant helpers ────────────────────────────────────────────────────────────


def _tenant_id() -> int | None:
    tid = getattr(g, "tenant_id", None)
    if tid:
        return tid
    data: dict = request.get_json(silent=True) or {}
    raw = data.get("tenant_id")
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        raise ValidationError("tenant_id must be an integer", details={"tenant_id": raw})


def _tenant_required() -> tuple[int | None, tuple | None]:
    tid = _tenant_id()
    if not tid:
        return None, api_error(E.VALIDATION_REQUIRED, "tenant_id is required")
    return tid, None


# ── Error handlers ────────────────────────────────────────────────────────────


@recurring_task_bp.errorhandler(NotFoundError)
def _handle_not_found(error: NotFoundError):
    return api_error(E.NOT_FOUND, str(error))


@recurring_task_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(E.VALIDATION_INVALID, str(error), details=error.details or None)


# ═════════════════════════════════════════════════════════════════════════
# GENERATION
# ═════════════════════════════════════════════════════════════════════════


@recurring_task_bp.route("/admin/generate-recurring-tasks", methods=["POST"])
def generate_recurring_tasks():
    """Run generation now.

    Body: { tenant_id? } — omit to run for every tenant.
    Returns 409 while a scheduled or manual run is still in progress.
    """
    tenant_id = _tenant_id()
    if tenant_id and TaskStore().get_tenant(tenant_id) is None:
        raise NotFoundError(resource="Tenant", resource_id=tenant_id)

    generator = RecurringTaskGenerator()
    with single_flight(GENERATION_JOB) as acquired:
        if not acquired:
            return api_error(E.CONFLICT_STATE, "Recurring task generation is already running",
                             details={"job_name": GENERATION_JOB})
        if tenant_id:
            summary = generator.generate_recurring_tasks_for_tenant(tenant_id)
            message = f"Recurring tasks generated for tenant {tenant_id}"
        else:
            summary = generator.generate_upcoming_recurring_tasks()
            message = "Recurring tasks generated for all tenants"

    return jsonify({"message": message, "summary": summary.to_dict()})


# ═════════════════════════════════════════════════════════════════════════
# APPROVAL
# ═════════════════════════════════════════════════════════════════════════


@recurring_task_bp.route("/auto-generated-tasks", methods=["GET"])
def list_pending_tasks():
    """Auto-generated tasks awaiting approval for the current tenant."""
    tenant_id, err = _tenant_required()
    if err:
        return err
    tasks = TaskApprovalService().get_tasks_needing_approval(tenant_id)
    return jsonify({"items": [t.to_dict() for t in tasks], "total": len(tasks)})


@recurring_task_bp.route("/auto-generated-tasks/approve-all", methods=["POST"])
def approve_all_pending():
    tenant_id, err = _tenant_required()
    if err:
        return err
    approved = TaskApprovalService().approve_all_pending_tasks(tenant_id)
    return jsonify({
        "message": f"Approved {approved} pending tasks",
        "approved": approved,
    })


@recurring_task_bp.route("/auto-generated-tasks/<int:tid>/approve", methods=["POST"])
def approve_task(tid):
    tenant_id, err = _tenant_required()
    if err:
        return err
    if not TaskApprovalService().approve_task(tid, tenant_id):
        return api_error(E.NOT_FOUND, "Task not found or not eligible for approval")
    return jsonify({"message": "Task approved", "id": tid})


@recurring_task_bp.route("/auto-generated-tasks/<int:tid>/reject", methods=["POST"])
def reject_task(tid):
    tenant_id, err = _tenant_required()
    if err:
        return err
    if not TaskApprovalService().reject_task(tid, tenant_id):
        return api_error(E.NOT_FOUND, "Task not found or not eligible for rejection")
    return jsonify({"message": "Task rejected", "id": tid})


# ═════════════════════════════════════════════════════════════════════════
# SETTINGS
# ═════════════════════════════════════════════════════════════════════════


def _settings_payload(tenant_id: int) -> dict:
    generator = RecurringTaskGenerator()
    return {
        "tenant_id": tenant_id,
        "lead_days": generator.resolve_lead_days(tenant_id),
        "auto_approve": generator.resolve_auto_approve(tenant_id),
    }


@recurring_task_bp.route("/recurring-tasks/settings", methods=["GET"])
def get_settings():
    tenant_id, err = _tenant_required()
    if err:
        return err
    return jsonify(_settings_payload(tenant_id))


@recurring_task_bp.route("/recurring-tasks/settings", methods=["PUT"])
def update_settings():
    """Body: { lead_days?: int >= 0, auto_approve?: bool }"""
    tenant_id, err = _tenant_required()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    store = TaskStore()

    if "lead_days" in data:
        lead_days = data["lead_days"]
        if isinstance(lead_days, bool) or not isinstance(lead_days, int) or lead_days < 0:
            raise ValidationError("lead_days must be a non-negative integer",
                                  details={"lead_days": lead_days})
        store.set_tenant_setting(tenant_id, SETTING_LEAD_DAYS, lead_days)

    if "auto_approve" in data:
        auto_approve = data["auto_approve"]
        if not isinstance(auto_approve, bool):
            raise ValidationError("auto_approve must be a boolean",
                                  details={"auto_approve": auto_approve})
        store.set_tenant_setting(tenant_id, SETTING_AUTO_APPROVE,
                                 "true" if auto_approve else "false")

    return jsonify(_settings_payload(tenant_id))


# ═════════════════════════════════════════════════════════════════════════
# ACTIVE WORK
# ═════════════════════════════════════════════════════════════════════════


@recurring_task_bp.route("/tasks/active", methods=["GET"])
def list_active_tasks():
    """Work items; pending auto-generated tasks are excluded until approved."""
    tenant_id, err = _tenant_required()
    if err:
        return err
    return jsonify(page_of(TaskStore().active_tasks_query(tenant_id)))
