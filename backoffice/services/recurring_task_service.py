"""
Accounting Back Office
Recurring Task Generator.

For each tenant, inspects task templates marked ``is_recurring`` and, when
the next compliance period is inside the tenant's lead window and no task
exists for it yet, creates one auto-generated instance.

Per template:
    period    = calculate_next_compliance_period(frequency, duration, now)
    due       = calculate_due_date(period.end)
    gate      = is_within_lead_window(now, due, lead_days)
    duplicate = instance_exists(template, period)
    create    = create_instance(template, period, due)

Failures are isolated: one template failing never stops the rest of its
tenant, one tenant failing never stops the rest of the run.

Usage:
    from backoffice.services.recurring_task_service import RecurringTaskGenerator

    summary = RecurringTaskGenerator().generate_upcoming_recurring_tasks()
    summary.to_dict()
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

from flask import current_app, has_app_context

from backoffice.core.exceptions import (
    ConfigurationError,
    ConflictError,
    MissingInitialStatusError,
)
from backoffice.models import db
from backoffice.models.task import INITIAL_STATUS_RANK, Task
from backoffice.models.tenant import SETTING_AUTO_APPROVE, SETTING_LEAD_DAYS
from backoffice.services.compliance_period import (
    DEFAULT_LEAD_DAYS,
    FISCAL_YEAR_START_MONTH,
    CompliancePeriod,
    calculate_due_date,
    calculate_next_compliance_period,
    compliance_year_for,
    format_compliance_period,
    is_within_lead_window,
)
from backoffice.services.task_store import TaskStore

logger = logging.getLogger(__name__)


# Template outcomes
CREATED = "created"
DUPLICATE = "duplicate"
NOT_DUE = "not_due"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass
class GenerationSummary:
    """Counters for one generation run."""
    tenants_processed: int = 0
    tenants_failed: int = 0
    templates_examined: int = 0
    created: int = 0
    duplicates: int = 0
    not_due: int = 0
    skipped: int = 0
    failed: int = 0

    def record(self, outcome: str) -> None:
        self.templates_examined += 1
        if outcome == CREATED:
            self.created += 1
        elif outcome == DUPLICATE:
            self.duplicates += 1
        elif outcome == NOT_DUE:
            self.not_due += 1
        elif outcome == SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    def merge(self, other: GenerationSummary) -> None:
        for key, value in asdict(other).items():
            setattr(self, key, getattr(self, key) + value)

    def to_dict(self) -> dict:
        return asdict(self)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _config(key: str, default):
    if has_app_context():
        return current_app.config.get(key, default)
    return default


class RecurringTaskGenerator:
    """Materializes upcoming task instances from recurring templates."""

    def __init__(self, store: TaskStore | None = None, *,
                 default_lead_days: int | None = None,
                 fiscal_year_start_month: int | None = None) -> None:
        self.store = store or TaskStore()
        self.default_lead_days = (
            default_lead_days if default_lead_days is not None
            else int(_config("RECURRING_TASK_LEAD_DAYS", DEFAULT_LEAD_DAYS))
        )
        self.fiscal_year_start_month = (
            fiscal_year_start_month if fiscal_year_start_month is not None
            else int(_config("FISCAL_YEAR_START_MONTH", FISCAL_YEAR_START_MONTH))
        )

    # ── Orchestration ────────────────────────────────────────────────────

    def generate_upcoming_recurring_tasks(self, now: datetime | None = None) -> GenerationSummary:
        """Run generation for every active tenant."""
        now = now or _utcnow()
        summary = GenerationSummary()

        for tenant in self.store.iter_tenants():
            tenant_id = tenant.id
            try:
                summary.merge(self.generate_recurring_tasks_for_tenant(tenant_id, now=now))
            except Exception:
                db.session.rollback()
                summary.tenants_failed += 1
                logger.exception("Recurring task generation failed for tenant %s", tenant_id,
                                 extra={"tenant_id": tenant_id})

        logger.info("Recurring task generation completed", extra={"summary": summary.to_dict()})
        return summary

    def generate_recurring_tasks_for_tenant(self, tenant_id: int,
                                            now: datetime | None = None) -> GenerationSummary:
        """Run generation for one tenant's recurring templates.

        Storage failures while loading the tenant's settings or templates
        propagate to the caller; failures inside a single template are
        logged and counted.
        """
        now = now or _utcnow()
        summary = GenerationSummary()
        lead_days = self.resolve_lead_days(tenant_id)
        templates = self.store.get_recurring_templates(tenant_id)

        for template in templates:
            template_id = template.id
            try:
                outcome = self.process_template(template, lead_days, now)
            except ConfigurationError as exc:
                db.session.rollback()
                outcome = SKIPPED
                logger.error("Template skipped: %s", exc,
                             extra={"tenant_id": tenant_id, "template_id": template_id})
            except Exception:
                db.session.rollback()
                outcome = FAILED
                logger.exception("Template failed during recurring generation",
                                 extra={"tenant_id": tenant_id, "template_id": template_id})
            summary.record(outcome)

        summary.tenants_processed = 1
        logger.info("Tenant generation finished",
                    extra={"tenant_id": tenant_id, "summary": summary.to_dict()})
        return summary

    def process_template(self, template: Task, lead_days: int, now: datetime) -> str:
        """Evaluate one template and create its next instance when due."""
        if not template.compliance_frequency:
            logger.warning("Template has no compliance frequency",
                           extra={"tenant_id": template.tenant_id, "template_id": template.id})
            return SKIPPED

        period = calculate_next_compliance_period(
            template.compliance_frequency,
            template.compliance_duration,
            now,
            fiscal_year_start_month=self.fiscal_year_start_month,
        )
        if period is None:
            return SKIPPED

        due_date = calculate_due_date(period.end)
        if not is_within_lead_window(now, due_date, lead_days):
            return NOT_DUE

        if self.instance_exists(template, period):
            return DUPLICATE

        try:
            self.create_instance(template, period, due_date)
        except ConflictError:
            logger.info("Instance for %s created concurrently", period.start.date(),
                        extra={"tenant_id": template.tenant_id, "template_id": template.id})
            return DUPLICATE
        return CREATED

    # ── Settings ─────────────────────────────────────────────────────────

    def resolve_lead_days(self, tenant_id: int) -> int:
        setting = self.store.get_tenant_setting(tenant_id, SETTING_LEAD_DAYS)
        if setting is None:
            return self.default_lead_days
        lead_days = setting.as_int()
        if lead_days is None or lead_days < 0:
            logger.warning("Tenant %s has invalid %s=%r, using %d", tenant_id,
                           SETTING_LEAD_DAYS, setting.value, self.default_lead_days,
                           extra={"tenant_id": tenant_id})
            return self.default_lead_days
        return lead_days

    def resolve_auto_approve(self, tenant_id: int) -> bool:
        setting = self.store.get_tenant_setting(tenant_id, SETTING_AUTO_APPROVE)
        return setting.as_bool() if setting is not None else False

    # ── Duplicate detection ──────────────────────────────────────────────

    def instance_exists(self, template: Task, period: CompliancePeriod) -> bool:
        """True if a task with the template's category, service type and
        exactly the same period boundaries already exists in its scope."""
        existing = self.store.get_tasks(
            template.tenant_id,
            client_id=template.client_id,
            entity_id=template.entity_id,
            is_admin=template.is_admin,
        )
        return any(
            task.id != template.id
            and task.task_category_id == template.task_category_id
            and task.service_type_id == template.service_type_id
            and task.compliance_start_date == period.start
            and task.compliance_end_date == period.end
            for task in existing
        )

    # ── Instantiation ────────────────────────────────────────────────────

    def resolve_initial_status(self, tenant_id: int):
        for status in self.store.get_task_statuses(tenant_id):
            if status.rank == INITIAL_STATUS_RANK:
                return status
        raise MissingInitialStatusError(tenant_id)

    def describe_instance(self, template: Task, period: CompliancePeriod) -> str:
        label = format_compliance_period(template.compliance_frequency, period)
        service = None
        if template.service_type_id is not None:
            service = self.store.get_service_type(template.service_type_id, template.tenant_id)
        name = service.name if service else "Recurring task"
        return f"{name} - {label}"

    def create_instance(self, template: Task, period: CompliancePeriod,
                        due_date: datetime) -> Task:
        """Persist the instance of ``template`` covering ``period``."""
        tenant_id = template.tenant_id
        status = self.resolve_initial_status(tenant_id)
        needs_approval = not self.resolve_auto_approve(tenant_id)

        task = self.store.create_task({
            "tenant_id": tenant_id,
            "is_admin": template.is_admin,
            "task_type": template.task_type,
            "client_id": template.client_id,
            "entity_id": template.entity_id,
            "service_type_id": template.service_type_id,
            "task_category_id": template.task_category_id,
            "assignee_id": template.assignee_id,
            "due_date": due_date,
            "status_id": status.id,
            "task_details": template.task_details or self.describe_instance(template, period),
            "next_to_do": template.next_to_do,
            "is_recurring": False,
            "compliance_frequency": template.compliance_frequency,
            "compliance_year": compliance_year_for(period),
            "compliance_duration": template.compliance_duration,
            "compliance_period": format_compliance_period(template.compliance_frequency, period),
            "compliance_start_date": period.start,
            "compliance_end_date": period.end,
            "currency": template.currency,
            "service_rate": template.service_rate,
            "is_auto_generated": True,
            "parent_task_id": template.id,
            "needs_approval": needs_approval,
        })
        logger.info("Created recurring task %s for %s to %s", task.id,
                    period.start.strftime("%Y-%m-%d"), period.end.strftime("%Y-%m-%d"),
                    extra={"tenant_id": tenant_id, "template_id": template.id})
        return task
