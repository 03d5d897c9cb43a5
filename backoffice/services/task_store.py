"""
Accounting Back Office
Task Store — tenant-scoped data access used by the recurring task jobs.

Every lookup that takes an id also takes a tenant_id. A task that exists
under another tenant is indistinguishable from one that does not exist.

Tenants are enumerated with keyset pagination (``iter_tenants``) so the
generator never probes ids one by one.

Usage:
    from backoffice.services.task_store import TaskStore

    store = TaskStore()
    for tenant in store.iter_tenants():
        templates = store.get_recurring_templates(tenant.id)
"""

from __future__ import annotations

import logging
from typing import Iterator

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from backoffice.core.exceptions import ConflictError
from backoffice.models import db
from backoffice.models.task import ServiceType, Task, TaskStatus
from backoffice.models.tenant import Tenant, TenantSetting

logger = logging.getLogger(__name__)

DEFAULT_TENANT_PAGE_SIZE = 100

# Columns a caller may set through create_task / update_task.
TASK_WRITABLE_FIELDS = (
    "tenant_id", "is_admin", "task_type", "client_id", "entity_id",
    "service_type_id", "task_category_id", "assignee_id", "due_date",
    "status_id", "task_details", "next_to_do", "is_recurring",
    "compliance_frequency", "compliance_year", "compliance_duration",
    "compliance_period", "compliance_start_date", "compliance_end_date",
    "currency", "service_rate", "is_auto_generated", "parent_task_id",
    "needs_approval",
)


class TaskStore:
    """SQLAlchemy-backed storage collaborator."""

    # ── Tenants ──────────────────────────────────────────────────────────

    def get_tenant(self, tenant_id: int) -> Tenant | None:
        return db.session.get(Tenant, tenant_id)

    def list_tenants(self, *, limit: int = DEFAULT_TENANT_PAGE_SIZE,
                     after_id: int | None = None,
                     active_only: bool = True) -> list[Tenant]:
        """Return one page of tenants ordered by id, starting after ``after_id``."""
        stmt = select(Tenant).order_by(Tenant.id).limit(limit)
        if after_id is not None:
            stmt = stmt.where(Tenant.id > after_id)
        if active_only:
            stmt = stmt.where(Tenant.is_active.is_(True))
        return list(db.session.execute(stmt).scalars())

    def iter_tenants(self, page_size: int = DEFAULT_TENANT_PAGE_SIZE,
                     active_only: bool = True) -> Iterator[Tenant]:
        """Yield every tenant, one page at a time."""
        after_id = None
        while True:
            page = self.list_tenants(limit=page_size, after_id=after_id,
                                     active_only=active_only)
            if not page:
                return
            yield from page
            if len(page) < page_size:
                return
            after_id = page[-1].id

    # ── Settings ─────────────────────────────────────────────────────────

    def get_tenant_setting(self, tenant_id: int, key: str) -> TenantSetting | None:
        return TenantSetting.query_for_tenant(tenant_id).filter_by(key=key).first()

    def set_tenant_setting(self, tenant_id: int, key: str, value) -> TenantSetting:
        setting = self.get_tenant_setting(tenant_id, key)
        if setting is None:
            setting = TenantSetting(tenant_id=tenant_id, key=key)
            db.session.add(setting)
        setting.value = None if value is None else str(value)
        db.session.commit()
        logger.info("Tenant %d setting %s → %s", tenant_id, key, setting.value)
        return setting

    # ── Tasks ────────────────────────────────────────────────────────────

    def get_tasks(self, tenant_id: int, client_id: int | None = None,
                  entity_id: int | None = None,
                  is_admin: bool | None = None) -> list[Task]:
        """Tasks for a tenant, optionally narrowed to a client/entity/admin scope."""
        q = Task.query_for_tenant(tenant_id)
        if client_id is not None:
            q = q.filter(Task.client_id == client_id)
        if entity_id is not None:
            q = q.filter(Task.entity_id == entity_id)
        if is_admin is not None:
            q = q.filter(Task.is_admin.is_(bool(is_admin)))
        return q.order_by(Task.due_date.desc(), Task.id).all()

    def get_recurring_templates(self, tenant_id: int) -> list[Task]:
        return (
            Task.query_for_tenant(tenant_id)
            .filter(Task.is_recurring.is_(True))
            .order_by(Task.id)
            .all()
        )

    def active_tasks_query(self, tenant_id: int):
        """Work items: excludes templates and instances still awaiting approval."""
        return (
            Task.query_for_tenant(tenant_id)
            .filter(Task.is_recurring.is_(False))
            .filter(or_(Task.is_auto_generated.is_(False),
                        Task.needs_approval.is_(False)))
            .order_by(Task.due_date, Task.id)
        )

    def get_active_tasks(self, tenant_id: int) -> list[Task]:
        return self.active_tasks_query(tenant_id).all()

    def get_pending_approval_tasks(self, tenant_id: int) -> list[Task]:
        return (
            Task.query_for_tenant(tenant_id)
            .filter(Task.is_auto_generated.is_(True), Task.needs_approval.is_(True))
            .order_by(Task.due_date, Task.id)
            .all()
        )

    def get_task(self, task_id: int, tenant_id: int) -> Task | None:
        stmt = select(Task).where(Task.id == task_id, Task.tenant_id == tenant_id)
        return db.session.execute(stmt).scalar_one_or_none()

    def create_task(self, data: dict) -> Task:
        """Insert a task row.

        Raises:
            ConflictError: the (tenant, template, period) key already exists.
        """
        task = Task(**{k: v for k, v in data.items() if k in TASK_WRITABLE_FIELDS})
        db.session.add(task)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            logger.warning("Task insert rejected by constraint: %s", exc.orig)
            raise ConflictError(
                "Task", "parent_task_id/period",
                f"{data.get('parent_task_id')}:{data.get('compliance_start_date')}",
            ) from exc
        return task

    def update_task(self, task_id: int, tenant_id: int, data: dict) -> Task | None:
        task = self.get_task(task_id, tenant_id)
        if task is None:
            return None
        for field in TASK_WRITABLE_FIELDS:
            if field in data and field != "tenant_id":
                setattr(task, field, data[field])
        db.session.commit()
        return task

    def delete_task(self, task_id: int, tenant_id: int) -> bool:
        task = self.get_task(task_id, tenant_id)
        if task is None:
            return False
        db.session.delete(task)
        db.session.commit()
        return True

    # ── Lookups ──────────────────────────────────────────────────────────

    def get_task_statuses(self, tenant_id: int) -> list[TaskStatus]:
        return TaskStatus.query_for_tenant(tenant_id).order_by(TaskStatus.rank).all()

    def get_service_type(self, service_type_id: int, tenant_id: int) -> ServiceType | None:
        stmt = select(ServiceType).where(
            ServiceType.id == service_type_id, ServiceType.tenant_id == tenant_id,
        )
        return db.session.execute(stmt).scalar_one_or_none()
