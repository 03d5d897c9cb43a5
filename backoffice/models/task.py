"""
Accounting Back Office
Task models — statuses, service types and the task table.

Models:
    - TaskStatus: Per-tenant workflow status ordered by rank (rank 1 = "New")
    - ServiceType: Per-tenant service catalogue entry
    - Task: Both recurring templates and the instances generated from them

A generated instance points back at its template through ``parent_task_id``.
The reference is weak: deleting a template nulls the pointer and never
deletes the instances.
"""

from backoffice.models import db
from backoffice.models.base import TenantModel


# ── Constants ────────────────────────────────────────────────────────────────

TASK_TYPES = {"Regular", "Medium", "Urgent"}
INITIAL_STATUS_RANK = 1


def _iso(value):
    return value.isoformat() if value else None


class TaskStatus(TenantModel):
    __tablename__ = "task_statuses"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "name", name="uq_task_status_tenant_name"),
        db.UniqueConstraint("tenant_id", "rank", name="uq_task_status_tenant_rank"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    rank = db.Column(db.Float, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "description": self.description,
            "rank": self.rank,
        }

    def __repr__(self):
        return f"<TaskStatus {self.name} rank={self.rank}>"


class ServiceType(TenantModel):
    __tablename__ = "service_types"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "name", name="uq_service_type_tenant_name"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    currency = db.Column(db.String(10), nullable=True)
    rate = db.Column(db.Float, nullable=True)
    billing_basis = db.Column(db.String(50), default="per_task")

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "description": self.description,
            "currency": self.currency,
            "rate": self.rate,
            "billing_basis": self.billing_basis,
        }

    def __repr__(self):
        return f"<ServiceType {self.name}>"


class Task(TenantModel):
    """
    Task record.

    ``is_recurring=True`` marks a template. Instances produced by the
    recurring task generator carry ``is_auto_generated=True`` and stay out
    of the active work list while ``needs_approval`` is set.
    """

    __tablename__ = "tasks"
    __table_args__ = (
        db.UniqueConstraint(
            "tenant_id", "parent_task_id",
            "compliance_start_date", "compliance_end_date",
            name="uq_task_template_period",
        ),
        db.Index("ix_tasks_tenant_recurring", "tenant_id", "is_recurring"),
        db.Index("ix_tasks_tenant_pending", "tenant_id", "is_auto_generated", "needs_approval"),
    )

    id = db.Column(db.Integer, primary_key=True)
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    task_type = db.Column(db.String(30), nullable=False, default="Regular")
    client_id = db.Column(db.Integer, nullable=True, index=True)
    entity_id = db.Column(db.Integer, nullable=True, index=True)
    service_type_id = db.Column(
        db.Integer, db.ForeignKey("service_types.id", ondelete="SET NULL"), nullable=True,
    )
    task_category_id = db.Column(db.Integer, nullable=True)
    assignee_id = db.Column(db.Integer, nullable=True)
    due_date = db.Column(db.DateTime, nullable=True)
    status_id = db.Column(
        db.Integer, db.ForeignKey("task_statuses.id", ondelete="SET NULL"), nullable=True,
    )
    task_details = db.Column(db.Text, nullable=True)
    next_to_do = db.Column(db.Text, nullable=True)
    is_recurring = db.Column(db.Boolean, nullable=False, default=False)

    # Compliance
    compliance_frequency = db.Column(db.String(50), nullable=True,
                                     comment="Yearly, Quarterly, Monthly, 2 Years, ...")
    compliance_year = db.Column(db.String(20), nullable=True)
    compliance_duration = db.Column(db.String(50), nullable=True,
                                    comment="Qualifier: previous, fiscal year, ...")
    compliance_period = db.Column(db.String(50), nullable=True,
                                  comment="Display label: June 2025, Q1 2026, ...")
    compliance_start_date = db.Column(db.DateTime, nullable=True)
    compliance_end_date = db.Column(db.DateTime, nullable=True)

    # Billing
    currency = db.Column(db.String(10), nullable=True)
    service_rate = db.Column(db.Float, nullable=True)

    # Generation
    is_auto_generated = db.Column(db.Boolean, nullable=False, default=False)
    parent_task_id = db.Column(
        db.Integer, db.ForeignKey("tasks.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    needs_approval = db.Column(db.Boolean, nullable=False, default=False)

    status = db.relationship("TaskStatus", lazy="joined")
    service_type = db.relationship("ServiceType", lazy="select")

    @property
    def is_pending_approval(self):
        return bool(self.is_auto_generated and self.needs_approval)

    @property
    def is_active_work_item(self):
        """Pending auto-generated instances are not active work."""
        return not self.is_recurring and not self.is_pending_approval

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "is_admin": self.is_admin,
            "task_type": self.task_type,
            "client_id": self.client_id,
            "entity_id": self.entity_id,
            "service_type_id": self.service_type_id,
            "task_category_id": self.task_category_id,
            "assignee_id": self.assignee_id,
            "due_date": _iso(self.due_date),
            "status_id": self.status_id,
            "status": self.status.name if self.status else None,
            "task_details": self.task_details,
            "next_to_do": self.next_to_do,
            "is_recurring": self.is_recurring,
            "compliance_frequency": self.compliance_frequency,
            "compliance_year": self.compliance_year,
            "compliance_duration": self.compliance_duration,
            "compliance_period": self.compliance_period,
            "compliance_start_date": _iso(self.compliance_start_date),
            "compliance_end_date": _iso(self.compliance_end_date),
            "currency": self.currency,
            "service_rate": self.service_rate,
            "is_auto_generated": self.is_auto_generated,
            "parent_task_id": self.parent_task_id,
            "needs_approval": self.needs_approval,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        kind = "template" if self.is_recurring else "task"
        return f"<Task {self.id} {kind} tenant={self.tenant_id}>"
