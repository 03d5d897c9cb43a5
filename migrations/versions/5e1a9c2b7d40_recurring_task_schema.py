"""recurring_task_schema

Creates the back-office tables used by recurring task generation:
  - tenants          — accounting firms
  - tenant_settings  — per-tenant key/value settings (lead days, auto-approve)
  - task_statuses    — per-tenant workflow statuses ordered by rank
  - service_types    — per-tenant service catalogue
  - tasks            — recurring templates and their generated instances
  - scheduled_jobs   — background job registry and run history

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via db.create_all()
in a development environment.

Revision ID: 5e1a9c2b7d40
Revises:
Create Date: 2026-10-17 09:12:44.310552
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '5e1a9c2b7d40'
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Tenant ────────────────────────────────────────────────────────────
    if "tenants" not in existing:
        op.create_table(
            "tenants",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("slug", sa.String(length=100), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=True, server_default=sa.true()),
            *_audit_columns(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("slug"),
        )

    # ── TenantSetting ─────────────────────────────────────────────────────
    if "tenant_settings" not in existing:
        op.create_table(
            "tenant_settings",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("tenant_id", sa.Integer(), nullable=False),
            sa.Column("key", sa.String(length=100), nullable=False),
            sa.Column("value", sa.String(length=500), nullable=True),
            *_audit_columns(),
            sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("tenant_id", "key", name="uq_tenant_setting_key"),
        )
        op.create_index("ix_tenant_settings_tenant_id", "tenant_settings", ["tenant_id"])

    # ── TaskStatus ────────────────────────────────────────────────────────
    if "task_statuses" not in existing:
        op.create_table(
            "task_statuses",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("tenant_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("rank", sa.Float(), nullable=False,
                      comment="1 = initial status assigned to generated tasks"),
            *_audit_columns(),
            sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("tenant_id", "name", name="uq_task_status_tenant_name"),
            sa.UniqueConstraint("tenant_id", "rank", name="uq_task_status_tenant_rank"),
        )
        op.create_index("ix_task_statuses_tenant_id", "task_statuses", ["tenant_id"])

    # ── ServiceType ───────────────────────────────────────────────────────
    if "service_types" not in existing:
        op.create_table(
            "service_types",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("tenant_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("currency", sa.String(length=10), nullable=True),
            sa.Column("rate", sa.Float(), nullable=True),
            sa.Column("billing_basis", sa.String(length=50), nullable=True),
            *_audit_columns(),
            sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("tenant_id", "name", name="uq_service_type_tenant_name"),
        )
        op.create_index("ix_service_types_tenant_id", "service_types", ["tenant_id"])

    # ── Task ──────────────────────────────────────────────────────────────
    if "tasks" not in existing:
        op.create_table(
            "tasks",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("tenant_id", sa.Integer(), nullable=False),
            sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("task_type", sa.String(length=30), nullable=False,
                      server_default="Regular"),
            sa.Column("client_id", sa.Integer(), nullable=True),
            sa.Column("entity_id", sa.Integer(), nullable=True),
            sa.Column("service_type_id", sa.Integer(), nullable=True),
            sa.Column("task_category_id", sa.Integer(), nullable=True),
            sa.Column("assignee_id", sa.Integer(), nullable=True),
            sa.Column("due_date", sa.DateTime(), nullable=True),
            sa.Column("status_id", sa.Integer(), nullable=True),
            sa.Column("task_details", sa.Text(), nullable=True),
            sa.Column("next_to_do", sa.Text(), nullable=True),
            sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("compliance_frequency", sa.String(length=50), nullable=True,
                      comment="Yearly, Quarterly, Monthly, 2 Years, ..."),
            sa.Column("compliance_year", sa.String(length=20), nullable=True),
            sa.Column("compliance_duration", sa.String(length=50), nullable=True,
                      comment="Qualifier: previous, fiscal year, ..."),
            sa.Column("compliance_period", sa.String(length=50), nullable=True,
                      comment="Display label: June 2025, Q1 2026, ..."),
            sa.Column("compliance_start_date", sa.DateTime(), nullable=True),
            sa.Column("compliance_end_date", sa.DateTime(), nullable=True),
            sa.Column("currency", sa.String(length=10), nullable=True),
            sa.Column("service_rate", sa.Float(), nullable=True),
            sa.Column("is_auto_generated", sa.Boolean(), nullable=False,
                      server_default=sa.false()),
            sa.Column("parent_task_id", sa.Integer(), nullable=True),
            sa.Column("needs_approval", sa.Boolean(), nullable=False,
                      server_default=sa.false()),
            *_audit_columns(),
            sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["service_type_id"], ["service_types.id"],
                                    ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["status_id"], ["task_statuses.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["parent_task_id"], ["tasks.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint(
                "tenant_id", "parent_task_id",
                "compliance_start_date", "compliance_end_date",
                name="uq_task_template_period",
            ),
        )
        op.create_index("ix_tasks_tenant_id", "tasks", ["tenant_id"])
        op.create_index("ix_tasks_client_id", "tasks", ["client_id"])
        op.create_index("ix_tasks_entity_id", "tasks", ["entity_id"])
        op.create_index("ix_tasks_parent_task_id", "tasks", ["parent_task_id"])
        op.create_index("ix_tasks_tenant_recurring", "tasks", ["tenant_id", "is_recurring"])
        op.create_index("ix_tasks_tenant_pending", "tasks",
                        ["tenant_id", "is_auto_generated", "needs_approval"])

    # ── ScheduledJob ──────────────────────────────────────────────────────
    if "scheduled_jobs" not in existing:
        op.create_table(
            "scheduled_jobs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.String(length=500), nullable=True),
            sa.Column("schedule_type", sa.String(length=30), nullable=True),
            sa.Column("schedule_config", sa.JSON(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=True),
            sa.Column("is_enabled", sa.Boolean(), nullable=True),
            sa.Column("last_run_at", sa.DateTime(), nullable=True),
            sa.Column("last_run_status", sa.String(length=20), nullable=True),
            sa.Column("last_run_duration_ms", sa.Integer(), nullable=True),
            sa.Column("last_run_result", sa.JSON(), nullable=True),
            sa.Column("run_count", sa.Integer(), nullable=True),
            sa.Column("error_count", sa.Integer(), nullable=True),
            sa.Column("last_error", sa.Text(), nullable=True),
            *_audit_columns(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("job_name"),
        )


def downgrade():
    op.drop_table("scheduled_jobs")
    op.drop_table("tasks")
    op.drop_table("service_types")
    op.drop_table("task_statuses")
    op.drop_table("tenant_settings")
    op.drop_table("tenants")
