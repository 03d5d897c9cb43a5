"""
Tenant Models — tenants and per-tenant key/value settings.

The recurring task generator reads two settings:
    - recurring_task_lead_days       integer, days before the due date
    - auto_approve_recurring_tasks   boolean, skip the approval gate
"""

from backoffice.models import db
from backoffice.models.base import TenantModel, utcnow


# ── Setting keys ─────────────────────────────────────────────────────────────

SETTING_LEAD_DAYS = "recurring_task_lead_days"
SETTING_AUTO_APPROVE = "auto_approve_recurring_tasks"

TRUTHY_VALUES = {"1", "true", "yes", "on"}


class Tenant(db.Model):
    __tablename__ = "tenants"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    settings = db.relationship(
        "TenantSetting", back_populates="tenant",
        lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Tenant {self.id}:{self.slug}>"


class TenantSetting(TenantModel):
    """Per-tenant setting stored as a string value."""
    __tablename__ = "tenant_settings"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "key", name="uq_tenant_setting_key"),
    )

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), nullable=False)
    value = db.Column(db.String(500), nullable=True)

    tenant = db.relationship("Tenant", back_populates="settings")

    def as_int(self, default=None):
        """Return the value parsed as int, or ``default`` when unparsable."""
        try:
            return int(str(self.value).strip())
        except (TypeError, ValueError):
            return default

    def as_bool(self):
        return str(self.value or "").strip().lower() in TRUTHY_VALUES

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "key": self.key,
            "value": self.value,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<TenantSetting {self.tenant_id}:{self.key}={self.value}>"
