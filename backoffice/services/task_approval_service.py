"""
Accounting Back Office
Task Approval Service — review gate for auto-generated tasks.

An instance created by the recurring task generator starts with
``needs_approval=True`` unless the tenant enabled auto-approval.

    pending ──approve──▶ approved   (needs_approval cleared, terminal)
       │
       └─────reject───▶ rejected   (row deleted, terminal)

Approving or rejecting anything that is not a pending auto-generated task
of the caller's tenant returns False and changes nothing.
"""

import logging

from backoffice.models import db
from backoffice.services.task_store import TaskStore

logger = logging.getLogger(__name__)


class TaskApprovalService:
    """Approval lifecycle for auto-generated task instances."""

    def __init__(self, store=None):
        self.store = store or TaskStore()

    def get_tasks_needing_approval(self, tenant_id):
        """All auto-generated tasks of a tenant still awaiting review."""
        return self.store.get_pending_approval_tasks(tenant_id)

    def _pending_task(self, task_id, tenant_id, action):
        task = self.store.get_task(task_id, tenant_id)
        if task is None:
            logger.warning("Cannot %s task %s: not found", action, task_id,
                           extra={"tenant_id": tenant_id})
            return None
        if not task.is_auto_generated:
            logger.warning("Cannot %s task %s: not auto-generated", action, task_id,
                           extra={"tenant_id": tenant_id})
            return None
        if not task.needs_approval:
            logger.warning("Cannot %s task %s: already processed", action, task_id,
                           extra={"tenant_id": tenant_id})
            return None
        return task

    def approve_task(self, task_id, tenant_id):
        """Clear the approval flag on a pending auto-generated task."""
        task = self._pending_task(task_id, tenant_id, "approve")
        if task is None:
            return False
        self.store.update_task(task.id, tenant_id, {"needs_approval": False})
        logger.info("Approved auto-generated task %s", task_id, extra={"tenant_id": tenant_id})
        return True

    def reject_task(self, task_id, tenant_id):
        """Delete a pending auto-generated task."""
        task = self._pending_task(task_id, tenant_id, "reject")
        if task is None:
            return False
        deleted = self.store.delete_task(task.id, tenant_id)
        if deleted:
            logger.info("Rejected auto-generated task %s", task_id, extra={"tenant_id": tenant_id})
        return deleted

    def approve_all_pending_tasks(self, tenant_id):
        """Approve every pending task one by one; returns the number approved."""
        task_ids = [t.id for t in self.get_tasks_needing_approval(tenant_id)]
        approved = 0
        for task_id in task_ids:
            try:
                if self.approve_task(task_id, tenant_id):
                    approved += 1
            except Exception:
                db.session.rollback()
                logger.exception("Approving task %s failed", task_id,
                                 extra={"tenant_id": tenant_id})
        logger.info("Approved %d of %d pending tasks", approved, len(task_ids),
                    extra={"tenant_id": tenant_id})
        return approved
