"""
Accounting Back Office
Tests — approval lifecycle for auto-generated tasks.

    pending ──approve──▶ approved
       └─────reject───▶ deleted
"""

from datetime import datetime
from unittest.mock import patch

from backoffice.models import db
from backoffice.models.task import Task
from backoffice.services.recurring_task_service import RecurringTaskGenerator
from backoffice.services.task_approval_service import TaskApprovalService
from backoffice.services.task_store import TaskStore

NOW = datetime(2025, 5, 15, 9, 0, 0)


def _generate(tenant_id, make_template, count=1):
    for i in range(count):
        make_template(tenant_id, client_id=100 + i)
    RecurringTaskGenerator().generate_recurring_tasks_for_tenant(tenant_id, now=NOW)
    return TaskApprovalService().get_tasks_needing_approval(tenant_id)


def test_pending_list_contains_generated_tasks(tenant, make_template):
    pending = _generate(tenant.id, make_template, count=2)
    assert len(pending) == 2
    assert all(t.is_pending_approval for t in pending)


def test_approve_clears_flag(tenant, make_template):
    [task] = _generate(tenant.id, make_template)
    svc = TaskApprovalService()

    assert svc.approve_task(task.id, tenant.id) is True

    db.session.expire_all()
    approved = db.session.get(Task, task.id)
    assert approved.needs_approval is False
    assert approved.is_auto_generated is True
    assert svc.get_tasks_needing_approval(tenant.id) == []
    assert [t.id for t in TaskStore().get_active_tasks(tenant.id)] == [task.id]


def test_approve_twice_is_noop_failure(tenant, make_template):
    [task] = _generate(tenant.id, make_template)
    svc = TaskApprovalService()
    assert svc.approve_task(task.id, tenant.id) is True
    assert svc.approve_task(task.id, tenant.id) is False
    assert svc.reject_task(task.id, tenant.id) is False
    assert db.session.get(Task, task.id) is not None


def test_reject_deletes_task(tenant, make_template):
    [task] = _generate(tenant.id, make_template)
    task_id = task.id

    assert TaskApprovalService().reject_task(task_id, tenant.id) is True

    assert db.session.get(Task, task_id) is None
    assert TaskApprovalService().approve_task(task_id, tenant.id) is False


def test_rejected_period_is_generated_again_next_run(tenant, make_template):
    [task] = _generate(tenant.id, make_template)
    TaskApprovalService().reject_task(task.id, tenant.id)

    summary = RecurringTaskGenerator().generate_recurring_tasks_for_tenant(tenant.id, now=NOW)

    assert summary.created == 1


def test_cannot_approve_regular_task(tenant):
    manual = Task(tenant_id=tenant.id, task_details="Ad-hoc bookkeeping", needs_approval=True)
    db.session.add(manual)
    db.session.commit()

    svc = TaskApprovalService()
    assert svc.approve_task(manual.id, tenant.id) is False
    assert svc.reject_task(manual.id, tenant.id) is False

    db.session.expire_all()
    untouched = db.session.get(Task, manual.id)
    assert untouched is not None
    assert untouched.needs_approval is True
    assert untouched.is_auto_generated is False


def test_cannot_touch_other_tenant_task(tenant, make_tenant, make_template):
    [task] = _generate(tenant.id, make_template)
    other = make_tenant("Other Firm")

    svc = TaskApprovalService()
    assert svc.approve_task(task.id, other.id) is False
    assert svc.reject_task(task.id, other.id) is False
    assert svc.get_tasks_needing_approval(other.id) == []

    db.session.expire_all()
    assert db.session.get(Task, task.id).needs_approval is True


def test_unknown_task_returns_false(tenant):
    svc = TaskApprovalService()
    assert svc.approve_task(424242, tenant.id) is False
    assert svc.reject_task(424242, tenant.id) is False


def test_approve_all(tenant, make_template):
    _generate(tenant.id, make_template, count=3)

    approved = TaskApprovalService().approve_all_pending_tasks(tenant.id)

    assert approved == 3
    assert TaskApprovalService().get_tasks_needing_approval(tenant.id) == []


def test_approve_all_continues_after_failure(tenant, make_template):
    pending = _generate(tenant.id, make_template, count=3)
    failing_id = pending[1].id
    svc = TaskApprovalService()
    real_call = svc.store.update_task

    def _flaky(task_id, tenant_id, data):
        if task_id == failing_id:
            raise RuntimeError("row locked")
        return real_call(task_id, tenant_id, data)

    with patch.object(svc.store, "update_task", side_effect=_flaky):
        approved = svc.approve_all_pending_tasks(tenant.id)

    assert approved == 2
    assert [t.id for t in svc.get_tasks_needing_approval(tenant.id)] == [failing_id]


def test_approve_all_with_nothing_pending(tenant):
    assert TaskApprovalService().approve_all_pending_tasks(tenant.id) == 0
