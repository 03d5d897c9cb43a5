"""
Accounting Back Office
Scheduled Jobs.

Concrete job implementations that run on a schedule.

Jobs:
    - recurring_task_generation: Creates upcoming task instances from
      recurring templates for every tenant
"""

from __future__ import annotations

import logging
from typing import Any

from backoffice.services.scheduler_service import register_job

logger = logging.getLogger(__name__)

GENERATION_JOB = "recurring_task_generation"


# ═══════════════════════════════════════════════════════════════════════════
#  Job 1: Recurring Task Generation
# ═══════════════════════════════════════════════════════════════════════════

@register_job(GENERATION_JOB)
def generate_recurring_tasks(app) -> dict[str, Any]:
    """Generate upcoming recurring task instances for all tenants."""
    from backoffice.services.recurring_task_service import RecurringTaskGenerator

    summary = RecurringTaskGenerator().generate_upcoming_recurring_tasks()
    return summary.to_dict()
