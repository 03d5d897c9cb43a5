"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in backoffice/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from backoffice.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)


def tenant_rate_limit_key():
    """Rate limit key: tenant_id if available, else remote IP."""
    tenant_id = getattr(g, "tenant_id", None)
    if tenant_id:
        return f"tenant:{tenant_id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per tenant, falling back to remote IP):
        - Recurring task / approval routes: 60/minute
        - Scheduler routes:                 30/minute
        - Health check:                     exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("recurring_task_bp")
    if bp:
        limiter.limit("60/minute", key_func=tenant_rate_limit_key)(bp)

    bp = app.blueprints.get("scheduler_bp")
    if bp:
        limiter.limit("30/minute")(bp)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured — recurring: 60/min, scheduler: 30/min")
