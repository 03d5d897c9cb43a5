"""
Tenant Context Middleware — resolves the calling tenant for API requests.

Resolution order:
    1. X-Tenant-ID header
    2. tenant_id query parameter

When a tenant id is supplied the middleware verifies the tenant exists and
is active, then sets ``g.tenant_id`` / ``g.tenant``. Requests without a
tenant id pass through with ``g.tenant_id = None``; routes that need a
tenant reject them themselves.
"""

import logging

from flask import g, request

from backoffice.models import db
from backoffice.models.tenant import Tenant
from backoffice.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that skip tenant context
TENANT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/api/v1/scheduler/",
)


def _requested_tenant_id():
    header = (request.headers.get("X-Tenant-ID") or "").strip()
    if header:
        return int(header) if header.isdigit() else header
    return request.args.get("tenant_id", type=int)


def init_tenant_context(app):
    """Register tenant context middleware as a before_request hook."""

    @app.before_request
    def _tenant_context():
        g.tenant = None
        g.tenant_id = None

        if not request.path.startswith("/api/v1/"):
            return None

        for prefix in TENANT_SKIP_PREFIXES:
            if request.path.startswith(prefix):
                return None

        tenant_id = _requested_tenant_id()
        if tenant_id is None:
            return None
        if not isinstance(tenant_id, int):
            return api_error(E.VALIDATION_INVALID, "X-Tenant-ID must be an integer")

        tenant = db.session.get(Tenant, tenant_id)
        if tenant is None:
            logger.warning("Request for unknown tenant %s", tenant_id)
            return api_error(E.FORBIDDEN, "Tenant not found")
        if not tenant.is_active:
            logger.warning("Request for deactivated tenant %s", tenant_id,
                           extra={"tenant_id": tenant_id})
            return api_error(E.FORBIDDEN, "Tenant account is deactivated")

        g.tenant = tenant
        g.tenant_id = tenant.id
        return None

    logger.info("Tenant context middleware installed")
