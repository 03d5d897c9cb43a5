"""Error envelope shared by every blueprint.

    {"error": "<message>", "code": "ERR_...", "details": {...}}

``details`` is omitted when empty.
"""

from __future__ import annotations

from flask import jsonify


class E:
    """Error codes returned by the back-office API."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"   # missing tenant_id / field
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"     # malformed id, setting or flag
    FORBIDDEN = "ERR_FORBIDDEN"                       # unknown or inactive tenant
    NOT_FOUND = "ERR_NOT_FOUND"                       # tenant, task or job
    CONFLICT_STATE = "ERR_CONFLICT_STATE"             # generation already running


_STATUS_BY_CODE: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_STATE: 409,
}


def api_error(code: str, message: str, *, status: int | None = None,
              details: dict | None = None):
    """Build a ``(response, status)`` pair for a Flask view.

    The HTTP status follows ``code`` unless ``status`` overrides it.
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or _STATUS_BY_CODE.get(code, 400)
