"""
Accounting Back Office
HTTP blueprints and the page helper they share.
"""

from flask import request

from backoffice.core.exceptions import ValidationError

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 500


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", details={name: raw})
    if value < 0:
        raise ValidationError(f"{name} must not be negative", details={name: raw})
    return value


def page_of(query, serialize=lambda row: row.to_dict()) -> dict:
    """Run ``query`` for the ``limit``/``offset`` in the query string.

    The query keeps its own ordering. ``limit`` is capped at MAX_PAGE_SIZE;
    malformed or negative values raise ValidationError.
    """
    limit = min(_int_arg("limit", DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE)
    offset = _int_arg("offset", 0)
    rows = query.limit(limit).offset(offset).all()
    return {
        "items": [serialize(row) for row in rows],
        "total": query.order_by(None).count(),
        "limit": limit,
        "offset": offset,
    }
