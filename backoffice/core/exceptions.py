"""
Back-office exception hierarchy.

Services raise these types; blueprints map them to HTTP responses once
through ``backoffice.utils.errors.api_error``.

Usage:
    from backoffice.core.exceptions import NotFoundError, ConfigurationError

    raise NotFoundError(resource="Task", resource_id=42, tenant_id=7)
    raise MissingInitialStatusError(tenant_id=7)
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Used for BOTH genuinely missing records AND cross-tenant access attempts.
    A 403 would confirm the resource exists; a 404 does not.

    Args:
        resource: Human-readable model name (e.g. "Task", "Tenant").
        resource_id: The PK that was looked up.
        tenant_id: Optional — the scope that was enforced. For debug logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        tenant_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.tenant_id = tenant_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if tenant_id is not None:
            msg += f" (tenant={tenant_id})"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Maps to HTTP 400 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would violate a unique constraint.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class ConfigurationError(Exception):
    """Raised when tenant setup data needed by a job is missing.

    Jobs log these and skip the affected unit of work; they are never
    fatal to a whole run.
    """

    def __init__(self, message: str, tenant_id: int | None = None) -> None:
        self.tenant_id = tenant_id
        super().__init__(message)


class MissingInitialStatusError(ConfigurationError):
    """The tenant has no rank-1 task status to start new tasks in."""

    def __init__(self, tenant_id: int) -> None:
        super().__init__(
            f'No "New" status (rank 1) found for tenant {tenant_id}',
            tenant_id=tenant_id,
        )
