"""Error taxonomy shared by the RBAC store, the HTTP client and the admin workflow.

Every error carries an HTTP status so the app-level handler can render it in
the standard ``{'error': {...}}`` shape.
"""
from __future__ import annotations
from typing import Optional


class ServiceOpsError(Exception):
    status = 500
    title = 'Internal Server Error'

    def __init__(self, detail: str = ''):
        super().__init__(detail)
        self.detail = detail or self.title


class ValidationFailed(ServiceOpsError):
    status = 400
    title = 'Bad Request'


class NotConfigured(ServiceOpsError):
    """The user (or role/permission) has no persisted record."""
    status = 404
    title = 'Not Found'


class ConflictingName(ServiceOpsError):
    status = 409
    title = 'Conflict'


class InUse(ServiceOpsError):
    """Refused because other records still reference the target."""
    status = 409
    title = 'Conflict'


class StaleWrite(ServiceOpsError):
    status = 409
    title = 'Conflict'

    def __init__(self, detail: str = '', current_version: Optional[int] = None):
        super().__init__(detail)
        self.current_version = current_version


class TransportError(ServiceOpsError):
    """The RBAC backend could not be reached or answered unexpectedly."""
    status = 502
    title = 'Bad Gateway'


class PartialMutationFailure(ServiceOpsError):
    status = 502
    title = 'Partial Failure'

    def __init__(self, detail: str = '', report=None):
        super().__init__(detail)
        self.report = report


__all__ = [
    'ServiceOpsError', 'ValidationFailed', 'NotConfigured', 'ConflictingName', 'InUse', 'StaleWrite',
    'TransportError', 'PartialMutationFailure',
]
