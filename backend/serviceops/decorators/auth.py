from __future__ import annotations
from functools import wraps
from flask import abort, current_app, g
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request

from serviceops.services.gate import CapabilityGate
from serviceops.services.resolver import Identity

EMPTY_ACCESS_MESSAGE = 'Access not configured for this account: contact your administrator'
MISSING_PERMISSION_MESSAGE = 'Missing permission'


def current_identity() -> Identity:
    claims = get_jwt()
    return Identity(
        email=get_jwt_identity(),
        account_type=claims.get('account_type', ''),
        city=claims.get('city'),
        name=claims.get('name'),
    )


def current_gate() -> CapabilityGate:
    """Gate for the request's identity, resolved once per request."""
    gate = g.get('capability_gate')
    if gate is None:
        resolver = current_app.extensions['permission_resolver']
        gate = CapabilityGate(resolver.resolve(current_identity()))
        g.capability_gate = gate
    return gate


def _deny(gate: CapabilityGate):
    if gate.resolved.is_empty:
        abort(403, description=EMPTY_ACCESS_MESSAGE)
    abort(403, description=MISSING_PERMISSION_MESSAGE)


def require_permissions(*keys: str):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            gate = current_gate()
            if not gate.has_all_permissions(keys):
                _deny(gate)
            return fn(*args, **kwargs)
        return wrapper
    return outer


def require_any_permission(*keys: str):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            gate = current_gate()
            if not gate.has_any_permission(keys):
                _deny(gate)
            return fn(*args, **kwargs)
        return wrapper
    return outer
