from __future__ import annotations
from typing import Any, Dict, Optional
from flask import g
from flask_jwt_extended import get_jwt, get_jwt_identity

from serviceops import get_db
from serviceops.models.audit import AuditLog


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[str] = None, meta: Optional[Dict[str, Any]] = None):
    """Stage an audit row in the current session; the caller commits.

    The actor's resolved permissions are snapshotted when the request already
    went through the capability gate.
    """
    gate = g.get('capability_gate')
    entry = AuditLog(
        actor_email=get_jwt_identity() or '',
        actor_account_type=get_jwt().get('account_type'),
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        perms_snapshot=gate.resolved.as_dict() if gate is not None else {},
        meta=dict(meta or {}),
    )
    get_db().add(entry)
    return entry
