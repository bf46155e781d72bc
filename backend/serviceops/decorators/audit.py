from __future__ import annotations
"""Audit logging decorator for mutating route handlers.

Usage:

@audit_log('ROLE.CREATE', entity='Role', entity_id_key='id', meta_keys=['name'])
def create_role():
    ... return {'success': True, 'data': {'id': role.id, 'name': role.name}}, 201

@audit_log('ROLE.PERM.REPLACE', entity='Role', entity_id_arg='role_id',
           meta_builder=lambda data, rv, args, kwargs: {'count': len(data.get('permissions', []))})
def replace_role_permissions(role_id): ...

Parameters:
  action: audit action code (e.g. ROLE.CREATE)
  entity: optional entity label (Role, User, Permission)
  entity_id_key: key in the returned object whose value becomes entity_id
  entity_id_arg: view keyword argument used when entity_id_key is absent
  meta_keys: keys projected from the returned object into meta
  meta_builder: callable (data, rv, args, kwargs) -> meta dict; wins over meta_keys

Handlers return ``dict``, ``(dict, status)`` or ``(dict, status, headers)``.
A ``{'success': ..., 'data': {...}}`` envelope is unwrapped before inspection.
Only successful (< 400) responses are audited.
"""

import logging
from functools import wraps
from typing import Any, Callable, Iterable, Optional

from serviceops.services.audit import add_audit
from serviceops import get_db

log = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    """Return (data, status) where data is the object to inspect."""
    status = 200
    data = rv
    if isinstance(rv, tuple) and rv:
        data = rv[0]
        if len(rv) > 1 and isinstance(rv[1], int):
            status = rv[1]
    if isinstance(data, dict) and isinstance(data.get('data'), dict):
        data = data['data']
    return data, status


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            rv = fn(*args, **kwargs)
            data, status = _extract_payload(rv)
            if status >= 400:
                return rv
            if not isinstance(data, dict):
                data = {}
            entity_id = None
            if entity_id_key and entity_id_key in data:
                entity_id = data.get(entity_id_key)
            elif entity_id_arg and entity_id_arg in kwargs:
                entity_id = kwargs.get(entity_id_arg)
            if meta_builder:
                meta = meta_builder(data, rv, args, kwargs)
            elif meta_keys:
                meta = {k: data.get(k) for k in meta_keys if k in data}
            else:
                meta = None
            session = get_db()
            add_audit(action, entity, entity_id, meta)
            try:
                session.commit()
            except Exception:
                # the mutation itself is already committed
                session.rollback()
                log.exception('failed to persist audit entry %s', action)
            return rv
        return wrapper
    return outer
