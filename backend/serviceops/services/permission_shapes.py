"""Tolerant readers for permission payloads returned by RBAC backends.

Deployed backends disagree on the envelope. Each adapter recognises exactly one
shape and returns ``None`` when the payload is not that shape; ``extract_permission_keys``
tries them in order and the first non-None answer wins.

Recognised envelopes::

    {"permissions": [...]}
    {"data": {"permissions": [...]}}
    {"data": [...]}
    [...]

Items may be ``{"permission_key": k}``, ``{"permissionKey": k}``, ``{"key": k}``
or a bare string.
"""
from __future__ import annotations
from typing import Any, Callable, Iterable, List, Optional

ITEM_KEY_FIELDS = ('permission_key', 'permissionKey', 'key')


class UnrecognizedShape(ValueError):
    pass


def item_key(item: Any) -> Optional[str]:
    if isinstance(item, str):
        return item or None
    if isinstance(item, dict):
        for field in ITEM_KEY_FIELDS:
            value = item.get(field)
            if isinstance(value, str) and value:
                return value
    return None


def _keys_from_list(items: Any) -> Optional[List[str]]:
    if not isinstance(items, list):
        return None
    keys = []
    for item in items:
        k = item_key(item)
        if k is not None:
            keys.append(k)
    return keys


def top_level_permissions(payload: Any) -> Optional[List[str]]:
    if isinstance(payload, dict) and 'permissions' in payload:
        return _keys_from_list(payload['permissions'])
    return None


def nested_data_permissions(payload: Any) -> Optional[List[str]]:
    if isinstance(payload, dict) and isinstance(payload.get('data'), dict):
        data = payload['data']
        if 'permissions' in data:
            return _keys_from_list(data['permissions'])
    return None


def data_array(payload: Any) -> Optional[List[str]]:
    if isinstance(payload, dict):
        return _keys_from_list(payload.get('data'))
    return None


def bare_array(payload: Any) -> Optional[List[str]]:
    return _keys_from_list(payload)


PERMISSION_ADAPTERS: List[Callable[[Any], Optional[List[str]]]] = [
    top_level_permissions,
    nested_data_permissions,
    data_array,
    bare_array,
]


def extract_permission_keys(payload: Any, adapters: Iterable[Callable[[Any], Optional[List[str]]]] = None) -> List[str]:
    """Return the de-duplicated permission keys, preserving first-seen order.

    Raises UnrecognizedShape when no adapter accepts the payload.
    """
    for adapter in adapters or PERMISSION_ADAPTERS:
        keys = adapter(payload)
        if keys is not None:
            return list(dict.fromkeys(keys))
    raise UnrecognizedShape(f'Unrecognized permission payload: {type(payload).__name__}')


def extract_summary_users(payload: Any) -> List[dict]:
    """Users list from a ``/user-roles-summary`` response (``data.allUsers`` or ``allUsers``)."""
    candidates = []
    if isinstance(payload, dict):
        data = payload.get('data')
        if isinstance(data, dict):
            candidates.append(data.get('allUsers'))
            candidates.append(data.get('usersWithRoles'))
        candidates.append(payload.get('allUsers'))
        candidates.append(payload.get('usersWithRoles'))
    for users in candidates:
        if isinstance(users, list):
            return [u for u in users if isinstance(u, dict)]
    raise UnrecognizedShape('Unrecognized user-roles summary payload')


def role_permission_keys(role: Any) -> List[str]:
    """Keys granted by one role entry of a summary payload.

    Roles may carry ``permissions`` or ``rolePermissions``; link entries may
    wrap the permission under ``permission``.
    """
    if not isinstance(role, dict):
        return []
    items = role.get('permissions')
    if not isinstance(items, list):
        items = role.get('rolePermissions')
    if not isinstance(items, list):
        return []
    keys = []
    for item in items:
        if isinstance(item, dict) and isinstance(item.get('permission'), dict):
            item = item['permission']
        k = item_key(item)
        if k is not None:
            keys.append(k)
    return keys


__all__ = [
    'UnrecognizedShape', 'PERMISSION_ADAPTERS', 'extract_permission_keys', 'extract_summary_users',
    'role_permission_keys', 'item_key',
]
