"""HTTP client for an RBAC backend exposing the ``/rbac`` contract.

Failures are mapped onto the shared error taxonomy: network problems, 5xx and
unreadable bodies become TransportError, 404 becomes NotConfigured and 409
becomes ConflictingName. Callers decide what to do with them.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from serviceops.services.errors import ConflictingName, NotConfigured, TransportError, ValidationFailed
from serviceops.services.permission_shapes import UnrecognizedShape, extract_permission_keys, extract_summary_users

log = logging.getLogger(__name__)


class RbacClient:
    def __init__(self, base_url: str, timeout: float = 10.0, token: Optional[str] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        headers = {'Accept': 'application/json'}
        if token:
            headers['Authorization'] = f'Bearer {token}'
        self._client = httpx.Client(
            base_url=base_url.rstrip('/'),
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # --- plumbing ---
    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f'{method} {path} failed: {e}') from e
        if resp.status_code == 404:
            raise NotConfigured(_detail(resp) or 'Not found')
        if resp.status_code == 409:
            raise ConflictingName(_detail(resp) or 'Conflict')
        if resp.status_code == 400:
            raise ValidationFailed(_detail(resp) or 'Bad request')
        if resp.status_code >= 400:
            raise TransportError(f'{method} {path} returned {resp.status_code}')
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise TransportError(f'{method} {path} returned a non-JSON body') from e

    # --- reads ---
    def list_permissions(self) -> List[dict]:
        return _unwrap_list(self._request('GET', '/permissions'))

    def list_roles(self) -> List[dict]:
        return _unwrap_list(self._request('GET', '/roles'))

    def list_users(self, page_size: int = 200) -> List[dict]:
        users: List[dict] = []
        offset = 0
        while True:
            payload = self._request('GET', '/users', params={'limit': page_size, 'offset': offset})
            page = _unwrap_list(payload)
            users.extend(page)
            paginated = isinstance(payload, dict) and 'pagination' in payload
            if not paginated or len(page) < page_size:
                return users
            offset += len(page)

    def user_permission_keys(self, email: str) -> List[str]:
        """Keys for a configured user. NotConfigured when the store has no such user."""
        payload = self._request('GET', f'/users/email/{quote(email, safe="")}/permissions')
        try:
            return extract_permission_keys(payload)
        except UnrecognizedShape as e:
            raise TransportError(str(e)) from e

    def user_roles_summary(self) -> List[dict]:
        payload = self._request('GET', '/user-roles-summary')
        try:
            return extract_summary_users(payload)
        except UnrecognizedShape as e:
            raise TransportError(str(e)) from e

    # --- writes ---
    def create_role(self, name: str, desc: str = '') -> dict:
        return _unwrap_obj(self._request('POST', '/roles', json={'name': name, 'desc': desc}))

    def delete_role(self, role_id: int):
        self._request('DELETE', f'/roles/{role_id}')

    def link_permission(self, role_id: int, permission_id: int) -> dict:
        return _unwrap_obj(self._request('POST', '/role-permissions', json={'roleId': role_id, 'permissionId': permission_id}))

    def unlink_permission(self, role_id: int, permission_id: int):
        self._request('DELETE', f'/role-permissions/{role_id}/{permission_id}')

    def create_user(self, profile: Dict[str, Any]) -> dict:
        return _unwrap_obj(self._request('POST', '/users', json=profile))

    def assign_role(self, user_id: int, role_id: int) -> dict:
        return _unwrap_obj(self._request('POST', '/user-roles', json={'userId': user_id, 'roleId': role_id}))


def _detail(resp: httpx.Response) -> Optional[str]:
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        err = body.get('error')
        if isinstance(err, dict):
            return err.get('detail')
        return body.get('message') or (err if isinstance(err, str) else None)
    return None


def _unwrap_list(payload: Any) -> List[dict]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get('data'), list):
        return payload['data']
    raise TransportError('Expected a list payload')


def _unwrap_obj(payload: Any) -> dict:
    if isinstance(payload, dict) and isinstance(payload.get('data'), dict):
        return payload['data']
    if isinstance(payload, dict):
        return payload
    raise TransportError('Expected an object payload')
