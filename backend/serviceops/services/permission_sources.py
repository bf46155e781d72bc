"""Authoritative lookups of a user's role-derived permission keys.

A source answers with one of three outcomes and never raises:

* ``Found(keys, role_count)``: the user is persisted; keys may be empty.
* ``NotConfigured``: the store has no record of the user.
* ``LookupFailed(reason)``: the store could not be asked.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Tuple, Union

from sqlalchemy.exc import SQLAlchemyError

from serviceops.services.errors import NotConfigured as NotConfiguredError, ServiceOpsError
from serviceops.services.permission_shapes import role_permission_keys

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Found:
    keys: Tuple[str, ...]
    role_count: int = 0


@dataclass(frozen=True)
class NotConfigured:
    pass


@dataclass(frozen=True)
class LookupFailed:
    reason: str


LookupOutcome = Union[Found, NotConfigured, LookupFailed]


class PermissionSource:
    name = 'base'

    def lookup(self, email: str) -> LookupOutcome:
        raise NotImplementedError


class LocalPermissionSource(PermissionSource):
    """Reads the role graph from this service's own database."""
    name = 'local'

    def lookup(self, email: str) -> LookupOutcome:
        from serviceops import get_db
        from serviceops.services import rbac_store
        try:
            user = rbac_store.find_user_by_email(email)
            if user is None:
                return NotConfigured()
            keys = tuple(p.key for p in rbac_store.user_permissions(user))
            return Found(keys, len(user.user_roles))
        except SQLAlchemyError as e:
            get_db().rollback()
            log.warning('local permission lookup failed for %s: %s', email, e)
            return LookupFailed(str(e))


class RemotePermissionSource(PermissionSource):
    """Asks an external RBAC backend, falling back to the user-roles summary
    when the per-user endpoint cannot be reached."""
    name = 'remote'

    def __init__(self, client):
        self.client = client

    def lookup(self, email: str) -> LookupOutcome:
        try:
            return Found(tuple(self.client.user_permission_keys(email)))
        except NotConfiguredError:
            return NotConfigured()
        except ServiceOpsError as e:
            log.warning('per-user permission endpoint failed for %s (%s); trying summary', email, e)
        return self._lookup_in_summary(email)

    def _lookup_in_summary(self, email: str) -> LookupOutcome:
        try:
            users = self.client.user_roles_summary()
        except ServiceOpsError as e:
            log.warning('user-roles summary failed for %s: %s', email, e)
            return LookupFailed(str(e))
        for entry in users:
            if entry.get('email') != email:
                continue
            roles = entry.get('roles') if isinstance(entry.get('roles'), list) else []
            keys = []
            for role in roles:
                keys.extend(role_permission_keys(role))
            return Found(tuple(dict.fromkeys(keys)), len(roles))
        return NotConfigured()


__all__ = [
    'Found', 'NotConfigured', 'LookupFailed', 'LookupOutcome', 'PermissionSource',
    'LocalPermissionSource', 'RemotePermissionSource',
]
