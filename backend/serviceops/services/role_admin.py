"""Administrative workflow against an RBAC backend.

Permission edits are sent as per-link calls computed from a diff of the
role's current set, so a partial failure touches only some links. The report
names the failed links and ``retry_failed`` replays just those.
"""
from __future__ import annotations
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from serviceops.services.errors import ConflictingName, NotConfigured, PartialMutationFailure, ServiceOpsError, TransportError

log = logging.getLogger(__name__)


@dataclass
class MutationReport:
    role_id: int
    added: List[int] = field(default_factory=list)
    removed: List[int] = field(default_factory=list)
    failed_links: Dict[int, str] = field(default_factory=dict)
    failed_unlinks: Dict[int, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed_links and not self.failed_unlinks

    @property
    def failed_count(self) -> int:
        return len(self.failed_links) + len(self.failed_unlinks)

    def as_dict(self):
        return {
            'role_id': self.role_id,
            'added': self.added,
            'removed': self.removed,
            'failed_links': sorted(self.failed_links),
            'failed_unlinks': sorted(self.failed_unlinks),
            'ok': self.ok,
        }

    def raise_for_failures(self):
        if not self.ok:
            raise PartialMutationFailure(
                f'role {self.role_id}: {self.failed_count} permission change(s) failed', report=self,
            )


class RoleAdministrator:
    def __init__(self, client, retry_attempts: int = 3, clock: Callable[[], float] = time.time):
        self.client = client
        self.retry_attempts = max(1, retry_attempts)
        self._clock = clock

    # --- roles ---
    def create_role(self, name: str, desc: str = '', permission_ids: Iterable[int] = ()) -> Tuple[dict, Optional[MutationReport]]:
        """Create a role, then link its initial permissions.

        ConflictingName propagates. Link failures do not undo the role; they
        come back in the report.
        """
        role = self.client.create_role(name, desc)
        wanted = list(dict.fromkeys(permission_ids))
        if not wanted:
            return role, None
        report = self._apply(role['id'], to_add=wanted, to_remove=[])
        return role, report

    def current_permission_ids(self, role_id: int) -> List[int]:
        for role in self.client.list_roles():
            if role.get('id') == role_id:
                return [p['id'] for p in role.get('permissions') or [] if isinstance(p, dict) and 'id' in p]
        raise NotConfigured(f'Role {role_id} not found')

    def set_role_permissions(self, role_id: int, permission_ids: Iterable[int]) -> MutationReport:
        """Make the role hold exactly ``permission_ids``."""
        wanted = list(dict.fromkeys(permission_ids))
        current = self.current_permission_ids(role_id)
        to_add = [pid for pid in wanted if pid not in current]
        to_remove = [pid for pid in current if pid not in wanted]
        return self._apply(role_id, to_add, to_remove)

    def retry_failed(self, report: MutationReport) -> MutationReport:
        return self._apply(report.role_id, list(report.failed_links), list(report.failed_unlinks))

    def _apply(self, role_id: int, to_add: List[int], to_remove: List[int]) -> MutationReport:
        report = MutationReport(role_id)
        for pid in to_remove:
            try:
                self.client.unlink_permission(role_id, pid)
            except NotConfigured:
                pass  # link already gone
            except ServiceOpsError as e:
                report.failed_unlinks[pid] = e.detail
                continue
            report.removed.append(pid)
        for pid in to_add:
            try:
                self.client.link_permission(role_id, pid)
            except ServiceOpsError as e:
                report.failed_links[pid] = e.detail
                continue
            report.added.append(pid)
        if not report.ok:
            log.warning('role %s: %d of %d permission change(s) failed', role_id,
                        report.failed_count, len(to_add) + len(to_remove))
        return report

    def delete_role(self, role_id: int):
        self.client.delete_role(role_id)

    # --- assignments ---
    def assign_role_to_user(self, email: str, role_id: int, profile: Optional[Dict[str, Any]] = None) -> dict:
        """Link ``email`` to a role, creating the persisted user first if needed.

        Both steps are idempotent on the backend, so a TransportError retries
        the whole unit. Other errors propagate immediately.
        """
        last_error: Optional[TransportError] = None
        for attempt in range(1, self.retry_attempts + 1):
            try:
                user = self._ensure_user(email, profile or {})
                assignment = self.client.assign_role(user['id'], role_id)
                return {'user': user, 'assignment': assignment}
            except TransportError as e:
                last_error = e
                log.warning('assign role %s to %s: attempt %d/%d failed: %s',
                            role_id, email, attempt, self.retry_attempts, e)
        raise TransportError(
            f'Assigning role {role_id} to {email} failed after {self.retry_attempts} attempt(s): {last_error.detail}'
        )

    def find_user(self, email: str) -> Optional[dict]:
        for user in self.client.list_users():
            if user.get('email') == email:
                return user
        return None

    def provision_profile(self, email: str, profile: Dict[str, Any]) -> Dict[str, Any]:
        local = email.split('@')[0]
        stamp = str(int(self._clock() * 1000))
        return {
            'email': email,
            'name': profile.get('name') or local,
            'username': f'{local}_{stamp}',
            'org_id': profile.get('org_id'),
            'phone': profile.get('phone') or stamp,
            'address': profile.get('address') or '',
        }

    def _ensure_user(self, email: str, profile: Dict[str, Any]) -> dict:
        existing = self.find_user(email)
        if existing:
            return existing
        try:
            return self.client.create_user(self.provision_profile(email, profile))
        except ConflictingName:
            # an earlier attempt may have created it before its response was lost
            existing = self.find_user(email)
            if existing:
                return existing
            raise
