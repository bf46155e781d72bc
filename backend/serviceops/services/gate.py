from __future__ import annotations
from typing import Iterable

from serviceops.services.resolver import ResolvedPermissionSet


class CapabilityGate:
    """Exact-membership checks against one resolved set. No wildcards, no
    prefix or hierarchy semantics."""

    def __init__(self, resolved: ResolvedPermissionSet):
        self.resolved = resolved

    @property
    def permissions(self):
        return self.resolved.permissions

    def has_permission(self, key: str) -> bool:
        return key in self.resolved.permissions

    def has_any_permission(self, keys: Iterable[str]) -> bool:
        return any(k in self.resolved.permissions for k in keys)

    def has_all_permissions(self, keys: Iterable[str]) -> bool:
        return all(k in self.resolved.permissions for k in keys)
