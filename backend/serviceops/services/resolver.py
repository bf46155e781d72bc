"""Permission resolution.

Decides the capability set for an authenticated identity. Precedence, first
match wins:

1. The store knows the user: union of all linked roles' keys. A user with no
   roles (or roles without permissions) gets the empty set, even if the account
   type has defaults.
2. The store does not know the user: the bootstrap account type keeps its
   defaults, every other type gets the empty set.
3. The store cannot be reached: last-known-good for the user if one exists,
   otherwise the account-type defaults.

``resolve`` never raises; failures are logged and degrade along rule 3.
"""
from __future__ import annotations
import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Optional

from serviceops.constants.permissions import BOOTSTRAP_ACCOUNT_TYPE, get_defaults
from serviceops.services.permission_cache import PermissionCache
from serviceops.services.permission_sources import Found, LookupFailed, NotConfigured, PermissionSource

log = logging.getLogger(__name__)


class ResolutionStatus(str, enum.Enum):
    PROVISIONAL = 'provisional'    # defaults shown while the lookup runs
    CONFIGURED = 'configured'      # from the persisted role graph
    BOOTSTRAP = 'bootstrap'        # unconfigured top-privilege account, defaults kept
    UNCONFIGURED = 'unconfigured'  # unconfigured account, no access
    LAST_KNOWN_GOOD = 'last_known_good'
    DEFAULTS = 'defaults'          # store unreachable, nothing cached


@dataclass(frozen=True)
class Identity:
    email: str
    account_type: str
    city: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class ResolvedPermissionSet:
    permissions: FrozenSet[str]
    status: ResolutionStatus
    resolved_at: float = field(default_factory=time.time)

    @property
    def is_empty(self) -> bool:
        return not self.permissions

    def as_dict(self):
        return {
            'permissions': sorted(self.permissions),
            'status': self.status.value,
            'empty_access': self.is_empty,
        }


class PermissionResolver:
    def __init__(self, source: PermissionSource, cache: Optional[PermissionCache] = None,
                 defaults: Callable[[str], FrozenSet[str]] = get_defaults,
                 bootstrap_account_type: str = BOOTSTRAP_ACCOUNT_TYPE):
        self.source = source
        self.cache = cache if cache is not None else PermissionCache()
        self.defaults = defaults
        self.bootstrap_account_type = bootstrap_account_type

    def provisional(self, identity: Identity) -> ResolvedPermissionSet:
        """Immediate answer while the authoritative lookup is pending."""
        return ResolvedPermissionSet(self.defaults(identity.account_type), ResolutionStatus.PROVISIONAL)

    def resolve(self, identity: Identity) -> ResolvedPermissionSet:
        cached = self.cache.get_fresh(identity.email)
        if cached is not None:
            return ResolvedPermissionSet(cached.permissions, ResolutionStatus(cached.status), cached.fetched_at)
        try:
            outcome = self.source.lookup(identity.email)
        except Exception as e:  # sources should not raise; degrade anyway
            log.exception('permission source %s raised for %s', self.source.name, identity.email)
            outcome = LookupFailed(str(e))

        if isinstance(outcome, Found):
            resolved = ResolvedPermissionSet(frozenset(outcome.keys), ResolutionStatus.CONFIGURED)
            if resolved.is_empty:
                log.info('%s is configured but holds no permissions', identity.email)
        elif isinstance(outcome, NotConfigured):
            if identity.account_type == self.bootstrap_account_type:
                resolved = ResolvedPermissionSet(self.defaults(identity.account_type), ResolutionStatus.BOOTSTRAP)
            else:
                resolved = ResolvedPermissionSet(frozenset(), ResolutionStatus.UNCONFIGURED)
        else:
            return self._degraded(identity, outcome)

        self.cache.put(identity.email, resolved.permissions, resolved.status.value)
        return resolved

    def _degraded(self, identity: Identity, outcome: LookupFailed) -> ResolvedPermissionSet:
        previous = self.cache.last_known_good(identity.email)
        if previous is not None:
            log.warning('permission lookup failed for %s (%s); using last-known-good', identity.email, outcome.reason)
            return ResolvedPermissionSet(previous.permissions, ResolutionStatus.LAST_KNOWN_GOOD, previous.fetched_at)
        log.warning('permission lookup failed for %s (%s); using %s defaults',
                    identity.email, outcome.reason, identity.account_type)
        return ResolvedPermissionSet(self.defaults(identity.account_type), ResolutionStatus.DEFAULTS)

    def invalidate(self, email: Optional[str] = None):
        if email is None:
            self.cache.invalidate_all()
        else:
            self.cache.invalidate(email)


__all__ = ['Identity', 'ResolvedPermissionSet', 'ResolutionStatus', 'PermissionResolver']
