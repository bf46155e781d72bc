"""Persisted role / permission / assignment graph.

Plain functions over the request-scoped session. Every mutation that can
change someone's effective permissions drops the affected cache entries.
"""
from __future__ import annotations
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import delete, func, select

from serviceops import get_db
from serviceops.constants.permissions import PERMISSION_CATALOG
from serviceops.models.authz import Permission, Role, RolePermission, User, UserRole
from serviceops.services.errors import ConflictingName, InUse, NotConfigured, StaleWrite, ValidationFailed
from serviceops.services.permission_cache import invalidate_cached_permissions

log = logging.getLogger(__name__)


# --- serialisation ---
def permission_to_dict(p: Permission) -> Dict:
    return {'id': p.id, 'permission_key': p.key, 'name': p.display_name}


def role_to_dict(role: Role) -> Dict:
    return {
        'id': role.id,
        'name': role.name,
        'desc': role.description or '',
        'version': role.version,
        'permissions': [permission_to_dict(rp.permission) for rp in role.permissions],
    }


def user_to_dict(user: User, with_roles: bool = False) -> Dict:
    out = {
        'id': user.id,
        'email': user.email,
        'name': user.name,
        'username': user.username,
        'org_id': user.org_id,
        'phone': user.phone,
        'address': user.address,
    }
    if with_roles:
        out['roles'] = [role_to_dict(ur.role) for ur in user.user_roles]
    return out


# --- permissions ---
def list_permissions() -> List[Permission]:
    return get_db().execute(select(Permission).order_by(Permission.id.asc())).scalars().all()


def create_permission(key: str, display_name: Optional[str] = None) -> Permission:
    if not key:
        raise ValidationFailed('permission_key required')
    session = get_db()
    if session.execute(select(Permission).where(Permission.key == key)).scalar_one_or_none():
        raise ConflictingName(f"Permission '{key}' already exists")
    perm = Permission(key=key, display_name=display_name or key)
    session.add(perm)
    session.commit()
    return perm


def delete_permission(permission_id: int):
    session = get_db()
    perm = session.get(Permission, permission_id)
    if not perm:
        raise NotConfigured('Permission not found')
    refs = session.execute(select(func.count(RolePermission.id)).where(RolePermission.permission_id == permission_id)).scalar_one()
    if refs:
        raise InUse(f"Permission '{perm.key}' is referenced by {refs} role(s)")
    session.delete(perm)
    session.commit()


def seed_permissions(catalog: Optional[Dict[str, str]] = None) -> Tuple[int, int]:
    """Insert missing catalog keys. Returns (created, total)."""
    catalog = catalog if catalog is not None else PERMISSION_CATALOG
    session = get_db()
    existing = {p.key for p in session.execute(select(Permission)).scalars()}
    created = 0
    for key, name in catalog.items():
        if key not in existing:
            session.add(Permission(key=key, display_name=name))
            created += 1
    session.commit()
    return created, len(existing) + created


# --- roles ---
def list_roles() -> List[Role]:
    return get_db().execute(select(Role).order_by(Role.id.asc())).scalars().all()


def get_role(role_id: int) -> Role:
    role = get_db().get(Role, role_id)
    if not role:
        raise NotConfigured('Role not found')
    return role


def create_role(name: str, description: str = '') -> Role:
    if not name:
        raise ValidationFailed('name required')
    session = get_db()
    # exact, case-sensitive match
    if session.execute(select(Role).where(Role.name == name)).scalar_one_or_none():
        raise ConflictingName(f"Role '{name}' already exists")
    role = Role(name=name, description=description or '', version=1)
    session.add(role)
    session.commit()
    return role


def _require_permission(session, permission_id: int) -> Permission:
    perm = session.get(Permission, permission_id)
    if not perm:
        raise NotConfigured(f'Permission {permission_id} not found')
    return perm


def link_permission(role_id: int, permission_id: int) -> Tuple[RolePermission, bool]:
    """Add one permission to a role. Linking an existing pair is a no-op."""
    session = get_db()
    role = get_role(role_id)
    _require_permission(session, permission_id)
    link = session.execute(
        select(RolePermission).where(RolePermission.role_id == role_id, RolePermission.permission_id == permission_id)
    ).scalar_one_or_none()
    if link:
        return link, False
    link = RolePermission(role_id=role_id, permission_id=permission_id)
    session.add(link)
    role.version += 1
    session.commit()
    invalidate_cached_permissions()
    return link, True


def unlink_permission(role_id: int, permission_id: int):
    session = get_db()
    role = get_role(role_id)
    link = session.execute(
        select(RolePermission).where(RolePermission.role_id == role_id, RolePermission.permission_id == permission_id)
    ).scalar_one_or_none()
    if not link:
        raise NotConfigured('Role does not hold this permission')
    session.delete(link)
    role.version += 1
    session.commit()
    invalidate_cached_permissions()


def replace_role_permissions(role_id: int, permission_ids: Iterable[int], expected_version: Optional[int] = None) -> Role:
    """Full replace of a role's permission set in one transaction.

    With ``expected_version`` the write is refused when someone else changed
    the role since the caller read it.
    """
    session = get_db()
    role = get_role(role_id)
    if expected_version is not None and role.version != expected_version:
        raise StaleWrite(
            f'Role {role_id} changed (version {role.version}, expected {expected_version})',
            current_version=role.version,
        )
    wanted = list(dict.fromkeys(int(pid) for pid in permission_ids))
    found = {p.id for p in session.execute(select(Permission).where(Permission.id.in_(wanted))).scalars()} if wanted else set()
    missing = [pid for pid in wanted if pid not in found]
    if missing:
        raise ValidationFailed(f'Unknown permission ids: {missing}')
    session.execute(delete(RolePermission).where(RolePermission.role_id == role.id))
    for pid in wanted:
        session.add(RolePermission(role_id=role.id, permission_id=pid))
    role.version += 1
    session.commit()
    session.refresh(role)
    invalidate_cached_permissions()
    return role


def delete_role(role_id: int) -> int:
    """Delete a role with its permission links and assignments; users stay.
    Returns the number of assignments removed."""
    session = get_db()
    role = get_role(role_id)
    removed = len(role.user_roles)
    session.delete(role)
    session.commit()
    invalidate_cached_permissions()
    log.info('role %s deleted, %d assignment(s) removed', role_id, removed)
    return removed


# --- users & assignments ---
def list_users(limit: Optional[int] = None, offset: int = 0) -> Tuple[List[User], int]:
    session = get_db()
    total = session.execute(select(func.count(User.id))).scalar_one()
    q = select(User).order_by(User.id.asc()).offset(offset)
    if limit is not None:
        q = q.limit(limit)
    return session.execute(q).scalars().all(), total


def get_user(user_id: int) -> User:
    user = get_db().get(User, user_id)
    if not user:
        raise NotConfigured('User not found')
    return user


def find_user_by_email(email: str) -> Optional[User]:
    return get_db().execute(select(User).where(User.email == email)).scalar_one_or_none()


def create_user(email: str, name: Optional[str] = None, username: Optional[str] = None,
                org_id: Optional[str] = None, phone: Optional[str] = None, address: Optional[str] = None) -> User:
    if not email:
        raise ValidationFailed('email required')
    session = get_db()
    if find_user_by_email(email):
        raise ConflictingName(f"User '{email}' already exists")
    username = username or email.split('@')[0]
    if session.execute(select(User).where(User.username == username)).scalar_one_or_none():
        raise ConflictingName(f"Username '{username}' already taken")
    user = User(email=email, name=name or email.split('@')[0], username=username,
                org_id=org_id, phone=phone, address=address)
    session.add(user)
    session.commit()
    # a persisted user with no roles resolves to the empty set from now on
    invalidate_cached_permissions(email)
    return user


def assign_role(user_id: int, role_id: int) -> Tuple[UserRole, bool]:
    """Link a user to a role; an existing pair is returned unchanged."""
    session = get_db()
    user = get_user(user_id)
    get_role(role_id)
    link = session.execute(
        select(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
    ).scalar_one_or_none()
    if link:
        return link, False
    link = UserRole(user_id=user_id, role_id=role_id)
    session.add(link)
    session.commit()
    invalidate_cached_permissions(user.email)
    return link, True


def remove_role(user_id: int, role_id: int):
    session = get_db()
    user = get_user(user_id)
    link = session.execute(
        select(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
    ).scalar_one_or_none()
    if not link:
        raise NotConfigured('User does not hold this role')
    session.delete(link)
    session.commit()
    invalidate_cached_permissions(user.email)


def user_permissions(user: User) -> List[Permission]:
    """Union of the user's roles' permissions, de-duplicated, first-seen order."""
    seen: Dict[int, Permission] = {}
    for ur in user.user_roles:
        for rp in ur.role.permissions:
            seen.setdefault(rp.permission_id, rp.permission)
    return list(seen.values())


def user_roles_summary() -> Dict:
    users, _ = list_users()
    all_users = []
    with_roles = []
    for u in users:
        entry = {
            '_id': u.id,
            'name': u.name,
            'email': u.email,
            'phone': u.phone,
            'username': u.username,
            'org_id': u.org_id,
            'roles': [role_to_dict(ur.role) for ur in u.user_roles],
        }
        all_users.append(entry)
        if entry['roles']:
            with_roles.append(entry)
    return {
        'allUsers': all_users,
        'usersWithRoles': with_roles,
        'summary': {
            'totalUsers': len(all_users),
            'usersWithRoles': len(with_roles),
            'usersWithoutRoles': len(all_users) - len(with_roles),
        },
    }
