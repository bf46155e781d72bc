#!/usr/bin/env python
"""Idempotent seed script for the permission catalog, preset roles and accounts.

Usage:
    python backend/scripts/seed_authz.py                      # seed normally
    python backend/scripts/seed_authz.py --show-roles         # print role -> permission counts
    python backend/scripts/seed_authz.py --dry-run            # run logic then rollback
    python backend/scripts/seed_authz.py --demo-accounts      # also create the SM demo accounts
    python backend/scripts/seed_authz.py --configure-admin    # persist the GM and give it the GM role
"""
from __future__ import annotations
import os, sys, argparse, textwrap, json
from sqlalchemy import select

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from serviceops import create_app, get_db  # type: ignore
from serviceops.models.authz import Account, Base, Permission, Role, RolePermission, User, UserRole
from serviceops.constants.permissions import (
    ACCOUNT_TYPES, GENERAL_MANAGER, SERVICE_MANAGER, PERMISSION_CATALOG, ROLE_PRESETS, ACCOUNT_TYPE_ROLE_PRESET,
    all_permission_keys,
)

DEMO_ACCOUNTS = [
    # (email, name, account_type, city)
    ('sm.pune@shubh.com', 'SM Pune', SERVICE_MANAGER, 'Pune'),
    ('sm.mumbai@shubh.com', 'SM Mumbai', SERVICE_MANAGER, 'Mumbai'),
    ('sm.nagpur@shubh.com', 'SM Nagpur', SERVICE_MANAGER, 'Nagpur'),
]


def ensure_permissions(session):
    existing = {p.key for p in session.execute(select(Permission)).scalars().all()}
    created = 0
    for key, name in PERMISSION_CATALOG.items():
        if key not in existing:
            session.add(Permission(key=key, display_name=name))
            created += 1
    session.flush()
    return created


def ensure_roles(session):
    existing_roles = {r.name: r for r in session.execute(select(Role)).scalars().all()}
    created = 0
    for role_name in ROLE_PRESETS:
        if role_name not in existing_roles:
            role = Role(name=role_name, description=f'{role_name} (preset)', version=1)
            session.add(role)
            existing_roles[role_name] = role
            created += 1
    session.flush()

    perms_by_key = {p.key: p for p in session.execute(select(Permission)).scalars()}
    for role_name, keys in ROLE_PRESETS.items():
        role = existing_roles[role_name]
        desired = set(all_permission_keys()) if '*' in keys else set(keys)
        current = {rp.permission.key for rp in role.permissions}
        to_add = sorted(desired - current)
        for key in to_add:
            if key not in perms_by_key:
                print(f"[WARN] Missing permission referenced by role {role_name}: {key}")
                continue
            session.add(RolePermission(role=role, permission=perms_by_key[key]))
        if to_add:
            role.version += 1
    session.flush()
    return created


def ensure_account(session, email, name, account_type, city=None, password=None):
    if account_type not in ACCOUNT_TYPES:
        raise ValueError(f'Unknown account type {account_type!r}')
    account = session.execute(select(Account).where(Account.email == email)).scalar_one_or_none()
    if account:
        return account, False
    account = Account(email=email, name=name, account_type=account_type, city=city, password_hash='')
    account.set_password(password or os.getenv('SEED_ADMIN_PASSWORD', 'ChangeMe123!'))
    session.add(account)
    session.flush()
    return account, True


def configure_account(session, account):
    """Persist the account as an RBAC user holding its account type's preset role."""
    user = session.execute(select(User).where(User.email == account.email)).scalar_one_or_none()
    if not user:
        user = User(email=account.email, name=account.name, username=account.email.split('@')[0], org_id=account.org_id)
        session.add(user)
        session.flush()
    role_name = ACCOUNT_TYPE_ROLE_PRESET.get(account.account_type)
    role = session.execute(select(Role).where(Role.name == role_name)).scalar_one_or_none()
    if role and not session.execute(
        select(UserRole).where(UserRole.user_id == user.id, UserRole.role_id == role.id)
    ).scalar_one_or_none():
        session.add(UserRole(user_id=user.id, role_id=role.id))
    session.flush()
    return user


def ensure_initial_gm(session, configure=False):
    email = os.getenv('SEED_ADMIN_EMAIL', 'gm@shubh.com')
    account, created = ensure_account(session, email, 'General Manager', GENERAL_MANAGER)
    if created:
        print(f"[INFO] Created GM account {email} with temporary password.")
    if configure:
        configure_account(session, account)
    return account


def build_role_permission_map(session):
    mapping = {}
    for role in session.execute(select(Role)).scalars().all():
        mapping[role.name] = sorted({rp.permission.key for rp in role.permissions})
    return mapping


def print_role_summary(session):
    rows = [(name, len(keys), keys[:8]) for name, keys in build_role_permission_map(session).items()]
    if not rows:
        print("[INFO] No roles present.")
        return
    name_w = max(len(r[0]) for r in rows)
    print(f"{'Role'.ljust(name_w)} | Count | Sample (up to 8)")
    print('-' * (name_w + 40))
    for name, cnt, sample in rows:
        print(f"{name.ljust(name_w)} | {str(cnt).rjust(5)} | {', '.join(sample)}")


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Seed RBAC permissions, roles and accounts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_authz.py\n  dry run: seed_authz.py --dry-run\n  show roles: seed_authz.py --show-roles\n""")
    )
    p.add_argument('--show-roles', action='store_true', help='Print role permission counts after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--demo-accounts', action='store_true', help='Create service manager demo accounts')
    p.add_argument('--configure-admin', action='store_true', help='Persist the GM as an RBAC user with the GM role')
    p.add_argument('--export-json', nargs='?', const='-', metavar='FILE', help='Export role->permissions JSON (to FILE or stdout if omitted)')
    return p.parse_args(argv)


def run(session, args):
    created_p = ensure_permissions(session)
    created_r = ensure_roles(session)
    ensure_initial_gm(session, configure=args.configure_admin)
    if args.demo_accounts:
        for email, name, account_type, city in DEMO_ACCOUNTS:
            ensure_account(session, email, name, account_type, city)
    return created_p, created_r


def main(argv=None):
    args = parse_args(argv)
    app = create_app()
    with app.app_context():
        session = get_db()
        # Bootstrap schema if migrations were not run yet; prefer alembic upgrade
        Base.metadata.create_all(session.get_bind())
        created_p, created_r = run(session, args)
        if args.dry_run:
            session.rollback()
            print(f"[DRY-RUN] (rolled back) Permissions would create: {created_p}, Roles would create: {created_r}")
        else:
            session.commit()
            print(f"[DONE] Permissions created: {created_p}, Roles created: {created_r}")
        if args.show_roles:
            print('\nRole Permission Summary:')
            print_role_summary(session)
        if args.export_json is not None:
            payload = json.dumps(build_role_permission_map(session), indent=2, sort_keys=True)
            if args.export_json == '-':
                print(payload)
            else:
                with open(args.export_json, 'w', encoding='utf-8') as fh:
                    fh.write(payload)
                print(f"[EXPORT] Wrote {args.export_json}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
