#!/usr/bin/env python
"""Administer roles on an RBAC backend over HTTP.

Usage:
    python backend/scripts/rbac_admin.py create-role "Bodyshop Lead" --desc "..." --permissions 3 4 9
    python backend/scripts/rbac_admin.py set-permissions 7 3 4 9
    python backend/scripts/rbac_admin.py delete-role 7
    python backend/scripts/rbac_admin.py assign advisor@dealer.com 7 --name "New Advisor"

Connection settings come from RBAC_API_URL / RBAC_API_TOKEN / RBAC_API_TIMEOUT
(or --url / --token). Exit codes: 0 ok, 1 error, 3 partial permission update.
"""
from __future__ import annotations
import os, sys, argparse, json, logging

sys.path.append(os.path.abspath('backend'))

from serviceops.config.settings import load_settings  # type: ignore
from serviceops.services.errors import PartialMutationFailure, ServiceOpsError
from serviceops.services.rbac_client import RbacClient
from serviceops.services.role_admin import RoleAdministrator

EXIT_PARTIAL = 3


def parse_args(argv=None):
    settings = load_settings()
    p = argparse.ArgumentParser(description='RBAC administration client')
    p.add_argument('--url', default=settings['RBAC_API_URL'])
    p.add_argument('--token', default=settings['RBAC_API_TOKEN'])
    p.add_argument('--timeout', type=float, default=settings['RBAC_API_TIMEOUT'])
    p.add_argument('--retries', type=int, default=settings['ASSIGN_RETRY_ATTEMPTS'])
    p.add_argument('--retry-failed', action='store_true', help='Replay failed permission links once')
    sub = p.add_subparsers(dest='command', required=True)

    c = sub.add_parser('create-role')
    c.add_argument('name')
    c.add_argument('--desc', default='')
    c.add_argument('--permissions', type=int, nargs='*', default=[])

    s = sub.add_parser('set-permissions')
    s.add_argument('role_id', type=int)
    s.add_argument('permission_ids', type=int, nargs='*')

    d = sub.add_parser('delete-role')
    d.add_argument('role_id', type=int)

    a = sub.add_parser('assign')
    a.add_argument('email')
    a.add_argument('role_id', type=int)
    a.add_argument('--name')
    a.add_argument('--phone')
    a.add_argument('--org-id')
    return p.parse_args(argv)


def _finish_report(admin, report, retry_failed):
    if report is None:
        return 0
    if not report.ok and retry_failed:
        retried = admin.retry_failed(report)
        report.added.extend(retried.added)
        report.removed.extend(retried.removed)
        report.failed_links = retried.failed_links
        report.failed_unlinks = retried.failed_unlinks
    print(json.dumps(report.as_dict(), indent=2))
    try:
        report.raise_for_failures()
    except PartialMutationFailure as e:
        print(f"[PARTIAL] {e.detail}", file=sys.stderr)
        return EXIT_PARTIAL
    return 0


def run(admin, args) -> int:
    if args.command == 'create-role':
        role, report = admin.create_role(args.name, args.desc, args.permissions)
        print(f"[DONE] Role {role.get('id')} '{role.get('name')}' created")
        return _finish_report(admin, report, args.retry_failed)
    if args.command == 'set-permissions':
        return _finish_report(admin, admin.set_role_permissions(args.role_id, args.permission_ids), args.retry_failed)
    if args.command == 'delete-role':
        admin.delete_role(args.role_id)
        print(f"[DONE] Role {args.role_id} deleted")
        return 0
    if args.command == 'assign':
        profile = {'name': args.name, 'phone': args.phone, 'org_id': args.org_id}
        result = admin.assign_role_to_user(args.email, args.role_id, profile)
        print(f"[DONE] {args.email} (user {result['user'].get('id')}) now holds role {args.role_id}")
        return 0
    return 1


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format='%(levelname)s %(name)s: %(message)s')
    args = parse_args(argv)
    with RbacClient(args.url, timeout=args.timeout, token=args.token) as client:
        admin = RoleAdministrator(client, retry_attempts=args.retries)
        try:
            return run(admin, args)
        except ServiceOpsError as e:
            print(f"[ERROR] {e.title}: {e.detail}", file=sys.stderr)
            return 1


if __name__ == '__main__':
    sys.exit(main())
