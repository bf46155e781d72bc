from serviceops import get_db
from serviceops.constants.permissions import GENERAL_MANAGER, SERVICE_MANAGER
from serviceops.models.audit import AuditLog
from serviceops.models.authz import Role, RolePermission, User, UserRole
from tests.test_utils_seed import ensure_account, ensure_permissions, login, seed_configured_account

ADMIN_KEYS = ['manage_roles', 'manage_users']


def _admin(client, email):
    seed_configured_account(email, GENERAL_MANAGER, f'Admin {email}', ADMIN_KEYS)
    return login(client, email)


def test_create_role_then_duplicate_name_conflicts(client):
    h = _admin(client, 'rbac-admin1@test.local')
    resp = client.post('/rbac/roles', json={'name': 'Bodyshop Lead', 'desc': 'bodyshop'}, headers=h)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['success'] is True
    assert body['data']['permissions'] == []
    assert body['data']['desc'] == 'bodyshop'

    dup = client.post('/rbac/roles', json={'name': 'Bodyshop Lead'}, headers=h)
    assert dup.status_code == 409
    assert dup.get_json()['error']['status'] == 409
    # case-sensitive names
    other = client.post('/rbac/roles', json={'name': 'bodyshop lead'}, headers=h)
    assert other.status_code == 201

    audits = get_db().query(AuditLog).filter(AuditLog.action == 'ROLE.CREATE').all()
    mine = [a for a in audits if a.actor_email == 'rbac-admin1@test.local']
    assert mine and mine[0].actor_account_type == GENERAL_MANAGER
    assert mine[0].perms_snapshot['permissions'] == ADMIN_KEYS


def test_replace_role_permissions_with_version_check(client):
    h = _admin(client, 'rbac-admin2@test.local')
    perms = ensure_permissions(['read', 'upload', 'warranty_report'])
    role = client.post('/rbac/roles', json={'name': 'Replace Target'}, headers=h).get_json()['data']

    ok = client.put(f"/rbac/roles/{role['id']}/permissions",
                    json={'permissionIds': [perms['read'].id, perms['upload'].id], 'version': role['version']}, headers=h)
    assert ok.status_code == 200, ok.get_json()
    updated = ok.get_json()['data']
    assert [p['permission_key'] for p in updated['permissions']] == ['read', 'upload']
    assert updated['version'] == role['version'] + 1

    stale = client.put(f"/rbac/roles/{role['id']}/permissions",
                       json={'permissionIds': [perms['warranty_report'].id], 'version': role['version']}, headers=h)
    assert stale.status_code == 409

    # no version: last write wins
    lww = client.put(f"/rbac/roles/{role['id']}/permissions", json={'permissionIds': []}, headers=h)
    assert lww.status_code == 200
    assert lww.get_json()['data']['permissions'] == []

    unknown = client.put(f"/rbac/roles/{role['id']}/permissions", json={'permissionIds': [999999]}, headers=h)
    assert unknown.status_code == 400


def test_link_and_unlink_single_permission(client):
    h = _admin(client, 'rbac-admin3@test.local')
    perm = ensure_permissions(['export_data'])['export_data']
    role = client.post('/rbac/roles', json={'name': 'Linker'}, headers=h).get_json()['data']
    first = client.post('/rbac/role-permissions', json={'roleId': role['id'], 'permissionId': perm.id}, headers=h)
    assert first.status_code == 201
    again = client.post('/rbac/role-permissions', json={'roleId': role['id'], 'permissionId': perm.id}, headers=h)
    assert again.status_code == 200
    assert get_db().query(RolePermission).filter_by(role_id=role['id']).count() == 1
    gone = client.delete(f"/rbac/role-permissions/{role['id']}/{perm.id}", headers=h)
    assert gone.status_code == 200
    missing = client.delete(f"/rbac/role-permissions/{role['id']}/{perm.id}", headers=h)
    assert missing.status_code == 404


def test_delete_role_removes_assignments_but_keeps_users(client):
    h = _admin(client, 'rbac-admin4@test.local')
    role = client.post('/rbac/roles', json={'name': 'Doomed'}, headers=h).get_json()['data']
    user = client.post('/rbac/users', json={'email': 'doomed-holder@test.local', 'name': 'Holder'}, headers=h).get_json()['data']
    client.post('/rbac/user-roles', json={'userId': user['id'], 'roleId': role['id']}, headers=h)
    resp = client.delete(f"/rbac/roles/{role['id']}", headers=h)
    assert resp.status_code == 200
    assert resp.get_json()['data']['assignments_removed'] == 1
    session = get_db()
    assert session.get(Role, role['id']) is None
    assert session.query(UserRole).filter_by(role_id=role['id']).count() == 0
    assert session.get(User, user['id']) is not None


def test_assign_role_is_idempotent(client):
    h = _admin(client, 'rbac-admin5@test.local')
    role = client.post('/rbac/roles', json={'name': 'Twice'}, headers=h).get_json()['data']
    user = client.post('/rbac/users', json={'email': 'twice@test.local'}, headers=h).get_json()['data']
    first = client.post('/rbac/user-roles', json={'userId': user['id'], 'roleId': role['id']}, headers=h)
    second = client.post('/rbac/user-roles', json={'userId': user['id'], 'roleId': role['id']}, headers=h)
    assert first.status_code == 201 and second.status_code == 200
    assert first.get_json()['data']['id'] == second.get_json()['data']['id']
    assert get_db().query(UserRole).filter_by(user_id=user['id']).count() == 1

    removed = client.delete(f"/rbac/user-roles/{user['id']}/{role['id']}", headers=h)
    assert removed.status_code == 200
    assert get_db().query(UserRole).filter_by(user_id=user['id']).count() == 0


def test_duplicate_user_email_conflicts(client):
    h = _admin(client, 'rbac-admin6@test.local')
    assert client.post('/rbac/users', json={'email': 'dupe@test.local'}, headers=h).status_code == 201
    assert client.post('/rbac/users', json={'email': 'dupe@test.local', 'username': 'other'}, headers=h).status_code == 409


def test_permissions_by_email_envelope_and_not_found(client):
    h = _admin(client, 'rbac-admin7@test.local')
    seed_configured_account('byemail@test.local', SERVICE_MANAGER, 'ByEmail Role', ['read', 'upload'])
    resp = client.get('/rbac/users/email/byemail@test.local/permissions', headers=h)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['success'] is True
    assert body['data']['user']['email'] == 'byemail@test.local'
    assert sorted(p['permission_key'] for p in body['data']['permissions']) == ['read', 'upload']

    missing = client.get('/rbac/users/email/nobody@test.local/permissions', headers=h)
    assert missing.status_code == 404
    assert missing.get_json()['error']['detail'] == 'User not found'

    roles = client.get('/rbac/users/email/byemail@test.local/roles', headers=h)
    assert [r['name'] for r in roles.get_json()['data']['roles']] == ['ByEmail Role']


def test_user_may_read_own_permissions_without_admin_key(client):
    seed_configured_account('self-reader@test.local', SERVICE_MANAGER, 'Self Reader', ['read'])
    h = login(client, 'self-reader@test.local')
    own = client.get('/rbac/users/email/self-reader@test.local/permissions', headers=h)
    assert own.status_code == 200
    other = client.get('/rbac/users/email/rbac-admin7@test.local/permissions', headers=h)
    assert other.status_code == 403


def test_user_roles_summary_counts(client):
    h = _admin(client, 'rbac-admin8@test.local')
    client.post('/rbac/users', json={'email': 'no-roles@test.local'}, headers=h)
    resp = client.get('/rbac/user-roles-summary', headers=h)
    assert resp.status_code == 200
    data = resp.get_json()['data']
    summary = data['summary']
    assert summary['totalUsers'] == len(data['allUsers'])
    assert summary['usersWithRoles'] + summary['usersWithoutRoles'] == summary['totalUsers']
    entry = next(u for u in data['allUsers'] if u['email'] == 'no-roles@test.local')
    assert entry['roles'] == []
    assert {'_id', 'name', 'email', 'phone', 'username', 'org_id', 'roles'} <= set(entry)


def test_permission_catalog_endpoints(client):
    h = _admin(client, 'rbac-admin9@test.local')
    seeded = client.post('/rbac/seed-permissions', headers=h)
    assert seeded.status_code == 200
    again = client.post('/rbac/seed-permissions', headers=h).get_json()['data']
    assert again['created'] == 0

    listed = client.get('/rbac/permissions', headers=h).get_json()['data']
    assert {'permission_key', 'name', 'id'} <= set(listed[0])

    created = client.post('/rbac/permissions', json={'permission_key': 'bodyshop_report', 'name': 'Bodyshop Report'}, headers=h)
    assert created.status_code == 201
    pid = created.get_json()['data']['id']
    assert client.post('/rbac/permissions', json={'permission_key': 'bodyshop_report'}, headers=h).status_code == 409

    role = client.post('/rbac/roles', json={'name': 'Uses Bodyshop'}, headers=h).get_json()['data']
    client.post('/rbac/role-permissions', json={'roleId': role['id'], 'permissionId': pid}, headers=h)
    assert client.delete(f'/rbac/permissions/{pid}', headers=h).status_code == 409
    client.delete(f"/rbac/role-permissions/{role['id']}/{pid}", headers=h)
    assert client.delete(f'/rbac/permissions/{pid}', headers=h).status_code == 200


def test_user_permission_check_endpoint(client):
    h = _admin(client, 'rbac-admin10@test.local')
    _, user, _ = seed_configured_account('checked@test.local', SERVICE_MANAGER, 'Checked Role', ['upload'])
    yes = client.get(f'/rbac/users/{user.id}/permissions/upload', headers=h).get_json()['data']
    no = client.get(f'/rbac/users/{user.id}/permissions/upload_extra', headers=h).get_json()['data']
    assert yes['hasPermission'] is True
    assert no['hasPermission'] is False


def test_rbac_endpoints_require_admin_keys(client):
    ensure_account('plain-sm@test.local', SERVICE_MANAGER, city='Pune')
    h = login(client, 'plain-sm@test.local')
    assert client.get('/rbac/roles', headers=h).status_code == 403
    assert client.post('/rbac/roles', json={'name': 'Nope'}, headers=h).status_code == 403
    assert client.get('/rbac/roles').status_code == 401
