from serviceops.constants.permissions import GENERAL_MANAGER, SERVICE_ADVISOR, SERVICE_MANAGER, get_defaults
from tests.test_utils_seed import ensure_account, ensure_permissions, ensure_user, login, seed_configured_account


def test_login_and_me(client):
    ensure_account('me-sm@test.local', SERVICE_MANAGER, city='Pune')
    headers = login(client, 'me-sm@test.local')
    me = client.get('/auth/me', headers=headers)
    assert me.status_code == 200
    body = me.get_json()
    assert body['email'] == 'me-sm@test.local'
    assert body['account_type'] == SERVICE_MANAGER
    assert body['city'] == 'Pune'
    assert body['provisional_permissions'] == sorted(get_defaults(SERVICE_MANAGER))


def test_login_rejects_bad_password(client):
    ensure_account('badpw@test.local', SERVICE_ADVISOR)
    resp = client.post('/auth/login', json={'email': 'badpw@test.local', 'password': 'nope'})
    assert resp.status_code == 401
    assert client.post('/auth/login', json={'email': 'badpw@test.local'}).status_code == 400


def test_virtual_service_manager_gets_empty_access(client):
    ensure_account('virtual-sm@test.local', SERVICE_MANAGER, city='Mumbai')
    body = client.get('/auth/me', headers=login(client, 'virtual-sm@test.local')).get_json()
    assert body['permissions'] == []
    assert body['empty_access'] is True
    assert body['status'] == 'unconfigured'
    assert 'contact your administrator' in body['message']


def test_virtual_general_manager_keeps_bootstrap_defaults(client):
    ensure_account('virtual-gm@test.local', GENERAL_MANAGER)
    body = client.get('/auth/me', headers=login(client, 'virtual-gm@test.local')).get_json()
    assert body['status'] == 'bootstrap'
    assert body['permissions'] == sorted(get_defaults(GENERAL_MANAGER))
    assert 'message' not in body


def test_persisted_gm_without_roles_is_locked_out(client):
    ensure_account('bare-gm@test.local', GENERAL_MANAGER)
    ensure_user('bare-gm@test.local')
    body = client.get('/auth/me', headers=login(client, 'bare-gm@test.local')).get_json()
    assert body['status'] == 'configured'
    assert body['permissions'] == []
    assert body['empty_access'] is True


def test_configured_permissions_replace_defaults(client):
    seed_configured_account('conf-sa@test.local', SERVICE_ADVISOR, 'Conf SA Role', ['target_report'])
    body = client.get('/auth/me', headers=login(client, 'conf-sa@test.local')).get_json()
    assert body['permissions'] == ['target_report']
    # the account-type defaults are not merged in
    assert 'can_access_sa_dashboard' not in body['permissions']


def test_role_change_is_visible_on_next_request(client):
    _, _, role = seed_configured_account('watcher@test.local', SERVICE_MANAGER, 'Watcher Role', ['read'])
    seed_configured_account('watch-admin@test.local', GENERAL_MANAGER, 'Watch Admin', ['manage_roles'])
    watcher = login(client, 'watcher@test.local')
    admin = login(client, 'watch-admin@test.local')
    assert client.get('/auth/me', headers=watcher).get_json()['permissions'] == ['read']

    upload = ensure_permissions(['upload'])['upload']
    resp = client.post('/rbac/role-permissions', json={'roleId': role.id, 'permissionId': upload.id}, headers=admin)
    assert resp.status_code == 201
    assert client.get('/auth/me', headers=watcher).get_json()['permissions'] == ['read', 'upload']


def test_refresh_endpoint_re_resolves(client, app_instance):
    ensure_account('refresher@test.local', SERVICE_MANAGER)
    headers = login(client, 'refresher@test.local')
    assert client.get('/auth/me', headers=headers).get_json()['permissions'] == []
    # assignment made directly in the store, bypassing invalidation
    seed_configured_account('refresher@test.local', SERVICE_MANAGER, 'Refresher Role', ['overview'])
    resp = client.post('/auth/permissions/refresh', headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['permissions'] == ['overview']
    assert app_instance.extensions['permission_cache'].get_fresh('refresher@test.local') is not None


def test_me_requires_token(client):
    assert client.get('/auth/me').status_code == 401


def test_healthz(client):
    body = client.get('/healthz').get_json()
    assert body == {'status': 'ok', 'permission_source': 'local'}
