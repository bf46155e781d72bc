from serviceops.constants.permissions import GENERAL_MANAGER
from tests.test_utils_seed import ensure_user, login, seed_configured_account


def test_users_pagination(client):
    seed_configured_account('pagadmin@test.local', GENERAL_MANAGER, 'PagAdminRole', ['manage_users'])
    for i in range(3):
        ensure_user(f'paged{i}@test.local')
    headers = login(client, 'pagadmin@test.local')

    page = client.get('/rbac/users?limit=2&offset=0', headers=headers).get_json()
    assert page['success'] is True
    assert page['pagination']['limit'] == 2
    assert page['pagination']['returned'] == len(page['data']) <= 2
    assert page['pagination']['total'] >= 4

    second = client.get('/rbac/users?limit=2&offset=2', headers=headers).get_json()
    assert {u['id'] for u in page['data']}.isdisjoint(u['id'] for u in second['data'])


def test_pagination_clamps_and_rejects_garbage(client):
    seed_configured_account('pagadmin2@test.local', GENERAL_MANAGER, 'PagAdminRole2', ['manage_users'])
    headers = login(client, 'pagadmin2@test.local')
    big = client.get('/rbac/users?limit=10000', headers=headers).get_json()
    assert big['pagination']['limit'] == 200
    assert client.get('/rbac/users?limit=abc', headers=headers).status_code == 400
