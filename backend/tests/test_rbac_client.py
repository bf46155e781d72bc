import httpx
import pytest

from serviceops.services.errors import ConflictingName, NotConfigured, TransportError
from serviceops.services.permission_sources import Found, LookupFailed, NotConfigured as NotConfiguredOutcome, RemotePermissionSource
from serviceops.services.rbac_client import RbacClient


def _client(handler):
    return RbacClient('http://rbac.test/rbac', transport=httpx.MockTransport(handler))


def test_user_permission_keys_reads_nested_shape_and_quotes_email():
    seen = {}

    def handler(request):
        seen['path'] = request.url.raw_path.decode()
        return httpx.Response(200, json={'success': True, 'data': {
            'user': {'email': 'a+b@x.com'},
            'permissions': [{'id': 1, 'permission_key': 'read', 'name': 'Read'}],
        }})

    assert _client(handler).user_permission_keys('a+b@x.com') == ['read']
    assert seen['path'] == '/rbac/users/email/a%2Bb%40x.com/permissions'


def test_status_codes_map_to_error_taxonomy():
    def handler(request):
        if request.method == 'POST' and request.url.path.endswith('/roles'):
            return httpx.Response(409, json={'error': {'status': 409, 'title': 'Conflict', 'detail': "Role 'X' already exists"}})
        if '/users/email/' in request.url.path:
            return httpx.Response(404, json={'error': {'detail': 'User not found'}})
        return httpx.Response(503)

    client = _client(handler)
    with pytest.raises(ConflictingName) as exc:
        client.create_role('X')
    assert 'already exists' in exc.value.detail
    with pytest.raises(NotConfigured):
        client.user_permission_keys('ghost@x.com')
    with pytest.raises(TransportError):
        client.list_roles()


def test_network_error_is_transport_error():
    def handler(request):
        raise httpx.ConnectError('refused', request=request)

    with pytest.raises(TransportError):
        _client(handler).list_permissions()


def test_unreadable_permission_payload_is_transport_error():
    with pytest.raises(TransportError):
        _client(lambda r: httpx.Response(200, json={'success': True})).user_permission_keys('a@x.com')


def test_list_users_follows_pagination():
    users = [{'id': i, 'email': f'u{i}@x.com'} for i in range(5)]

    def handler(request):
        limit = int(request.url.params['limit'])
        offset = int(request.url.params['offset'])
        page = users[offset:offset + limit]
        return httpx.Response(200, json={'success': True, 'data': page, 'pagination': {'total': 5}})

    client = _client(handler)
    assert [u['id'] for u in client.list_users(page_size=2)] == [0, 1, 2, 3, 4]


# --- remote source ---

def test_remote_source_found_and_not_configured():
    def handler(request):
        if 'known' in request.url.path:
            return httpx.Response(200, json={'permissions': ['read']})
        return httpx.Response(404, json={'message': 'User not found'})

    source = RemotePermissionSource(_client(handler))
    assert source.lookup('known@x.com') == Found(('read',))
    assert isinstance(source.lookup('other@x.com'), NotConfiguredOutcome)


def test_remote_source_falls_back_to_summary_on_transport_error():
    def handler(request):
        if request.url.path.endswith('/user-roles-summary'):
            return httpx.Response(200, json={'success': True, 'data': {
                'allUsers': [
                    {'email': 'sm@x.com', 'roles': [
                        {'name': 'A', 'permissions': [{'permission_key': 'read'}, {'permission_key': 'upload'}]},
                        {'name': 'B', 'rolePermissions': [{'permission': {'permission_key': 'read'}}]},
                    ]},
                    {'email': 'bare@x.com', 'roles': []},
                ],
                'usersWithRoles': [], 'summary': {},
            }})
        return httpx.Response(500)

    source = RemotePermissionSource(_client(handler))
    assert source.lookup('sm@x.com') == Found(('read', 'upload'), 2)
    assert source.lookup('bare@x.com') == Found((), 0)
    assert isinstance(source.lookup('nobody@x.com'), NotConfiguredOutcome)


def test_remote_source_reports_failure_when_everything_is_down():
    def handler(request):
        raise httpx.ReadTimeout('slow', request=request)

    outcome = RemotePermissionSource(_client(handler)).lookup('sm@x.com')
    assert isinstance(outcome, LookupFailed)
