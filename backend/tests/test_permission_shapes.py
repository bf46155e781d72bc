import pytest

from serviceops.services.permission_shapes import (
    UnrecognizedShape, extract_permission_keys, extract_summary_users, role_permission_keys,
)


@pytest.mark.parametrize('payload', [
    {'permissions': [{'permission_key': 'read'}, {'permission_key': 'upload'}]},
    {'success': True, 'data': {'user': {'email': 'a@x'}, 'permissions': [{'permission_key': 'read'}, {'permissionKey': 'upload'}]}},
    {'data': [{'key': 'read'}, 'upload']},
    ['read', {'permission_key': 'upload'}],
])
def test_supported_envelopes(payload):
    assert extract_permission_keys(payload) == ['read', 'upload']


def test_duplicates_collapse_in_first_seen_order():
    assert extract_permission_keys(['upload', 'read', 'upload']) == ['upload', 'read']


def test_empty_permission_list_is_valid():
    assert extract_permission_keys({'success': True, 'data': {'user': {}, 'permissions': []}}) == []


def test_items_without_a_key_are_skipped():
    assert extract_permission_keys([{'name': 'Read'}, {'key': ''}, 42, 'read']) == ['read']


@pytest.mark.parametrize('payload', [None, 'read', {'success': True}, {'data': {'user': {}}}])
def test_unrecognized_shapes_raise(payload):
    with pytest.raises(UnrecognizedShape):
        extract_permission_keys(payload)


def test_summary_users_and_role_keys():
    payload = {'success': True, 'data': {'allUsers': [
        {'email': 'a@x', 'roles': [
            {'name': 'R1', 'permissions': [{'permission_key': 'read'}]},
            {'name': 'R2', 'rolePermissions': [{'permission': {'permission_key': 'upload'}}]},
        ]},
    ], 'usersWithRoles': [], 'summary': {}}}
    users = extract_summary_users(payload)
    assert users[0]['email'] == 'a@x'
    keys = [k for role in users[0]['roles'] for k in role_permission_keys(role)]
    assert keys == ['read', 'upload']


def test_summary_without_user_list_raises():
    with pytest.raises(UnrecognizedShape):
        extract_summary_users({'data': {'summary': {}}})
