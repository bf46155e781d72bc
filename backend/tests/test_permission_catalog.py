import pytest

from serviceops.constants.permissions import (
    ACCOUNT_TYPES, ACCOUNT_TYPE_DEFAULTS, GENERAL_MANAGER, SERVICE_ADVISOR, SERVICE_MANAGER,
    PERMISSION_CATALOG, ROLE_PRESETS, get_defaults,
)


@pytest.mark.parametrize('account_type', ACCOUNT_TYPES)
def test_defaults_are_subset_of_catalog(account_type):
    assert get_defaults(account_type) <= set(PERMISSION_CATALOG)


def test_unknown_account_type_gets_nothing():
    assert get_defaults('regional_director') == frozenset()
    assert get_defaults(None) == frozenset()


def test_defaults_are_deterministic_and_immutable():
    assert get_defaults(SERVICE_MANAGER) == get_defaults(SERVICE_MANAGER)
    assert isinstance(get_defaults(SERVICE_MANAGER), frozenset)


def test_general_manager_is_superset_with_admin_keys():
    gm = get_defaults(GENERAL_MANAGER)
    assert {'manage_roles', 'manage_users', 'gm_targets'} <= gm
    assert 'can_access_gm_dashboard' in gm
    advisor = get_defaults(SERVICE_ADVISOR)
    assert advisor == {'can_access_sa_dashboard', 'can_access_overview'}
    assert not advisor & {'manage_roles', 'manage_users'}


def test_role_presets_reference_catalog_keys():
    for role_name, keys in ROLE_PRESETS.items():
        concrete = [k for k in keys if k != '*']
        missing = [k for k in concrete if k not in PERMISSION_CATALOG]
        assert not missing, f'{role_name} references unknown keys {missing}'


def test_every_account_type_has_defaults_entry():
    assert set(ACCOUNT_TYPE_DEFAULTS) == set(ACCOUNT_TYPES)
