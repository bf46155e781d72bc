"""Permission catalog and account-type defaults.

Keys are opaque and stable: never rename a key that roles already reference,
add a new one instead. Default sets must stay subsets of PERMISSION_CATALOG.
"""
from __future__ import annotations
from typing import Dict, FrozenSet, List

GENERAL_MANAGER = 'general_manager'
SERVICE_MANAGER = 'service_manager'
SERVICE_ADVISOR = 'service_advisor'

ACCOUNT_TYPES = [GENERAL_MANAGER, SERVICE_MANAGER, SERVICE_ADVISOR]

# Highest-privilege account type: keeps its defaults while unconfigured so a
# fresh deployment is never locked out.
BOOTSTRAP_ACCOUNT_TYPE = GENERAL_MANAGER

PERMISSION_CATALOG: Dict[str, str] = {
    # Dashboards
    'dashboard': 'Dashboard',
    'overview': 'Overview',
    'ro_billing_dashboard': 'RO Billing Dashboard',
    'operations_dashboard': 'Operations Dashboard',
    'warranty_dashboard': 'Warranty Dashboard',
    'service_booking_dashboard': 'Service Booking Dashboard',
    'can_access_gm_dashboard': 'GM Dashboard',
    'can_access_sm_dashboard': 'SM Dashboard',
    'can_access_sa_dashboard': 'SA Dashboard',
    'can_access_overview': 'Overview Access',
    'can_access_bodyshop': 'Bodyshop Access',
    # Uploads
    'upload': 'Upload',
    'can_upload_ro_sheet': 'Upload RO Sheet',
    # Reports
    'ro_billing_report': 'RO Billing Report',
    'operations_report': 'Operations Report',
    'warranty_report': 'Warranty Report',
    'service_booking_report': 'Service Booking Report',
    'target_report': 'Target Report',
    # Generic data actions
    'create': 'Create',
    'read': 'Read',
    'update': 'Update',
    'delete': 'Delete',
    # Targets & administration
    'gm_targets': 'GM Targets',
    'can_assign_target_to_sm': 'Assign Target To SM',
    'manage_users': 'Manage Users',
    'manage_roles': 'Manage Roles',
    'export_data': 'Export Data',
    'import_data': 'Import Data',
}

_DASHBOARD_READS = [
    'ro_billing_dashboard',
    'operations_dashboard',
    'warranty_dashboard',
    'service_booking_dashboard',
]

ACCOUNT_TYPE_DEFAULTS: Dict[str, FrozenSet[str]] = {
    GENERAL_MANAGER: frozenset([
        'can_access_gm_dashboard',
        'can_access_overview',
        'can_access_bodyshop',
        'can_upload_ro_sheet',
        'can_assign_target_to_sm',
        *_DASHBOARD_READS,
        # administrative keys so an unconfigured GM can seed the store
        'gm_targets',
        'manage_users',
        'manage_roles',
    ]),
    SERVICE_MANAGER: frozenset([
        'can_access_sm_dashboard',
        'can_access_overview',
        'can_upload_ro_sheet',
        *_DASHBOARD_READS,
    ]),
    SERVICE_ADVISOR: frozenset([
        'can_access_sa_dashboard',
        'can_access_overview',
    ]),
}


def get_defaults(account_type) -> FrozenSet[str]:
    """Default capability set for an account type; unknown types get nothing."""
    return ACCOUNT_TYPE_DEFAULTS.get(account_type, frozenset())


def all_permission_keys() -> List[str]:
    return list(PERMISSION_CATALOG.keys())


# Seeded roles. Names are the persisted role names (case-sensitive).
ROLE_PRESETS: Dict[str, List[str]] = {
    'General Manager': ['*'],
    'Service Manager': [
        'dashboard', 'overview', 'can_access_sm_dashboard', 'can_access_overview',
        *_DASHBOARD_READS,
        'upload', 'can_upload_ro_sheet',
        'ro_billing_report', 'operations_report', 'warranty_report', 'service_booking_report',
        'target_report', 'read', 'export_data',
    ],
    'Service Advisor': [
        'dashboard', 'overview', 'can_access_sa_dashboard', 'can_access_overview',
        'target_report', 'read',
    ],
}

ACCOUNT_TYPE_ROLE_PRESET = {
    GENERAL_MANAGER: 'General Manager',
    SERVICE_MANAGER: 'Service Manager',
    SERVICE_ADVISOR: 'Service Advisor',
}

__all__ = [
    'GENERAL_MANAGER', 'SERVICE_MANAGER', 'SERVICE_ADVISOR', 'ACCOUNT_TYPES', 'BOOTSTRAP_ACCOUNT_TYPE',
    'PERMISSION_CATALOG', 'ACCOUNT_TYPE_DEFAULTS', 'get_defaults', 'all_permission_keys',
    'ROLE_PRESETS', 'ACCOUNT_TYPE_ROLE_PRESET',
]
