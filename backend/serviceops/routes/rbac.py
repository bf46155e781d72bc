from flask import Blueprint, request, abort
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from serviceops.config.settings import normalize_pagination
from serviceops.decorators.audit import audit_log
from serviceops.decorators.auth import MISSING_PERMISSION_MESSAGE, current_gate, require_permissions
from serviceops.services import rbac_store
from serviceops.services.rbac_store import permission_to_dict, role_to_dict, user_to_dict

rbac_bp = Blueprint('rbac', __name__)


def _ok(data, status: int = 200, **extra):
    return {'success': True, 'data': data, **extra}, status


def _int_field(data: dict, *names: str) -> int:
    for name in names:
        if data.get(name) is not None:
            try:
                return int(data[name])
            except (TypeError, ValueError):
                abort(400, description=f'{name} must be an integer')
    abort(400, description=f'{names[0]} required')


def _require_self_or_admin(email: str):
    verify_jwt_in_request()
    if get_jwt_identity() == email:
        return
    if not current_gate().has_permission('manage_users'):
        abort(403, description=MISSING_PERMISSION_MESSAGE)


# --- Permissions ---

@rbac_bp.get('/permissions')
@require_permissions('manage_roles')
def list_permissions():
    return _ok([permission_to_dict(p) for p in rbac_store.list_permissions()])


@rbac_bp.post('/permissions')
@require_permissions('manage_roles')
@audit_log('PERMISSION.CREATE', entity='Permission', entity_id_key='id', meta_keys=['permission_key'])
def create_permission():
    data = request.json or {}
    perm = rbac_store.create_permission(data.get('permission_key') or data.get('key'), data.get('name'))
    return _ok(permission_to_dict(perm), 201)


@rbac_bp.delete('/permissions/<int:permission_id>')
@require_permissions('manage_roles')
@audit_log('PERMISSION.DELETE', entity='Permission', entity_id_arg='permission_id')
def delete_permission(permission_id: int):
    rbac_store.delete_permission(permission_id)
    return _ok({'id': permission_id})


@rbac_bp.post('/seed-permissions')
@require_permissions('manage_roles')
@audit_log('PERMISSION.SEED', entity='Permission', meta_keys=['created', 'total'])
def seed_permissions():
    created, total = rbac_store.seed_permissions()
    return _ok({'created': created, 'total': total})


# --- Roles ---

@rbac_bp.get('/roles')
@require_permissions('manage_roles')
def list_roles():
    return _ok([role_to_dict(r) for r in rbac_store.list_roles()])


@rbac_bp.post('/roles')
@require_permissions('manage_roles')
@audit_log('ROLE.CREATE', entity='Role', entity_id_key='id', meta_keys=['name'])
def create_role():
    data = request.json or {}
    role = rbac_store.create_role(data.get('name'), data.get('desc') or data.get('description') or '')
    return _ok(role_to_dict(role), 201)


@rbac_bp.put('/roles/<int:role_id>/permissions')
@require_permissions('manage_roles')
@audit_log(
    'ROLE.PERM.REPLACE',
    entity='Role',
    entity_id_key='id',
    meta_builder=lambda data, rv, a, kw: {'count': len(data.get('permissions', [])), 'version': data.get('version')},
)
def replace_role_permissions(role_id: int):
    data = request.json or {}
    ids = data.get('permissionIds', data.get('permission_ids'))
    if not isinstance(ids, list):
        abort(400, description='permissionIds must be a list')
    expected = _int_field(data, 'version') if data.get('version') is not None else None
    role = rbac_store.replace_role_permissions(role_id, ids, expected)
    return _ok(role_to_dict(role))


@rbac_bp.delete('/roles/<int:role_id>')
@require_permissions('manage_roles')
@audit_log('ROLE.DELETE', entity='Role', entity_id_key='id', meta_keys=['assignments_removed'])
def delete_role(role_id: int):
    removed = rbac_store.delete_role(role_id)
    return _ok({'id': role_id, 'assignments_removed': removed})


@rbac_bp.post('/role-permissions')
@require_permissions('manage_roles')
@audit_log('ROLE.PERM.LINK', entity='Role', entity_id_key='roleId', meta_keys=['permissionId'])
def link_role_permission():
    data = request.json or {}
    role_id = _int_field(data, 'roleId', 'role_id')
    permission_id = _int_field(data, 'permissionId', 'permission_id')
    link, created = rbac_store.link_permission(role_id, permission_id)
    return _ok({'id': link.id, 'roleId': role_id, 'permissionId': permission_id}, 201 if created else 200)


@rbac_bp.delete('/role-permissions/<int:role_id>/<int:permission_id>')
@require_permissions('manage_roles')
@audit_log('ROLE.PERM.UNLINK', entity='Role', entity_id_key='roleId', meta_keys=['permissionId'])
def unlink_role_permission(role_id: int, permission_id: int):
    rbac_store.unlink_permission(role_id, permission_id)
    return _ok({'roleId': role_id, 'permissionId': permission_id})


# --- Users & assignments ---

@rbac_bp.get('/users')
@require_permissions('manage_users')
def list_users():
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))
    users, total = rbac_store.list_users(limit, offset)
    return _ok(
        [user_to_dict(u) for u in users],
        pagination={'total': total, 'limit': limit, 'offset': offset, 'returned': len(users)},
    )


@rbac_bp.post('/users')
@require_permissions('manage_users')
@audit_log('USER.CREATE', entity='User', entity_id_key='id', meta_keys=['email', 'username'])
def create_user():
    data = request.json or {}
    user = rbac_store.create_user(
        data.get('email'),
        name=data.get('name'),
        username=data.get('username'),
        org_id=data.get('org_id'),
        phone=data.get('phone'),
        address=data.get('address'),
    )
    return _ok(user_to_dict(user), 201)


@rbac_bp.get('/users/<int:user_id>')
@require_permissions('manage_users')
def get_user(user_id: int):
    return _ok(user_to_dict(rbac_store.get_user(user_id), with_roles=True))


@rbac_bp.get('/users/<int:user_id>/permissions')
@require_permissions('manage_users')
def get_user_permissions(user_id: int):
    user = rbac_store.get_user(user_id)
    return _ok({'user': user_to_dict(user), 'permissions': [permission_to_dict(p) for p in rbac_store.user_permissions(user)]})


@rbac_bp.get('/users/<int:user_id>/permissions/<permission_key>')
@require_permissions('manage_users')
def check_user_permission(user_id: int, permission_key: str):
    user = rbac_store.get_user(user_id)
    held = any(p.key == permission_key for p in rbac_store.user_permissions(user))
    return _ok({'userId': user.id, 'permission_key': permission_key, 'hasPermission': held})


@rbac_bp.post('/user-roles')
@require_permissions('manage_users')
@audit_log('USER.ROLE.ASSIGN', entity='User', entity_id_key='userId', meta_keys=['roleId'])
def assign_user_role():
    data = request.json or {}
    user_id = _int_field(data, 'userId', 'user_id')
    role_id = _int_field(data, 'roleId', 'role_id')
    link, created = rbac_store.assign_role(user_id, role_id)
    return _ok({'id': link.id, 'userId': user_id, 'roleId': role_id}, 201 if created else 200)


@rbac_bp.delete('/user-roles/<int:user_id>/<int:role_id>')
@require_permissions('manage_users')
@audit_log('USER.ROLE.REMOVE', entity='User', entity_id_key='userId', meta_keys=['roleId'])
def remove_user_role(user_id: int, role_id: int):
    rbac_store.remove_role(user_id, role_id)
    return _ok({'userId': user_id, 'roleId': role_id})


@rbac_bp.get('/users/email/<path:email>/permissions')
def get_user_permissions_by_email(email: str):
    _require_self_or_admin(email)
    user = rbac_store.find_user_by_email(email)
    if user is None:
        abort(404, description='User not found')
    return _ok({'user': user_to_dict(user), 'permissions': [permission_to_dict(p) for p in rbac_store.user_permissions(user)]})


@rbac_bp.get('/users/email/<path:email>/roles')
def get_user_roles_by_email(email: str):
    _require_self_or_admin(email)
    user = rbac_store.find_user_by_email(email)
    if user is None:
        abort(404, description='User not found')
    return _ok({'user': user_to_dict(user), 'roles': [role_to_dict(ur.role) for ur in user.user_roles]})


@rbac_bp.get('/user-roles-summary')
@require_permissions('manage_users')
def user_roles_summary():
    return _ok(rbac_store.user_roles_summary())
