from flask import Blueprint, request, abort, current_app
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity
from sqlalchemy import select

from serviceops import get_db
from serviceops.models.authz import Account
from serviceops.decorators.auth import EMPTY_ACCESS_MESSAGE, current_gate, current_identity

auth_bp = Blueprint('auth', __name__)


@auth_bp.post('/login')
def login():
    data = request.json or {}
    email = data.get('email'); password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    session = get_db()
    account = session.execute(select(Account).where(Account.email == email)).scalar_one_or_none()
    if not account or not account.verify_password(password):
        abort(401, description='invalid credentials')
    # Permissions are resolved per request, not baked into the token
    claims = {
        'account_type': account.account_type,
        'city': account.city,
        'name': account.name,
    }
    token = create_access_token(identity=account.email, additional_claims=claims)
    return {'access_token': token}


@auth_bp.get('/me')
@jwt_required()
def me():
    identity = current_identity()
    resolver = current_app.extensions['permission_resolver']
    resolved = current_gate().resolved
    body = {
        'email': identity.email,
        'name': identity.name,
        'account_type': identity.account_type,
        'city': identity.city,
        'provisional_permissions': sorted(resolver.provisional(identity).permissions),
        **resolved.as_dict(),
    }
    if resolved.is_empty:
        body['message'] = EMPTY_ACCESS_MESSAGE
    return body


@auth_bp.post('/permissions/refresh')
@jwt_required()
def refresh_permissions():
    """Drop the caller's cached set and resolve again."""
    current_app.extensions['permission_resolver'].invalidate(get_jwt_identity())
    return current_gate().resolved.as_dict()
