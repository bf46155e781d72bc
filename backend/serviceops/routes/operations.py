from flask import Blueprint, request, abort

from serviceops.decorators.audit import audit_log
from serviceops.decorators.auth import current_identity, require_any_permission
from serviceops.services import operations

ops_bp = Blueprint('operations', __name__)


@ops_bp.post('/ro-billing')
@require_any_permission('upload', 'can_upload_ro_sheet')
@audit_log('RO_BILLING.UPLOAD', entity='RoBilling', entity_id_key='city', meta_keys=['rows', 'replace'])
def upload_ro_billing():
    data = request.json or {}
    identity = current_identity()
    city = data.get('city') or identity.city
    if not city:
        abort(400, description='city required')
    operations.assert_city_access(identity, city)
    rows = data.get('rows')
    if not isinstance(rows, list):
        abort(400, description='rows must be a list')
    replace = data.get('replace', True) is not False
    count = operations.ingest_ro_billing(city, rows, identity.email, replace=replace)
    return {'city': city, 'rows': count, 'replace': replace}, 201


@ops_bp.get('/advisors')
@require_any_permission('gm_targets', 'target_report', 'can_assign_target_to_sm')
def list_advisors():
    identity = current_identity()
    city = request.args.get('city') or identity.city
    if not city:
        abort(400, description='city required')
    operations.assert_city_access(identity, city)
    return {'city': city, 'advisors': operations.advisor_roster(city)}
