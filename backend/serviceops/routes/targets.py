from datetime import date

from flask import Blueprint, request, abort
from sqlalchemy import delete, select

from serviceops import get_db
from serviceops.constants.permissions import GENERAL_MANAGER
from serviceops.decorators.audit import audit_log
from serviceops.decorators.auth import current_identity, require_any_permission, require_permissions
from serviceops.models.targets import AdvisorTarget, CityTarget
from serviceops.services import operations
from serviceops.services.errors import NotConfigured
from serviceops.services.work_types import advisor_key
from serviceops.services.targets import (
    DistributionPass,
    TargetMetrics,
    canonical_month,
    compute_achievement,
    progress,
    remaining_working_days,
)

targets_bp = Blueprint('targets', __name__)


def _city_month(source) -> tuple:
    identity = current_identity()
    city = source.get('city') or identity.city
    month = source.get('month')
    if not city or not month:
        abort(400, description='city & month required')
    month = canonical_month(month)
    operations.assert_city_access(identity, city)
    return city, month


def _latest_city_target(city: str, month: str):
    return get_db().execute(
        select(CityTarget)
        .where(CityTarget.city == city, CityTarget.month == month)
        .order_by(CityTarget.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def _city_target_to_dict(t: CityTarget):
    return {
        'id': t.id,
        'city': t.city,
        'month': t.month,
        **TargetMetrics.from_record(t).as_dict(),
        'created_by': t.created_by,
        'created_at': t.created_at.isoformat() if t.created_at else None,
    }


def _advisor_target_to_dict(t: AdvisorTarget):
    return {
        'id': t.id,
        'city': t.city,
        'month': t.month,
        'advisor_name': t.advisor_name,
        'mode': t.mode,
        **TargetMetrics.from_record(t).as_dict(),
        'achieved': t.achieved_snapshot or {},
        'created_by': t.created_by,
    }


# --- City targets (append-only, newest wins) ---

@targets_bp.post('/city')
@require_permissions('gm_targets')
@audit_log('TARGET.CITY.SET', entity='CityTarget', entity_id_key='id', meta_keys=['city', 'month'])
def set_city_target():
    data = request.json or {}
    city, month = _city_month(data)
    metrics = TargetMetrics.from_dict(data)
    target = metrics.apply_to(CityTarget(city=city, month=month, created_by=current_identity().email))
    session = get_db()
    session.add(target)
    session.commit()
    return _city_target_to_dict(target), 201


@targets_bp.get('/city')
@require_any_permission('gm_targets', 'target_report')
def list_city_targets():
    identity = current_identity()
    q = select(CityTarget).order_by(CityTarget.id.desc())
    city = request.args.get('city')
    if city:
        operations.assert_city_access(identity, city)
        q = q.where(CityTarget.city == city)
    elif identity.city and identity.account_type != GENERAL_MANAGER:
        q = q.where(CityTarget.city == identity.city)
    if request.args.get('month'):
        q = q.where(CityTarget.month == request.args['month'])
    rows = get_db().execute(q).scalars().all()
    if request.args.get('history') not in ('1', 'true'):
        latest = {}
        for t in rows:
            latest.setdefault((t.city, t.month), t)
        rows = list(latest.values())
    return {'data': [_city_target_to_dict(t) for t in rows]}


@targets_bp.get('/city/progress')
@require_any_permission('gm_targets', 'target_report')
def city_progress():
    city, month = _city_month(request.args)
    target = _latest_city_target(city, month)
    if target is None:
        raise NotConfigured(f'No target set for {city} {month}')
    achieved = compute_achievement(operations.rows_for(city, month))
    days = remaining_working_days(date.today(), month)
    return {
        'city': city,
        'month': month,
        'remaining_working_days': days,
        'metrics': progress(TargetMetrics.from_record(target), achieved, days),
    }


# --- Advisor distribution ---

@targets_bp.post('/distribute')
@require_any_permission('gm_targets', 'can_assign_target_to_sm')
@audit_log(
    'TARGET.DISTRIBUTE',
    entity='CityTarget',
    meta_builder=lambda data, rv, a, kw: {
        'city': data.get('city'), 'month': data.get('month'), 'mode': data.get('mode'),
        'advisors': len(data.get('targets', [])),
    },
)
def distribute():
    data = request.json or {}
    city, month = _city_month(data)
    mode = data.get('mode', AdvisorTarget.MODE_AUTOMATIC)
    if mode not in AdvisorTarget.ALL_MODES:
        abort(400, description=f'mode must be one of {list(AdvisorTarget.ALL_MODES)}')
    roster = operations.advisor_roster(city)
    if not roster:
        raise NotConfigured(f'No advisors found for {city}; upload RO billing data first')
    dist = DistributionPass(city, month, roster)
    if mode == AdvisorTarget.MODE_AUTOMATIC:
        target = _latest_city_target(city, month)
        if target is None:
            raise NotConfigured(f'No target set for {city} {month}')
        dist.automatic(TargetMetrics.from_record(target))
    else:
        assignments = data.get('assignments')
        if not isinstance(assignments, list) or not assignments:
            abort(400, description='assignments required for manual distribution')
        for entry in assignments:
            if not isinstance(entry, dict):
                abort(400, description='each assignment must be an object')
            dist.assign(entry.get('advisor') or '', TargetMetrics.from_dict(entry))
        dist.finish()

    session = get_db()
    # a new pass for the same city/month replaces the previous one
    session.execute(delete(AdvisorTarget).where(AdvisorTarget.city == city, AdvisorTarget.month == month))
    created_by = current_identity().email
    saved = []
    for key, (name, metrics) in dist.assignments.items():
        achieved = compute_achievement(operations.rows_for(city, month, advisor=name))
        record = metrics.apply_to(AdvisorTarget(
            city=city, month=month, advisor_name=name, advisor_key=key, mode=mode,
            achieved_snapshot=achieved.as_dict(), created_by=created_by,
        ))
        session.add(record)
        saved.append(record)
    session.commit()
    return {
        'city': city,
        'month': month,
        'mode': mode,
        'targets': [_advisor_target_to_dict(t) for t in saved],
        'remaining': dist.remaining(),
    }, 201


@targets_bp.get('/advisors')
@require_any_permission('gm_targets', 'target_report')
def advisor_targets():
    city, month = _city_month(request.args)
    q = select(AdvisorTarget).where(AdvisorTarget.city == city, AdvisorTarget.month == month)
    advisor = request.args.get('advisor')
    if advisor:
        q = q.where(AdvisorTarget.advisor_key == advisor_key(advisor))
    days = remaining_working_days(date.today(), month)
    out = []
    for t in get_db().execute(q.order_by(AdvisorTarget.id.asc())).scalars():
        achieved = compute_achievement(operations.rows_for(city, month, advisor=t.advisor_name))
        item = _advisor_target_to_dict(t)
        item['progress'] = progress(TargetMetrics.from_record(t), achieved, days)
        out.append(item)
    return {'city': city, 'month': month, 'remaining_working_days': days, 'data': out}
