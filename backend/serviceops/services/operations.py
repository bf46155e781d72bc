from __future__ import annotations
import logging
from typing import Iterable, List, Optional

from flask import abort
from sqlalchemy import delete, or_, select

from serviceops import get_db
from serviceops.constants.permissions import GENERAL_MANAGER
from serviceops.models.targets import RoBillingRow
from serviceops.services.errors import ValidationFailed
from serviceops.services.targets import unique_advisors
from serviceops.services.work_types import advisor_key, classify_work_type

log = logging.getLogger(__name__)

ADVISOR_FIELDS = ('advisorName', 'serviceAdvisor', 'advisor_name')
LABOUR_FIELDS = ('labourAmt', 'labour_amt')
PART_FIELDS = ('partAmt', 'part_amt')
WORK_TYPE_FIELDS = ('workType', 'work_type')
BILL_DATE_FIELDS = ('billDate', 'bill_date')


def _first(row: dict, names, default=None):
    for name in names:
        if row.get(name) not in (None, ''):
            return row[name]
    return default


def _amount(value, field: str, index: int) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        raise ValidationFailed(f'row {index}: {field} must be a number')


def assert_city_access(identity, city: Optional[str]):
    """City-bound accounts only see their own city; GMs see all."""
    if identity.account_type == GENERAL_MANAGER or not identity.city:
        return
    if city and city != identity.city:
        abort(403, description='City access denied')


def ingest_ro_billing(city: str, rows: Iterable[dict], uploaded_by: str, replace: bool = True) -> int:
    """Store parsed RO billing rows for a city, classifying work types once.

    With ``replace`` only the months present in the upload are swapped out;
    rows already stored for other months are kept. Undated stored rows are
    replaced only when the upload itself carries undated rows.
    """
    if not city:
        raise ValidationFailed('city required')
    session = get_db()
    staged: List[RoBillingRow] = []
    for i, row in enumerate(rows):
        if not isinstance(row, dict):
            raise ValidationFailed(f'row {i}: expected an object')
        name = _first(row, ADVISOR_FIELDS)
        if not name or not advisor_key(name):
            raise ValidationFailed(f'row {i}: advisor name required')
        work_type = str(_first(row, WORK_TYPE_FIELDS, ''))
        bill_date = _first(row, BILL_DATE_FIELDS)
        staged.append(RoBillingRow(
            city=city,
            advisor_name=' '.join(str(name).split()),
            advisor_key=advisor_key(name),
            labour_amt=_amount(_first(row, LABOUR_FIELDS), 'labourAmt', i),
            part_amt=_amount(_first(row, PART_FIELDS), 'partAmt', i),
            work_type=work_type,
            work_category=int(classify_work_type(work_type)),
            bill_date=str(bill_date)[:10] if bill_date else None,
            uploaded_by=uploaded_by,
        ))
    months = sorted({r.bill_date[:7] for r in staged if r.bill_date})
    if replace:
        scope = [RoBillingRow.bill_date.like(f'{m}%') for m in months]
        if any(r.bill_date is None for r in staged):
            scope.append(RoBillingRow.bill_date.is_(None))
        if scope:
            session.execute(delete(RoBillingRow).where(RoBillingRow.city == city, or_(*scope)))
    session.add_all(staged)
    session.commit()
    log.info('ingested %d RO billing row(s) for %s months=%s (replace=%s)', len(staged), city, months, replace)
    return len(staged)


def rows_for(city: str, month: Optional[str] = None, advisor: Optional[str] = None) -> List[RoBillingRow]:
    """Rows for a city; with ``month`` only that month's bills (undated rows always count)."""
    q = select(RoBillingRow).where(RoBillingRow.city == city)
    if month:
        q = q.where(or_(RoBillingRow.bill_date.is_(None), RoBillingRow.bill_date.like(f'{month}%')))
    if advisor is not None:
        q = q.where(RoBillingRow.advisor_key == advisor_key(advisor))
    return get_db().execute(q.order_by(RoBillingRow.id.asc())).scalars().all()


def advisor_roster(city: str) -> List[str]:
    """Distinct advisors seen in the city's RO billing rows."""
    names = get_db().execute(
        select(RoBillingRow.advisor_name).where(RoBillingRow.city == city).order_by(RoBillingRow.id.asc())
    ).scalars()
    return unique_advisors(names)
