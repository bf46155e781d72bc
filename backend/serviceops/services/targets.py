"""Target distribution and achievement arithmetic.

Pure functions and small value types; persistence lives in the targets routes.
"""
from __future__ import annotations
import calendar
import math
from collections import OrderedDict
from dataclasses import asdict, dataclass, fields
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from serviceops.services.errors import ValidationFailed
from serviceops.services.work_types import WorkCategory, advisor_key
from serviceops.utils.fsm import TransitionValidator

METRICS = ('labour', 'parts', 'total_vehicles', 'paid_service', 'free_service', 'rr')
COUNT_METRICS = ('total_vehicles', 'paid_service', 'free_service', 'rr')


@dataclass
class TargetMetrics:
    labour: float = 0
    parts: float = 0
    total_vehicles: int = 0
    paid_service: int = 0
    free_service: int = 0
    rr: int = 0

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'TargetMetrics':
        data = data or {}
        values = {}
        for name in METRICS:
            raw = data.get(name, 0)
            try:
                value = float(raw) if raw not in (None, '') else 0.0
            except (TypeError, ValueError):
                raise ValidationFailed(f'{name} must be a number')
            if value < 0 or math.isnan(value) or math.isinf(value):
                raise ValidationFailed(f'{name} must be a non-negative number')
            values[name] = int(value) if name in COUNT_METRICS and value.is_integer() else value
        return cls(**values)

    @classmethod
    def from_record(cls, record) -> 'TargetMetrics':
        return cls(**{name: getattr(record, name) for name in METRICS})

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)

    def apply_to(self, record):
        for f in fields(self):
            setattr(record, f.name, getattr(self, f.name))
        return record


def round_half_up(value: float) -> int:
    # round() would send 12.5 to 12
    return int(math.floor(value + 0.5))


def distribute_automatic(city_target: TargetMetrics, advisors: Iterable[str]) -> 'OrderedDict[str, TargetMetrics]':
    """Equal split of every metric across advisors, each share rounded half-up.

    Remainders are not redistributed, so shares may not sum to the city total.
    """
    roster = unique_advisors(advisors)
    if not roster:
        raise ValidationFailed('No advisors to distribute to')
    n = len(roster)
    share = TargetMetrics(**{name: round_half_up(getattr(city_target, name) / n) for name in METRICS})
    return OrderedDict((name, TargetMetrics(**share.as_dict())) for name in roster)


def unique_advisors(names: Iterable[str]) -> List[str]:
    """Drop blanks and duplicates (by normalised key), keep first spelling and order."""
    seen = OrderedDict()
    for name in names:
        key = advisor_key(name)
        if key and key not in seen:
            seen[key] = ' '.join(str(name).split())
    return list(seen.values())


PASS_OPEN = 'OPEN'
PASS_ASSIGNING = 'ASSIGNING'
PASS_DISTRIBUTED = 'DISTRIBUTED'

PASS_FSM = TransitionValidator({
    PASS_OPEN: {PASS_ASSIGNING, PASS_DISTRIBUTED},
    PASS_ASSIGNING: {PASS_ASSIGNING, PASS_DISTRIBUTED},
    PASS_DISTRIBUTED: set(),
}, field_name='distribution')


class DistributionPass:
    """One distribution of a city's monthly target over its advisor roster.

    Automatic passes split evenly in one step. Manual passes take one target
    per advisor; an advisor already assigned in this pass is no longer
    selectable.
    """

    def __init__(self, city: str, month: str, roster: Iterable[str]):
        self.city = city
        self.month = month
        self.roster = unique_advisors(roster)
        self._roster_keys = {advisor_key(n): n for n in self.roster}
        self.state = PASS_OPEN
        self.mode: Optional[str] = None
        self.assignments: 'OrderedDict[str, Tuple[str, TargetMetrics]]' = OrderedDict()

    def _move(self, target: str):
        PASS_FSM.assert_can_transition(self.state, target)
        self.state = target

    def automatic(self, city_target: TargetMetrics):
        self._move(PASS_DISTRIBUTED)
        self.mode = 'automatic'
        for name, metrics in distribute_automatic(city_target, self.roster).items():
            self.assignments[advisor_key(name)] = (name, metrics)
        return self

    def assign(self, advisor: str, metrics: TargetMetrics):
        key = advisor_key(advisor)
        if key not in self._roster_keys:
            raise ValidationFailed(f"'{advisor}' is not an advisor of {self.city}")
        if key in self.assignments:
            raise ValidationFailed(f"'{advisor}' already has a target in this distribution")
        self._move(PASS_ASSIGNING)
        self.mode = 'manual'
        self.assignments[key] = (self._roster_keys[key], metrics)
        return self

    def remaining(self) -> List[str]:
        return [n for n in self.roster if advisor_key(n) not in self.assignments]

    def finish(self):
        if not self.assignments:
            raise ValidationFailed('Distribution has no assignments')
        self._move(PASS_DISTRIBUTED)
        return self

    @property
    def is_distributed(self) -> bool:
        return self.state == PASS_DISTRIBUTED


# --- achievement ---
def compute_achievement(rows) -> TargetMetrics:
    """Actuals from ingested RO rows (``labour_amt``, ``part_amt``, ``work_category``)."""
    achieved = TargetMetrics()
    for row in rows:
        achieved.labour += row.labour_amt or 0
        achieved.parts += row.part_amt or 0
        achieved.total_vehicles += 1
        category = WorkCategory(row.work_category or 0)
        if category & WorkCategory.PAID:
            achieved.paid_service += 1
        if category & WorkCategory.FREE:
            achieved.free_service += 1
        if category & WorkCategory.RUNNING_REPAIR:
            achieved.rr += 1
    return achieved


def parse_month(month: str) -> Tuple[int, int]:
    try:
        year_s, month_s = str(month).split('-')
        year, mon = int(year_s), int(month_s)
    except ValueError:
        raise ValidationFailed('month must be YYYY-MM')
    if not 1 <= mon <= 12 or len(year_s) != 4 or len(month_s) != 2:
        raise ValidationFailed('month must be YYYY-MM')
    return year, mon


def canonical_month(month: str) -> str:
    """Validated month as a zero-padded YYYY-MM string, safe as a bill_date prefix."""
    year, mon = parse_month(month)
    return f'{year:04d}-{mon:02d}'


def remaining_working_days(today: date, month: Optional[str] = None) -> int:
    """Days from ``today`` (inclusive) to month end, Sundays excluded, never below 1.

    For a future month every working day of that month counts; a past month
    has none left and floors to 1.
    """
    year, mon = parse_month(month) if month else (today.year, today.month)
    last = calendar.monthrange(year, mon)[1]
    if (year, mon) < (today.year, today.month):
        return 1
    start = today.day if (year, mon) == (today.year, today.month) else 1
    days = sum(1 for d in range(start, last + 1) if date(year, mon, d).weekday() != calendar.SUNDAY)
    return max(1, days)


def per_day_required(shortfall: float, working_days: int) -> int:
    return int(math.ceil(shortfall / max(1, working_days)))


def achievement_pct(achieved: float, target: float) -> float:
    if not target:
        return 0.0
    return round(achieved / target * 100, 1)


def progress(target: TargetMetrics, achieved: TargetMetrics, working_days: int) -> Dict[str, dict]:
    out = {}
    for name in METRICS:
        t = getattr(target, name)
        a = getattr(achieved, name)
        shortfall = max(0, t - a)
        out[name] = {
            'target': t,
            'achieved': a,
            'shortfall': shortfall,
            'per_day_required': per_day_required(shortfall, working_days),
            'achievement_pct': achievement_pct(a, t),
        }
    return out


__all__ = [
    'METRICS', 'TargetMetrics', 'round_half_up', 'distribute_automatic', 'unique_advisors', 'DistributionPass',
    'compute_achievement', 'parse_month', 'canonical_month', 'remaining_working_days', 'per_day_required',
    'achievement_pct', 'progress',
]
