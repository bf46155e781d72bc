"""Ingestion-time normalisation of operational rows.

Work types arrive as free text ("Paid Service", "FREE SERVICE 2", "R&R",
"Running Repair"). They are classified once into a flag set so achievement
counting never re-parses strings. Advisor names are reduced to a matching key.
"""
from __future__ import annotations
import enum
import re


class WorkCategory(enum.IntFlag):
    NONE = 0
    PAID = 1
    FREE = 2
    RUNNING_REPAIR = 4


# "rr" and "running" only as whole words: "Warranty"/"Carry" must not count
_RUNNING_REPAIR = re.compile(r'\br\s*&\s*r\b|\br and r\b|\brr\b|\brunning\b')


def classify_work_type(work_type) -> WorkCategory:
    text = ' '.join(str(work_type or '').lower().split())
    category = WorkCategory.NONE
    if 'paid' in text:
        category |= WorkCategory.PAID
    if 'free' in text:
        category |= WorkCategory.FREE
    if _RUNNING_REPAIR.search(text):
        category |= WorkCategory.RUNNING_REPAIR
    return category


def advisor_key(name) -> str:
    """Case-folded, whitespace-collapsed advisor name used for matching."""
    return ' '.join(str(name or '').split()).casefold()


__all__ = ['WorkCategory', 'classify_work_type', 'advisor_key']
