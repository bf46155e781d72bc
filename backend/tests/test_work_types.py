import pytest

from serviceops.services.work_types import WorkCategory, advisor_key, classify_work_type


@pytest.mark.parametrize('text,expected', [
    ('Paid Service', WorkCategory.PAID),
    ('FREE SERVICE 2', WorkCategory.FREE),
    ('Running Repair', WorkCategory.RUNNING_REPAIR),
    ('R&R', WorkCategory.RUNNING_REPAIR),
    ('r & r', WorkCategory.RUNNING_REPAIR),
    ('R and R', WorkCategory.RUNNING_REPAIR),
    ('RR', WorkCategory.RUNNING_REPAIR),
    ('Paid  RR', WorkCategory.PAID | WorkCategory.RUNNING_REPAIR),
    ('Warranty', WorkCategory.NONE),
    ('Accidental', WorkCategory.NONE),
    ('', WorkCategory.NONE),
    (None, WorkCategory.NONE),
])
def test_classify_work_type(text, expected):
    assert classify_work_type(text) == expected


def test_rr_inside_a_word_does_not_count():
    assert not classify_work_type('Carry-in') & WorkCategory.RUNNING_REPAIR
    assert not classify_work_type('Warranty') & WorkCategory.RUNNING_REPAIR


def test_advisor_key_normalises_case_and_spacing():
    assert advisor_key('  Asha   Patil ') == advisor_key('asha patil') == 'asha patil'
    assert advisor_key(None) == ''
