import pytest

from serviceops.services.errors import ValidationFailed
from serviceops.utils.fsm import TransitionValidator


def test_transition_validator_allows_valid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    assert fsm.assert_can_transition('A', 'B') is True


def test_transition_validator_blocks_invalid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()}, field_name='distribution')
    with pytest.raises(ValidationFailed) as exc:
        fsm.assert_can_transition('A', 'C')
    assert exc.value.status == 400
    assert 'distribution' in exc.value.detail


def test_unknown_state_has_no_transitions():
    fsm = TransitionValidator({'A': {'B'}})
    assert not fsm.can_transition('Z', 'A')
