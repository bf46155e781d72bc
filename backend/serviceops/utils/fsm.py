from __future__ import annotations
"""Finite state machine helper for lifecycle checks.

Usage:
    from serviceops.utils.fsm import TransitionValidator
    PASS_FSM = TransitionValidator({
        'OPEN': {'ASSIGNING', 'DISTRIBUTED'},
        'ASSIGNING': {'ASSIGNING', 'DISTRIBUTED'},
        'DISTRIBUTED': set(),
    }, field_name='distribution')
    PASS_FSM.assert_can_transition(current, target)

Raises ValidationFailed (400) if the transition is not allowed.
"""
from typing import Dict, Set

from serviceops.services.errors import ValidationFailed


class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status'):
        self.graph = graph
        self.field_name = field_name

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.graph.get(current, set())

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            raise ValidationFailed(f'Invalid {self.field_name} transition {current} -> {target}')
        return True


__all__ = ['TransitionValidator']
