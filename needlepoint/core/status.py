from __future__ import annotations
"""Node generation status machine.

``pending → generating → {complete | error}``. A finished (or validator-flagged)
node only goes back to ``pending`` through a fresh dispatch, which then moves
straight on to ``generating``; nothing skips ``generating``.
"""
from typing import Dict, FrozenSet

from .errors import InvalidTransitionError
from .model import CodeNode, NodeStatus

__all__ = [
    "TRANSITIONS",
    "can_transition",
    "transition",
    "begin_generation",
    "complete_generation",
    "fail_generation",
]

S = NodeStatus

TRANSITIONS: Dict[NodeStatus, FrozenSet[NodeStatus]] = {
    S.PENDING: frozenset({S.GENERATING}),
    S.GENERATING: frozenset({S.COMPLETE, S.ERROR}),
    S.COMPLETE: frozenset({S.PENDING}),
    S.ERROR: frozenset({S.PENDING}),
    S.WARNING: frozenset({S.PENDING}),
}


def can_transition(current: NodeStatus, target: NodeStatus) -> bool:
    return target in TRANSITIONS[current]


def transition(node: CodeNode, target: NodeStatus) -> None:
    """Move *node* to *target* or raise :class:`InvalidTransitionError`."""
    if not can_transition(node.status, target):
        raise InvalidTransitionError(node.id, node.status.value, target.value)
    node.status = target


def begin_generation(node: CodeNode) -> None:
    """Dispatch: re-enter at ``pending`` when needed, then ``generating``."""
    if node.status is not S.PENDING:
        transition(node, S.PENDING)
    transition(node, S.GENERATING)


def complete_generation(node: CodeNode, content: str) -> None:
    transition(node, S.COMPLETE)
    node.generated_code = content
    node.error_message = None


def fail_generation(node: CodeNode, message: str) -> None:
    # generated_code from an earlier run stays in place
    transition(node, S.ERROR)
    node.error_message = message
