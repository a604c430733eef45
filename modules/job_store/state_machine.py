"""
Job status state machine.
"""

from shared.errors import InvalidStateTransitionError

ALLOWED_TRANSITIONS = {
    "pending": ["processing", "failed"],
    "processing": ["completed", "failed"],
    "completed": [],
    "failed": [],
}


def ensure_transition(current: str, target: str) -> None:
    """
    Validate a status change against the allowed edges.

    Raises:
        InvalidStateTransitionError: If current -> target is not an allowed edge
    """
    if current not in ALLOWED_TRANSITIONS:
        raise InvalidStateTransitionError(current, target, f"unknown state: {current}")
    if target not in ALLOWED_TRANSITIONS:
        raise InvalidStateTransitionError(current, target, f"unknown target state: {target}")

    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStateTransitionError(current, target)
