"""
State machine enforcement for PaymentRequest.

PENDING is the only live state. APPROVED and REJECTED are terminal.
Raises AlreadyTerminalError when acting on a terminal request and
InvalidStateError for any other disallowed transition.
"""

from core.exceptions import AlreadyTerminalError, InvalidStateError

# Allowed transitions for PaymentRequest
PAYMENT_REQUEST_TRANSITIONS = {
    "PENDING": ["PENDING", "APPROVED", "REJECTED"],  # PENDING -> PENDING is partial approval
    "APPROVED": [],  # Terminal
    "REJECTED": [],  # Terminal
}

# Allowed transitions for funding of an approved request
FUNDING_TRANSITIONS = {
    "NOT_STARTED": ["IN_FLIGHT"],
    "IN_FLIGHT": ["SUCCEEDED", "FAILED"],
    "SUCCEEDED": [],
    "FAILED": [],
}


def _transitions_for(entity_type):
    if entity_type == "PaymentRequest":
        return PAYMENT_REQUEST_TRANSITIONS
    if entity_type == "Funding":
        return FUNDING_TRANSITIONS
    raise ValueError(f"Unknown entity_type: {entity_type}")


def validate_transition(entity_type, current_status, target_status):
    """
    Validate a state transition.

    Args:
        entity_type: 'PaymentRequest' or 'Funding'
        current_status: Current state
        target_status: Target state

    Returns:
        bool: True if transition is allowed

    Raises:
        AlreadyTerminalError: If the payment request is already decided
        InvalidStateError: If transition is disallowed
    """
    transitions = _transitions_for(entity_type)

    if current_status not in transitions:
        raise InvalidStateError(
            f"Invalid current status: {current_status}",
            {"entity_type": entity_type, "current_status": current_status},
        )

    allowed_targets = transitions[current_status]

    if not allowed_targets:
        details = {
            "entity_type": entity_type,
            "current_status": current_status,
            "target_status": target_status,
        }
        if entity_type == "PaymentRequest":
            raise AlreadyTerminalError(
                f"Payment request is already {current_status.lower()}", details
            )
        raise InvalidStateError(
            f"{entity_type} in state {current_status} is terminal and cannot transition",
            details,
        )

    if target_status not in allowed_targets:
        raise InvalidStateError(
            (
                "Invalid transition: "
                f"{entity_type} cannot transition from {current_status} to "
                f"{target_status}"
            ),
            {
                "entity_type": entity_type,
                "current_status": current_status,
                "target_status": target_status,
                "allowed_transitions": allowed_targets,
            },
        )

    return True


def is_terminal_state(entity_type, status):
    """Check if a state is terminal (no transitions allowed)."""
    try:
        transitions = _transitions_for(entity_type)
    except ValueError:
        return False

    return status in transitions and len(transitions[status]) == 0
