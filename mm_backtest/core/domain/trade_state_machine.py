"""
Trade lifecycle state machine definitions.

This module defines the canonical trade states and the allowed transitions
between them. It is intentionally passive and validation-only: the ledger
consults it before applying a status update and refuses anything else.
"""

from __future__ import annotations

# Terminal trade states: once reached, the trade record is complete.
TRADE_TERMINAL_STATES: frozenset[str] = frozenset(
    {
        "filled",
        "rejected",
        "unfilled",
    }
)


# Allowed trade state transitions.
#
# Key   : previous state (or None if the trade was not previously recorded)
# Value : set of allowed next states
#
# Notes:
# - Transitions are one-way; terminal states have no successors.
# - Re-applying the current terminal state is treated as a no-op by the ledger,
#   not as a transition.
TRADE_ALLOWED_TRANSITIONS: dict[str | None, frozenset[str]] = {
    None: frozenset({"pending"}),

    "pending": frozenset(
        {
            "filled",
            "rejected",
            "unfilled",
        }
    ),
}


def is_terminal_state(state: str) -> bool:
    """Return True if the given state is terminal."""
    return state in TRADE_TERMINAL_STATES


def is_valid_transition(prev_state: str | None, next_state: str) -> bool:
    """Return True if the transition prev_state -> next_state is allowed."""
    allowed = TRADE_ALLOWED_TRANSITIONS.get(prev_state)
    if allowed is None:
        return False
    return next_state in allowed
