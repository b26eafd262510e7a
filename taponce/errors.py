"""
Error taxonomy for the TapOnce engine.

Every error derives from ValueError so callers can treat any rejection
as a bad request and narrow down when they need the reason.
"""


class TapOnceError(ValueError):
    """Base class for all engine rejections."""

    status = "failed"


class ValidationError(TapOnceError):
    """Input failed boundary validation (non-positive price, missing field)."""

    status = "validation_failed"


class NotFoundError(TapOnceError, LookupError):
    """A referenced order, agent or card design does not exist."""

    status = "not_found"


class StateError(TapOnceError):
    """An order transition is not permitted from the current state."""

    status = "invalid_transition"


class InvalidTransitionError(StateError):
    """Target state is not a legal successor of the current state."""


class TerminalStateError(StateError):
    """The order is paid, rejected or cancelled and cannot move."""


class BelowMspApprovalError(StateError):
    """Normal approval attempted on an order sold below MSP."""


class LedgerError(TapOnceError):
    """A ledger mutation was refused; no balance was changed."""

    status = "ledger_rejected"


class InsufficientBalanceError(LedgerError):
    """Payout amount exceeds the agent's available balance."""


class DuplicateEarningError(LedgerError):
    """An earning for this order was already recorded."""
