"""
Exception hierarchy for the budget engine

Only caller-recoverable conditions live here. Routine business outcomes
(an empty envelope, an underfunded bills balance, a period that is not yet
over) are status values or boolean results, never exceptions.
"""

from decimal import Decimal


class BudgetEnforcerError(Exception):
    """Base exception for all budget engine errors"""

    pass


class ValidationError(BudgetEnforcerError):
    """
    Raised when a mutator receives malformed input

    Examples: empty envelope name, non-positive amount, due day outside 1-31.
    No state is changed when this is raised.
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"Invalid {field}: {message}")


class ShuffleInsufficientError(BudgetEnforcerError):
    """Raised when shuffle allocations do not cover the amount needed"""

    def __init__(
        self,
        target_envelope_id: str,
        amount_needed: Decimal,
        amount_allocated: Decimal,
    ) -> None:
        self.target_envelope_id = target_envelope_id
        self.amount_needed = amount_needed
        self.amount_allocated = amount_allocated
        super().__init__(
            f"Shuffle into {target_envelope_id} allocates {amount_allocated} "
            f"but {amount_needed} is needed"
        )


class NotFoundError(BudgetEnforcerError):
    """
    Raised by lookups for an id absent from the current collection

    Engine mutators do not raise this; they return the state unchanged so a
    retried call is harmless. It exists for callers that want strict lookups.
    """

    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} not found")


class ConfigurationError(BudgetEnforcerError):
    """Raised when user preferences lack data a calculation requires"""

    pass


class InvalidSessionState(BudgetEnforcerError):
    """Raised when confirm/cancel is called outside a simulation"""

    def __init__(self, operation: str, current_state: str) -> None:
        self.operation = operation
        self.current_state = current_state
        super().__init__(
            f"Cannot {operation} while purchase session is {current_state}"
        )


class NoEnvelopeSelected(BudgetEnforcerError):
    """Raised when a purchase flow starts without a current envelope"""

    def __init__(self) -> None:
        super().__init__("Select an envelope before simulating a purchase")
