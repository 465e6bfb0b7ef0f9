"""Custom exceptions for RupIQ Ledger."""


class RupiqError(Exception):
    """Base exception for all RupIQ Ledger errors."""

    pass


class ConfigurationError(RupiqError):
    """Raised when configuration is invalid or missing."""

    pass


class LedgerValidationError(RupiqError):
    """Raised when a ledger event fails validation before it is stored."""

    pass


class ExpenseValidationError(LedgerValidationError):
    """Raised when an expense form fails validation before syncing."""

    pass


class EventNotFoundError(RupiqError):
    """Raised when a ledger event or expense id does not exist."""

    def __init__(self, item_id: str, message: str | None = None):
        self.item_id = item_id
        super().__init__(message or f"No ledger entry with id '{item_id}'")


class ImmutableEventError(RupiqError):
    """Raised when attempting to edit a settlement event."""

    pass


class LinkedEventError(RupiqError):
    """Raised when a synchronized event is deleted from the ledger directly."""

    def __init__(self, event_id: str, expense_id: str):
        self.event_id = event_id
        self.expense_id = expense_id
        super().__init__(
            f"Event {event_id} is linked to expense {expense_id}. "
            f"Delete the expense instead."
        )


class AlreadySettledError(RupiqError):
    """Raised when settling a friend whose balance is already zero."""

    def __init__(self, friend_name: str):
        self.friend_name = friend_name
        super().__init__(f"No outstanding balance with {friend_name}")


class APIError(RupiqError):
    """Base class for API-related errors."""

    pass


class OpenAIAPIError(APIError):
    """Raised when OpenAI API request fails."""

    pass
