"""Exception types raised by the reconciliation core."""


class ReconciliationError(Exception):
    """Base class for all reconciliation errors."""


class ImportValidationError(ReconciliationError):
    """Raised when imported rows cannot be turned into participants.

    Raised before any roster mutation, so a failed import leaves the
    session untouched.
    """


class RecordNotFoundError(ReconciliationError):
    """Raised when an operator action targets a record not in the roster."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Participant not found: {key}")


class SelectionError(ReconciliationError):
    """Raised when an operation needs an event and session selection."""


class RelocationError(ReconciliationError):
    """Raised when a relocation destination is invalid (e.g. the source session)."""


class SaveInProgressError(ReconciliationError):
    """Raised when a save is requested while another one is in flight."""


class RemoteStoreError(ReconciliationError):
    """Raised when the remote participant store rejects a read or write."""
