"""Exception hierarchy for the billing core."""

from typing import Optional


class BillingError(Exception):
    """Base exception for all billing errors."""


class NoActiveScheduleError(BillingError):
    """Raised when a payment targets a client without an active schedule."""

    def __init__(self, client_id: str):
        self.client_id = client_id
        super().__init__(f"No active payment schedule for client {client_id}")


class ScheduleAlreadyExistsError(BillingError):
    """Raised when initializing accounting for a client that already has one."""

    def __init__(self, client_id: str):
        self.client_id = client_id
        super().__init__(f"Client {client_id} already has an active payment schedule")


class InvoiceNotFoundError(BillingError):
    """Raised when a referenced invoice does not exist."""

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} not found")


class InvalidInvoiceStateError(BillingError):
    """Raised when an invoice is in an invalid state for the operation."""


class OverpaymentError(BillingError):
    """Raised when a payment exceeds what the client still owes."""

    def __init__(self, amount: int, outstanding: int):
        self.amount = amount
        self.outstanding = outstanding
        super().__init__(
            f"Payment of {amount} exceeds outstanding balance of {outstanding}"
        )


class StoreError(BillingError):
    """Base exception for persistence failures."""


class ConnectivityBlockedError(StoreError):
    """Raised when the document store cannot be reached."""

    def __init__(self, detail: str = ""):
        message = (
            "Connection to the database is blocked or unavailable. "
            "Check the network connection and any browser extension or proxy "
            "filtering requests, then try again."
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class PermissionDeniedError(StoreError):
    """Raised when the store rejects an operation for lack of rights."""

    def __init__(self, detail: str = ""):
        message = "Insufficient permissions for this billing operation."
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class BatchWriteError(StoreError):
    """Raised when an atomic batch fails; nothing was persisted."""


class ConcurrentUpdateError(StoreError):
    """Raised when a version-stamped write finds a newer record."""

    def __init__(self, record_id: str, expected_version: Optional[int] = None):
        self.record_id = record_id
        self.expected_version = expected_version
        message = f"Record {record_id} changed concurrently"
        if expected_version is not None:
            message = f"{message} (expected version {expected_version})"
        super().__init__(message)
