"""Atomic multi-record write batch shared by every store backend."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from chantier_billing.models.invoice import Invoice
from chantier_billing.models.payment import PaymentLedgerEntry
from chantier_billing.models.schedule import PaymentSchedule


class OperationKind(str, Enum):
    INSERT_SCHEDULE = "insert_schedule"
    UPDATE_SCHEDULE = "update_schedule"
    DELETE_SCHEDULE = "delete_schedule"
    INSERT_INVOICE = "insert_invoice"
    UPDATE_INVOICE = "update_invoice"
    DELETE_INVOICE = "delete_invoice"
    APPEND_PAYMENT = "append_payment"
    DELETE_PAYMENT = "delete_payment"


@dataclass
class BatchOperation:
    kind: OperationKind
    record_id: str
    schedule: Optional[PaymentSchedule] = None
    invoice: Optional[Invoice] = None
    payment: Optional[PaymentLedgerEntry] = None
    expected_version: Optional[int] = None


@dataclass
class WriteBatch:
    """Ordered list of writes committed all-or-nothing by ``BillingStore.commit``."""

    operations: List[BatchOperation] = field(default_factory=list)

    def insert_schedule(self, schedule: PaymentSchedule) -> None:
        self.operations.append(BatchOperation(
            OperationKind.INSERT_SCHEDULE, schedule.id, schedule=schedule
        ))

    def update_schedule(self, schedule: PaymentSchedule, expected_version: int) -> None:
        """Replace installments/status; only applies if the stored version still matches."""
        self.operations.append(BatchOperation(
            OperationKind.UPDATE_SCHEDULE,
            schedule.id,
            schedule=schedule,
            expected_version=expected_version,
        ))

    def delete_schedule(self, schedule_id: str) -> None:
        self.operations.append(BatchOperation(OperationKind.DELETE_SCHEDULE, schedule_id))

    def insert_invoice(self, invoice: Invoice) -> None:
        self.operations.append(BatchOperation(
            OperationKind.INSERT_INVOICE, invoice.id, invoice=invoice
        ))

    def update_invoice(self, invoice: Invoice, expected_version: int) -> None:
        """Replace the invoice; only applies if the stored version still matches."""
        self.operations.append(BatchOperation(
            OperationKind.UPDATE_INVOICE,
            invoice.id,
            invoice=invoice,
            expected_version=expected_version,
        ))

    def delete_invoice(self, invoice_id: str) -> None:
        self.operations.append(BatchOperation(OperationKind.DELETE_INVOICE, invoice_id))

    def append_payment(self, entry: PaymentLedgerEntry) -> None:
        self.operations.append(BatchOperation(
            OperationKind.APPEND_PAYMENT, entry.id, payment=entry
        ))

    def delete_payment(self, entry_id: str) -> None:
        self.operations.append(BatchOperation(OperationKind.DELETE_PAYMENT, entry_id))

    def __len__(self) -> int:
        return len(self.operations)

    def is_empty(self) -> bool:
        return not self.operations


@dataclass
class ResetSummary:
    client_id: str
    schedules_deleted: int = 0
    invoices_deleted: int = 0
    payments_deleted: int = 0
