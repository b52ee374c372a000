"""
BillingStore - persistence facade for schedules, invoices and the payment ledger.

Contract:
- Reads return None / [] when nothing matches; connectivity and permission
  failures propagate as ConnectivityBlockedError / PermissionDeniedError
- commit() is the only multi-record write and is all-or-nothing
- Schedule updates are conditional on the version the caller read
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from chantier_billing.core.logging import get_logger
from chantier_billing.models.invoice import Invoice, InvoiceType
from chantier_billing.models.payment import PaymentLedgerEntry
from chantier_billing.models.schedule import PaymentSchedule
from chantier_billing.repositories.batch import ResetSummary, WriteBatch

logger = get_logger(__name__)


class BillingStore(ABC):

    # ===== READS =====

    @abstractmethod
    async def get_active_schedule(self, client_id: str) -> Optional[PaymentSchedule]:
        """The client's single active schedule, if any."""

    @abstractmethod
    async def list_active_schedules(self) -> List[PaymentSchedule]:
        """Every active schedule, for the reminder scan."""

    @abstractmethod
    async def get_client_invoices(self, client_id: str) -> List[Invoice]:
        """All invoices of a client, newest issue date first."""

    @abstractmethod
    async def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        ...

    @abstractmethod
    async def get_client_payments(self, client_id: str) -> List[PaymentLedgerEntry]:
        """Ledger entries of a client, most recent payment date first."""

    @abstractmethod
    async def list_payments(self, limit: Optional[int] = None) -> List[PaymentLedgerEntry]:
        """Ledger entries across all clients, most recent first."""

    @abstractmethod
    async def list_client_ids(self) -> List[str]:
        """Clients that own at least one schedule or invoice."""

    @abstractmethod
    async def last_invoice_number(self, year: int) -> Optional[str]:
        """Highest INV-<year>-NNN number issued so far."""

    # ===== WRITES =====

    async def create_schedule(self, schedule: PaymentSchedule) -> str:
        batch = WriteBatch()
        batch.insert_schedule(schedule)
        await self.commit(batch)
        return schedule.id

    async def create_invoice(self, invoice: Invoice) -> str:
        batch = WriteBatch()
        batch.insert_invoice(invoice)
        await self.commit(batch)
        return invoice.id

    @abstractmethod
    async def update_invoice_fields(self, invoice_id: str, fields: Dict[str, Any]) -> Optional[Invoice]:
        """Single-document update for lifecycle flags (sent, cancelled)."""

    @abstractmethod
    async def commit(self, batch: WriteBatch) -> None:
        """Apply every operation of the batch, or none of them."""

    async def reset_client(self, client_id: str) -> ResetSummary:
        """
        Delete the active schedule, all initial invoices and every ledger entry
        of a client in one batch. Irreversible.
        """
        summary = ResetSummary(client_id=client_id)
        batch = WriteBatch()

        schedule = await self.get_active_schedule(client_id)
        if schedule is not None:
            batch.delete_schedule(schedule.id)
            summary.schedules_deleted = 1

        for invoice in await self.get_client_invoices(client_id):
            if invoice.type == InvoiceType.INITIAL:
                batch.delete_invoice(invoice.id)
                summary.invoices_deleted += 1

        for entry in await self.get_client_payments(client_id):
            batch.delete_payment(entry.id)
            summary.payments_deleted += 1

        if not batch.is_empty():
            await self.commit(batch)

        logger.warning(
            "Reset accounting for client %s: %s schedule(s), %s invoice(s), %s payment(s) deleted",
            client_id,
            summary.schedules_deleted,
            summary.invoices_deleted,
            summary.payments_deleted,
        )
        return summary
