from datetime import date, datetime
from typing import List, Optional

from chantier_billing.core.clock import Clock, system_clock
from chantier_billing.core.config import settings
from chantier_billing.core.exceptions import (
    ConcurrentUpdateError,
    InvalidInvoiceStateError,
    InvoiceNotFoundError,
)
from chantier_billing.core.logging import get_logger
from chantier_billing.models.invoice import (
    Invoice,
    InvoiceItem,
    InvoicePaymentStatus,
    InvoiceStatus,
    InvoiceType,
    derive_payment_status,
)
from chantier_billing.models.payment import PaymentLedgerEntry
from chantier_billing.repositories.batch import WriteBatch
from chantier_billing.repositories.store import BillingStore
from chantier_billing.services.locks import ClientLocks
from chantier_billing.utils.payment_validation import (
    PaymentValidationError,
    validate_invoice_items,
    validate_payment_amount,
    validate_payment_method,
)

logger = get_logger(__name__)


def next_invoice_number(last_number: Optional[str], year: int) -> str:
    """INV-<year>-NNN, one past the last number issued this year."""
    if not last_number:
        return f"INV-{year}-001"
    sequence = int(last_number.split("-")[2])
    return f"INV-{year}-{sequence + 1:03d}"


def apply_invoice_payment(invoice: Invoice, amount: int, paid_at: datetime) -> Invoice:
    """Return a copy of the invoice with ``amount`` more paid. Caller bounds the amount."""
    new_paid = invoice.paid_amount + amount
    remaining = max(invoice.total_amount - new_paid, 0)
    payment_status = derive_payment_status(new_paid, remaining)

    updates = {
        "paid_amount": new_paid,
        "remaining_amount": remaining,
        "payment_status": payment_status,
    }
    if payment_status == InvoicePaymentStatus.PAID:
        updates["status"] = InvoiceStatus.PAID
        updates["paid_date"] = paid_at
    return invoice.model_copy(update=updates, deep=True)


class InvoiceService:
    """Ad hoc invoice lifecycle: creation, single-invoice payment, send, cancel."""

    def __init__(
        self,
        store: BillingStore,
        clock: Clock = system_clock,
        locks: Optional[ClientLocks] = None,
    ):
        self.store = store
        self.clock = clock
        self.locks = locks if locks is not None else ClientLocks()

    async def generate_invoice_number(self) -> str:
        year = self.clock.today().year
        last = await self.store.last_invoice_number(year)
        return next_invoice_number(last, year)

    async def create_invoice(
        self,
        client_id: str,
        total_amount: int,
        due_date: date,
        type: InvoiceType = InvoiceType.ADDITIONAL,
        description: str = "",
        items: Optional[List[InvoiceItem]] = None,
        project_id: Optional[str] = None,
        chantier_id: Optional[str] = None,
        notes: Optional[str] = None,
        status: InvoiceStatus = InvoiceStatus.DRAFT,
        created_by: str = "system",
    ) -> Invoice:
        if total_amount <= 0:
            raise PaymentValidationError(f"Invoice total must be positive: {total_amount}")
        items = items or []
        validate_invoice_items(items, total_amount)

        invoice = Invoice(
            client_id=client_id,
            project_id=project_id,
            chantier_id=chantier_id,
            invoice_number=await self.generate_invoice_number(),
            type=type,
            total_amount=total_amount,
            paid_amount=0,
            remaining_amount=total_amount,
            status=status,
            payment_status=InvoicePaymentStatus.PENDING,
            issue_date=self.clock.today(),
            due_date=due_date,
            description=description,
            notes=notes,
            items=items,
            created_by=created_by,
            sent_to_client=False,
        )
        await self.store.create_invoice(invoice)
        logger.info("Created invoice %s for client %s (%s)", invoice.invoice_number, client_id, total_amount)
        return invoice

    async def list_client_invoices(self, client_id: str) -> List[Invoice]:
        return await self.store.get_client_invoices(client_id)

    async def record_invoice_payment(
        self,
        invoice_id: str,
        amount: int,
        method: str,
        reference: Optional[str] = None,
        received_by: Optional[str] = None,
    ) -> Invoice:
        """
        Pay down one invoice directly and log the payment in the ledger.

        The amount may not exceed what is still open on the invoice. Runs
        under the client's lock and commits conditional on the invoice
        version, so it cannot interleave with a schedule payment.
        """
        validate_payment_amount(amount)
        validate_payment_method(method)

        invoice = await self.store.get_invoice(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        attempts = max(settings.PAYMENT_CONFLICT_RETRIES, 0) + 1

        async with self.locks.lock_for(invoice.client_id):
            for attempt in range(1, attempts + 1):
                try:
                    return await self._pay_invoice(invoice_id, amount, method, reference, received_by)
                except ConcurrentUpdateError:
                    if attempt == attempts:
                        logger.error(
                            "Payment on invoice %s lost %s version race(s), giving up",
                            invoice_id, attempts,
                        )
                        raise
                    logger.warning(
                        "Invoice %s changed during payment, retrying (%s/%s)",
                        invoice_id, attempt, attempts - 1,
                    )

    async def _pay_invoice(
        self,
        invoice_id: str,
        amount: int,
        method: str,
        reference: Optional[str],
        received_by: Optional[str],
    ) -> Invoice:
        invoice = await self.store.get_invoice(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        if not invoice.accepts_payment():
            raise InvalidInvoiceStateError(
                f"Invoice {invoice.invoice_number} is {invoice.status.value}/{invoice.payment_status.value}"
            )
        if amount > invoice.open_amount():
            raise PaymentValidationError(
                f"Payment amount must be 1 to {invoice.open_amount()}"
            )

        now = self.clock.now()
        updated = apply_invoice_payment(invoice, amount, now)
        updated.payment_method = method
        updated.payment_reference = reference

        entry = PaymentLedgerEntry(
            client_id=invoice.client_id,
            invoice_id=invoice.id,
            amount=amount,
            method=method,
            reference=reference,
            date=now,
            received_by=received_by or "system",
            notes=f"Paiement facture {invoice.invoice_number}",
            created_at=now,
        )

        batch = WriteBatch()
        batch.update_invoice(updated, expected_version=invoice.version)
        batch.append_payment(entry)
        await self.store.commit(batch)

        logger.info(
            "Recorded %s on invoice %s: paid=%s remaining=%s",
            amount, invoice.invoice_number, updated.paid_amount, updated.remaining_amount,
        )
        return updated

    async def mark_invoice_as_sent(self, invoice_id: str) -> Invoice:
        invoice = await self.store.update_invoice_fields(invoice_id, {
            "sent_to_client": True,
            "sent_at": self.clock.now(),
        })
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        if invoice.status == InvoiceStatus.DRAFT:
            invoice = await self.store.update_invoice_fields(invoice_id, {"status": InvoiceStatus.SENT})
        return invoice

    async def cancel_invoice(self, invoice_id: str) -> Invoice:
        """Soft delete: the record is kept with status cancelled."""
        invoice = await self.store.update_invoice_fields(invoice_id, {"status": InvoiceStatus.CANCELLED})
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        logger.info("Cancelled invoice %s", invoice.invoice_number)
        return invoice
