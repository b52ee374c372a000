"""
Payment allocation - oldest-due-first waterfall over installments and invoices.

Core algorithm:
1. Load the client's active schedule (hard precondition)
2. Apply the payment to unpaid installments, oldest due date first
3. Apply the same full amount, independently, to open invoices
4. Append one ledger entry for the whole payment
5. Commit 2-4 as one batch, conditional on the schedule and invoice versions read

Installments and invoices are two separate views of the same money, so each
waterfall starts from the full amount. Nothing is transferred between them.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import List, Optional, Tuple, Union

from chantier_billing.core.clock import Clock, system_clock
from chantier_billing.core.config import settings
from chantier_billing.core.exceptions import (
    ConcurrentUpdateError,
    NoActiveScheduleError,
    OverpaymentError,
)
from chantier_billing.core.logging import get_logger
from chantier_billing.models.invoice import Invoice
from chantier_billing.models.payment import PaymentLedgerEntry
from chantier_billing.models.schedule import Installment, InstallmentStatus
from chantier_billing.repositories.batch import ResetSummary, WriteBatch
from chantier_billing.repositories.store import BillingStore
from chantier_billing.services.invoice_service import apply_invoice_payment
from chantier_billing.services.locks import ClientLocks
from chantier_billing.services.notifier import LoggingNotifier, Notifier
from chantier_billing.utils.payment_validation import (
    validate_payment_amount,
    validate_payment_method,
)

logger = get_logger(__name__)


@dataclass
class InstallmentAllocation:
    installment_number: int
    applied: int
    paid_amount: int
    settled: bool


@dataclass
class InvoiceAllocation:
    invoice_id: str
    invoice_number: str
    applied: int
    remaining_amount: int
    settled: bool


@dataclass
class PaymentOutcome:
    ledger_entry: PaymentLedgerEntry
    installment_allocations: List[InstallmentAllocation] = field(default_factory=list)
    invoice_allocations: List[InvoiceAllocation] = field(default_factory=list)
    unallocated_amount: int = 0  # leftover of the installment waterfall


def allocate_to_installments(
    installments: List[Installment],
    amount: int,
    method: str,
    reference: Optional[str],
    paid_at: datetime,
) -> Tuple[List[Installment], List[InstallmentAllocation], int]:
    """
    Waterfall over installments. Returns (updated installments in due order,
    allocations, leftover). Inputs are not modified.
    """
    ordered = sorted(
        (i.model_copy(deep=True) for i in installments),
        key=lambda i: (i.due_date, i.installment_number),
    )
    allocations: List[InstallmentAllocation] = []
    budget = amount

    for installment in ordered:
        if budget <= 0:
            break
        if installment.status == InstallmentStatus.PAID:
            continue

        owed = installment.outstanding_amount()
        if owed <= 0:
            continue

        applied = min(budget, owed)
        installment.paid_amount += applied
        budget -= applied

        if installment.is_fully_paid():
            installment.status = InstallmentStatus.PAID
            installment.paid_date = paid_at
        else:
            # Partial payments keep the pending status
            installment.status = InstallmentStatus.PENDING

        installment.payment_method = method
        installment.reference = reference

        allocations.append(InstallmentAllocation(
            installment_number=installment.installment_number,
            applied=applied,
            paid_amount=installment.paid_amount,
            settled=installment.status == InstallmentStatus.PAID,
        ))

    return ordered, allocations, budget


def allocate_to_invoices(
    invoices: List[Invoice],
    amount: int,
    paid_at: datetime,
) -> Tuple[List[Invoice], List[InvoiceAllocation], int]:
    """
    Waterfall over open invoices. Returns (touched invoices, allocations,
    leftover). Cancelled and fully paid invoices are ignored.
    """
    eligible = sorted(
        (i for i in invoices if i.accepts_payment()),
        key=lambda i: (i.due_date, i.issue_date, i.invoice_number),
    )
    touched: List[Invoice] = []
    allocations: List[InvoiceAllocation] = []
    budget = amount

    for invoice in eligible:
        if budget <= 0:
            break

        open_amount = invoice.open_amount()
        if open_amount <= 0:
            continue

        applied = min(budget, open_amount)
        updated = apply_invoice_payment(invoice, applied, paid_at)
        budget -= applied

        touched.append(updated)
        allocations.append(InvoiceAllocation(
            invoice_id=updated.id,
            invoice_number=updated.invoice_number,
            applied=applied,
            remaining_amount=updated.remaining_amount,
            settled=updated.remaining_amount == 0,
        ))

    return touched, allocations, budget


class PaymentService:
    """Records administrator-entered payments against a client's schedule and invoices."""

    def __init__(
        self,
        store: BillingStore,
        notifier: Optional[Notifier] = None,
        clock: Clock = system_clock,
        locks: Optional[ClientLocks] = None,
    ):
        self.store = store
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock
        self.locks = locks if locks is not None else ClientLocks()

    def _as_datetime(self, payment_date: Union[date, datetime, None]) -> datetime:
        if payment_date is None:
            return self.clock.now()
        if isinstance(payment_date, datetime):
            if payment_date.tzinfo is None:
                return payment_date.replace(tzinfo=timezone.utc)
            return payment_date
        return datetime.combine(payment_date, time.min, tzinfo=timezone.utc)

    async def process_payment(
        self,
        client_id: str,
        amount: int,
        method: str,
        reference: Optional[str] = None,
        received_by: Optional[str] = None,
        payment_date: Union[date, datetime, None] = None,
        notify: bool = True,
    ) -> PaymentOutcome:
        """
        Allocate a payment and persist schedule, invoices and ledger atomically.

        Raises:
        - PaymentValidationError for a non-positive amount or missing method
        - NoActiveScheduleError if the client has no active schedule
        - OverpaymentError when OVERPAYMENT_POLICY is "reject" and the
          amount exceeds the schedule's outstanding total
        - ConcurrentUpdateError once the conflict retries are exhausted
        """
        validate_payment_amount(amount)
        validate_payment_method(method)
        paid_at = self._as_datetime(payment_date)
        attempts = max(settings.PAYMENT_CONFLICT_RETRIES, 0) + 1

        async with self.locks.lock_for(client_id):
            for attempt in range(1, attempts + 1):
                try:
                    outcome = await self._allocate_and_commit(
                        client_id, amount, method, reference, received_by, paid_at
                    )
                    break
                except ConcurrentUpdateError:
                    if attempt == attempts:
                        logger.error(
                            "Payment for client %s lost %s version race(s), giving up",
                            client_id, attempts,
                        )
                        raise
                    logger.warning(
                        "Accounting of client %s changed during payment, retrying (%s/%s)",
                        client_id, attempt, attempts - 1,
                    )

        if notify:
            await self._notify_received(client_id, amount, outcome)
        return outcome

    async def _allocate_and_commit(
        self,
        client_id: str,
        amount: int,
        method: str,
        reference: Optional[str],
        received_by: Optional[str],
        paid_at: datetime,
    ) -> PaymentOutcome:
        schedule = await self.store.get_active_schedule(client_id)
        if schedule is None:
            raise NoActiveScheduleError(client_id)

        outstanding = schedule.outstanding_total()
        if settings.OVERPAYMENT_POLICY == "reject" and amount > outstanding:
            raise OverpaymentError(amount, outstanding)

        installments, installment_allocations, leftover = allocate_to_installments(
            schedule.installments, amount, method, reference, paid_at
        )
        updated_schedule = schedule.model_copy(update={"installments": installments}, deep=True)

        invoices = await self.store.get_client_invoices(client_id)
        touched_invoices, invoice_allocations, _ = allocate_to_invoices(invoices, amount, paid_at)
        for invoice in touched_invoices:
            invoice.payment_method = method
            invoice.payment_reference = reference

        entry = PaymentLedgerEntry(
            client_id=client_id,
            amount=amount,
            method=method,
            reference=reference,
            date=paid_at,
            received_by=received_by or "system",
            notes=f"Paiement recu ({amount} FCFA)",
            created_at=self.clock.now(),
        )

        batch = WriteBatch()
        batch.update_schedule(updated_schedule, expected_version=schedule.version)
        for invoice in touched_invoices:
            batch.update_invoice(invoice, expected_version=invoice.version)
        batch.append_payment(entry)
        await self.store.commit(batch)

        if leftover > 0:
            logger.warning(
                "Payment of %s for client %s exceeded the schedule by %s, leftover dropped",
                amount, client_id, leftover,
            )
        logger.info(
            "Processed payment of %s for client %s: %s installment(s), %s invoice(s) touched",
            amount, client_id, len(installment_allocations), len(invoice_allocations),
        )

        return PaymentOutcome(
            ledger_entry=entry,
            installment_allocations=installment_allocations,
            invoice_allocations=invoice_allocations,
            unallocated_amount=leftover,
        )

    async def _notify_received(self, client_id: str, amount: int, outcome: PaymentOutcome) -> None:
        if outcome.installment_allocations:
            numbers = ", ".join(str(a.installment_number) for a in outcome.installment_allocations)
            note = f"Echeance(s) N° {numbers}"
        else:
            note = "Paiement enregistre"
        try:
            await self.notifier.notify_payment_received(client_id, amount, note)
        except Exception:
            # The payment is already committed
            logger.exception("Payment notification failed for client %s", client_id)

    async def get_payment_history(self, client_id: str) -> List[PaymentLedgerEntry]:
        return await self.store.get_client_payments(client_id)

    async def list_all_payments(self, limit: Optional[int] = None) -> List[PaymentLedgerEntry]:
        return await self.store.list_payments(limit)

    async def reset_client_accounting(self, client_id: str) -> ResetSummary:
        """Drop schedule, initial invoices and ledger of a client. Irreversible."""
        async with self.locks.lock_for(client_id):
            return await self.store.reset_client(client_id)
