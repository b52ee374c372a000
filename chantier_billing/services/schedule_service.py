"""
Installment plan generation and contract initialization.

Rounding policy: monthly installments are ceil(remaining / months) and the
last one absorbs the remainder, so the plan always sums to the contract
total without fractional FCFA.
"""

import calendar
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from chantier_billing.core.clock import Clock, system_clock
from chantier_billing.core.config import settings
from chantier_billing.core.exceptions import ScheduleAlreadyExistsError
from chantier_billing.core.logging import get_logger
from chantier_billing.models.invoice import (
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    InvoiceType,
    ItemCategory,
)
from chantier_billing.models.schedule import (
    GeneratedSchedule,
    Installment,
    PaymentSchedule,
    ScheduleStatus,
)
from chantier_billing.repositories.batch import WriteBatch
from chantier_billing.repositories.store import BillingStore
from chantier_billing.services.invoice_service import InvoiceService
from chantier_billing.services.locks import ClientLocks
from chantier_billing.utils.payment_validation import validate_contract_terms

logger = get_logger(__name__)


def add_months(start: date, months: int) -> date:
    """Calendar month increment, clamping the day to the target month's length."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def calculate_deposit(total_amount: int, rate: Optional[float] = None) -> int:
    """Default deposit, rounded half-up to a whole FCFA."""
    if rate is None:
        rate = settings.DEFAULT_DEPOSIT_RATE
    deposit = Decimal(total_amount) * Decimal(str(rate))
    return int(deposit.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_remaining_after_deposit(total_amount: int, rate: Optional[float] = None) -> int:
    return total_amount - calculate_deposit(total_amount, rate)


def generate_schedule(
    total_amount: int,
    deposit_amount: int,
    deposit_already_paid: bool,
    start_date: date,
    months: int,
) -> GeneratedSchedule:
    """
    Build the installment plan for a contract.

    - Deposit not yet paid: installment #0 carries it, due on start_date
    - Installments 1..months are due start_date + i calendar months
    - Installments 1..months-1 get ceil(remaining / months), the last one
      gets whatever is left so the plan sums exactly
    """
    installments: List[Installment] = []

    if not deposit_already_paid and deposit_amount > 0:
        installments.append(Installment(
            installment_number=0,
            amount=deposit_amount,
            due_date=start_date,
            notes="Acompte initial",
        ))

    remaining = total_amount - deposit_amount
    monthly_amount = -(-remaining // months)  # ceil for integers

    allocated = 0
    for i in range(1, months + 1):
        amount = remaining - allocated if i == months else monthly_amount
        allocated += amount
        installments.append(Installment(
            installment_number=i,
            amount=amount,
            due_date=add_months(start_date, i),
            notes=f"Mensualite {i}/{months}",
        ))

    return GeneratedSchedule(
        total_amount=total_amount,
        installments=installments,
        status=ScheduleStatus.ACTIVE,
    )


class ScheduleService:
    """Contract initialization: deposit invoice plus installment plan."""

    def __init__(
        self,
        store: BillingStore,
        clock: Clock = system_clock,
        locks: Optional[ClientLocks] = None,
    ):
        self.store = store
        self.clock = clock
        self.locks = locks if locks is not None else ClientLocks()
        self.invoices = InvoiceService(store, clock, self.locks)

    async def get_schedule(self, client_id: str) -> Optional[PaymentSchedule]:
        return await self.store.get_active_schedule(client_id)

    async def initialize_client_accounting(
        self,
        client_id: str,
        project_id: Optional[str],
        total_amount: int,
        months: Optional[int] = None,
        deposit_amount: int = 0,
        start_date: Optional[date] = None,
        created_by: str = "system",
    ) -> PaymentSchedule:
        """
        Create the deposit invoice and the installment schedule in one batch.

        A zero deposit means "use the default deposit rate".
        Raises PaymentValidationError for bad terms and
        ScheduleAlreadyExistsError if the client is already set up.
        """
        if months is None:
            months = settings.DEFAULT_TERM_MONTHS
        if start_date is None:
            start_date = self.clock.today()

        final_deposit = deposit_amount if deposit_amount > 0 else calculate_deposit(total_amount)
        validate_contract_terms(total_amount, final_deposit, months)

        async with self.locks.lock_for(client_id):
            existing = await self.store.get_active_schedule(client_id)
            if existing is not None:
                raise ScheduleAlreadyExistsError(client_id)

            invoice_number = await self.invoices.generate_invoice_number()
            deposit_invoice = Invoice(
                client_id=client_id,
                project_id=project_id,
                invoice_number=invoice_number,
                type=InvoiceType.INITIAL,
                total_amount=final_deposit,
                paid_amount=0,
                remaining_amount=final_deposit,
                status=InvoiceStatus.SENT,
                issue_date=self.clock.today(),
                due_date=start_date + timedelta(days=settings.DEPOSIT_INVOICE_DUE_DAYS),
                description="Acompte initial",
                notes="Paiement requis pour demarrer le chantier",
                items=[InvoiceItem(
                    description="Acompte sur travaux",
                    quantity=1,
                    unit_price=final_deposit,
                    total_price=final_deposit,
                    category=ItemCategory.OTHER,
                )],
                created_by=created_by,
                sent_to_client=True,
                sent_at=self.clock.now(),
            )

            generated = generate_schedule(total_amount, final_deposit, False, start_date, months)
            schedule = PaymentSchedule(
                client_id=client_id,
                project_id=project_id,
                total_amount=generated.total_amount,
                deposit_amount=final_deposit,
                deposit_paid=False,
                installments=generated.installments,
                status=generated.status,
                created_by=created_by,
                created_at=self.clock.now(),
                updated_at=self.clock.now(),
            )

            batch = WriteBatch()
            batch.insert_invoice(deposit_invoice)
            batch.insert_schedule(schedule)
            await self.store.commit(batch)

        logger.info(
            "Initialized accounting for client %s: total=%s deposit=%s months=%s invoice=%s",
            client_id, total_amount, final_deposit, months, invoice_number,
        )
        return schedule
