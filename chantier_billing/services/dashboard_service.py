"""
Read-only client billing summaries.

Nothing here writes to the store; calling any method twice without an
intervening write returns identical data.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from chantier_billing.core.clock import Clock, system_clock
from chantier_billing.core.logging import get_logger
from chantier_billing.models.invoice import Invoice
from chantier_billing.models.payment import PaymentLedgerEntry
from chantier_billing.models.schedule import Installment, PaymentSchedule
from chantier_billing.repositories.store import BillingStore

logger = get_logger(__name__)

RECENT_LIMIT = 5


class ClientPaymentDashboard(BaseModel):
    client_id: str
    total_project_cost: int = 0
    total_paid: int = 0
    total_remaining: int = 0
    total_overdue: int = 0

    current_schedule: Optional[PaymentSchedule] = None
    next_payment: Optional[Installment] = None
    overdue_payments: List[Installment] = Field(default_factory=list)

    recent_invoices: List[Invoice] = Field(default_factory=list)
    total_invoices: int = 0
    recent_payments: List[PaymentLedgerEntry] = Field(default_factory=list)

    last_updated: datetime


class GlobalStats(BaseModel):
    client_count: int = 0
    total_expected: int = 0
    total_collected: int = 0
    total_overdue: int = 0
    collection_rate: float = 0.0  # percent of expected already collected


class ConsistencyReport(BaseModel):
    """Paid totals as seen by the schedule, the invoices and the ledger."""
    client_id: str
    schedule_paid: int
    invoices_paid: int
    ledger_total: int
    consistent: bool
    discrepancies: List[str] = Field(default_factory=list)


class DashboardService:

    def __init__(self, store: BillingStore, clock: Clock = system_clock):
        self.store = store
        self.clock = clock

    async def get_client_payment_dashboard(
        self, client_id: str, today: Optional[date] = None
    ) -> ClientPaymentDashboard:
        if today is None:
            today = self.clock.today()

        schedule = await self.store.get_active_schedule(client_id)
        invoices = await self.store.get_client_invoices(client_id)
        payments = await self.store.get_client_payments(client_id)

        # Every invoice ever issued counts, cancelled ones included
        total_project_cost = sum(i.total_amount for i in invoices)
        total_paid = sum(p.amount for p in payments)

        next_payment = None
        overdue: List[Installment] = []
        if schedule is not None:
            next_payment = schedule.next_installment()
            overdue = schedule.overdue_installments(today)

        return ClientPaymentDashboard(
            client_id=client_id,
            total_project_cost=total_project_cost,
            total_paid=total_paid,
            total_remaining=total_project_cost - total_paid,
            total_overdue=sum(i.outstanding_amount() for i in overdue),
            current_schedule=schedule,
            next_payment=next_payment,
            overdue_payments=overdue,
            recent_invoices=invoices[:RECENT_LIMIT],
            total_invoices=len(invoices),
            recent_payments=payments[:RECENT_LIMIT],
            last_updated=self.clock.now(),
        )

    async def get_global_stats(self, client_ids: Optional[List[str]] = None) -> GlobalStats:
        """Totals across clients, for the accounting overview."""
        if client_ids is None:
            client_ids = await self.store.list_client_ids()

        stats = GlobalStats(client_count=len(client_ids))
        today = self.clock.today()
        for client_id in client_ids:
            dashboard = await self.get_client_payment_dashboard(client_id, today=today)
            stats.total_expected += dashboard.total_project_cost
            stats.total_collected += dashboard.total_paid
            stats.total_overdue += dashboard.total_overdue

        if stats.total_expected > 0:
            stats.collection_rate = stats.total_collected / stats.total_expected * 100
        return stats

    async def check_consistency(self, client_id: str) -> ConsistencyReport:
        """
        Neither the schedule nor the invoices may show more money than the
        ledger received. Less is expected: dropped overpayments and invoice
        balances smaller than the payment stay in the ledger only.
        """
        schedule = await self.store.get_active_schedule(client_id)
        invoices = await self.store.get_client_invoices(client_id)
        payments = await self.store.get_client_payments(client_id)

        schedule_paid = schedule.paid_total() if schedule else 0
        invoices_paid = sum(i.paid_amount for i in invoices)
        ledger_total = sum(p.amount for p in payments)

        discrepancies = []
        if schedule_paid > ledger_total:
            discrepancies.append(
                f"schedule records {schedule_paid} paid, ledger only {ledger_total}"
            )
        if invoices_paid > ledger_total:
            discrepancies.append(
                f"invoices record {invoices_paid} paid, ledger only {ledger_total}"
            )

        if discrepancies:
            logger.warning("Billing records of client %s disagree: %s", client_id, "; ".join(discrepancies))

        return ConsistencyReport(
            client_id=client_id,
            schedule_paid=schedule_paid,
            invoices_paid=invoices_paid,
            ledger_total=ledger_total,
            consistent=not discrepancies,
            discrepancies=discrepancies,
        )
