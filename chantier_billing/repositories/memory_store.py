"""In-process billing store with copy-on-write batches."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from chantier_billing.core.exceptions import (
    BatchWriteError,
    ConcurrentUpdateError,
    ScheduleAlreadyExistsError,
)
from chantier_billing.models.base import _utcnow
from chantier_billing.models.invoice import Invoice
from chantier_billing.models.payment import PaymentLedgerEntry
from chantier_billing.models.schedule import PaymentSchedule, ScheduleStatus
from chantier_billing.repositories.batch import OperationKind, WriteBatch
from chantier_billing.repositories.store import BillingStore


@dataclass
class _Tables:
    schedules: Dict[str, PaymentSchedule] = field(default_factory=dict)
    invoices: Dict[str, Invoice] = field(default_factory=dict)
    payments: Dict[str, PaymentLedgerEntry] = field(default_factory=dict)

    def copy(self) -> "_Tables":
        # Records are replaced, never mutated, so a shallow copy per table is enough
        return _Tables(
            schedules=dict(self.schedules),
            invoices=dict(self.invoices),
            payments=dict(self.payments),
        )


class InMemoryBillingStore(BillingStore):
    """Keeps every record in memory. Reads hand out deep copies."""

    def __init__(self):
        self._tables = _Tables()
        self.commit_count = 0

    # ===== READS =====

    async def get_active_schedule(self, client_id: str) -> Optional[PaymentSchedule]:
        for schedule in self._tables.schedules.values():
            if schedule.client_id == client_id and schedule.status == ScheduleStatus.ACTIVE:
                return schedule.model_copy(deep=True)
        return None

    async def list_active_schedules(self) -> List[PaymentSchedule]:
        return [
            s.model_copy(deep=True)
            for s in self._tables.schedules.values()
            if s.status == ScheduleStatus.ACTIVE
        ]

    async def get_client_invoices(self, client_id: str) -> List[Invoice]:
        invoices = [i for i in self._tables.invoices.values() if i.client_id == client_id]
        invoices.sort(key=lambda i: (i.issue_date, i.invoice_number), reverse=True)
        return [i.model_copy(deep=True) for i in invoices]

    async def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        invoice = self._tables.invoices.get(invoice_id)
        return invoice.model_copy(deep=True) if invoice else None

    async def get_client_payments(self, client_id: str) -> List[PaymentLedgerEntry]:
        entries = [p for p in self._tables.payments.values() if p.client_id == client_id]
        entries.sort(key=lambda p: (p.date, p.created_at), reverse=True)
        return [p.model_copy(deep=True) for p in entries]

    async def list_payments(self, limit: Optional[int] = None) -> List[PaymentLedgerEntry]:
        entries = sorted(
            self._tables.payments.values(),
            key=lambda p: (p.date, p.created_at),
            reverse=True,
        )
        if limit is not None:
            entries = entries[:limit]
        return [p.model_copy(deep=True) for p in entries]

    async def list_client_ids(self) -> List[str]:
        ids = {s.client_id for s in self._tables.schedules.values()}
        ids.update(i.client_id for i in self._tables.invoices.values())
        return sorted(ids)

    async def last_invoice_number(self, year: int) -> Optional[str]:
        prefix = f"INV-{year}-"
        numbers = [
            i.invoice_number for i in self._tables.invoices.values()
            if i.invoice_number.startswith(prefix)
        ]
        return max(numbers) if numbers else None

    # ===== WRITES =====

    async def update_invoice_fields(self, invoice_id: str, fields: Dict[str, Any]) -> Optional[Invoice]:
        invoice = self._tables.invoices.get(invoice_id)
        if invoice is None:
            return None
        updated = invoice.model_copy(
            update={**fields, "version": invoice.version + 1, "updated_at": _utcnow()},
            deep=True,
        )
        self._tables.invoices[invoice_id] = updated
        return updated.model_copy(deep=True)

    async def commit(self, batch: WriteBatch) -> None:
        staged = self._tables.copy()

        for op in batch.operations:
            if op.kind == OperationKind.INSERT_SCHEDULE:
                if op.record_id in staged.schedules:
                    raise BatchWriteError(f"Schedule {op.record_id} already exists")
                if op.schedule.status == ScheduleStatus.ACTIVE and any(
                    s.client_id == op.schedule.client_id and s.status == ScheduleStatus.ACTIVE
                    for s in staged.schedules.values()
                ):
                    raise ScheduleAlreadyExistsError(op.schedule.client_id)
                staged.schedules[op.record_id] = op.schedule.model_copy(deep=True)

            elif op.kind == OperationKind.UPDATE_SCHEDULE:
                current = staged.schedules.get(op.record_id)
                if current is None:
                    raise BatchWriteError(f"Schedule {op.record_id} not found")
                if current.version != op.expected_version:
                    raise ConcurrentUpdateError(op.record_id, op.expected_version)
                staged.schedules[op.record_id] = op.schedule.model_copy(
                    update={"version": op.expected_version + 1, "updated_at": _utcnow()},
                    deep=True,
                )

            elif op.kind == OperationKind.DELETE_SCHEDULE:
                staged.schedules.pop(op.record_id, None)

            elif op.kind == OperationKind.INSERT_INVOICE:
                if op.record_id in staged.invoices:
                    raise BatchWriteError(f"Invoice {op.record_id} already exists")
                staged.invoices[op.record_id] = op.invoice.model_copy(deep=True)

            elif op.kind == OperationKind.UPDATE_INVOICE:
                current = staged.invoices.get(op.record_id)
                if current is None:
                    raise BatchWriteError(f"Invoice {op.record_id} not found")
                if current.version != op.expected_version:
                    raise ConcurrentUpdateError(op.record_id, op.expected_version)
                staged.invoices[op.record_id] = op.invoice.model_copy(
                    update={"version": op.expected_version + 1, "updated_at": _utcnow()},
                    deep=True,
                )

            elif op.kind == OperationKind.DELETE_INVOICE:
                staged.invoices.pop(op.record_id, None)

            elif op.kind == OperationKind.APPEND_PAYMENT:
                if op.record_id in staged.payments:
                    raise BatchWriteError(f"Ledger entry {op.record_id} already exists")
                staged.payments[op.record_id] = op.payment.model_copy(deep=True)

            elif op.kind == OperationKind.DELETE_PAYMENT:
                staged.payments.pop(op.record_id, None)

        self._tables = staged
        self.commit_count += 1
