"""
Payment schedule model - deposit plus monthly installments for one contract.

Design principles:
- One active schedule per client
- Installment count and amounts are fixed at creation
- Only paid_amount / status / payment stamps change afterwards
- All amounts are integer FCFA (no subunits)
- Overdue is derived from the due date, never stored
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from chantier_billing.models.base import MongoModel, coerce_date


class InstallmentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class ScheduleStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Embedded in the schedule document, no separate _id
class Installment(BaseModel):
    """
    One scheduled payment obligation.

    Invariants:
    - 0 <= paid_amount <= amount
    - status = paid iff paid_amount == amount
    - paid_amount never decreases
    """
    installment_number: int  # 0 = deposit, 1..N = monthly
    amount: int
    due_date: date
    status: InstallmentStatus = InstallmentStatus.PENDING
    paid_amount: int = 0
    paid_date: Optional[datetime] = None
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def due_date_from_datetime(cls, value):
        return coerce_date(value)

    @property
    def is_deposit(self) -> bool:
        return self.installment_number == 0

    def outstanding_amount(self) -> int:
        """How much remains unpaid."""
        return self.amount - self.paid_amount

    def is_fully_paid(self) -> bool:
        return self.paid_amount >= self.amount

    def is_overdue(self, today: date) -> bool:
        return self.status != InstallmentStatus.PAID and self.due_date < today


class PaymentSchedule(MongoModel):
    client_id: str
    project_id: Optional[str] = None
    total_amount: int
    deposit_amount: int = 0
    deposit_paid: bool = False
    installments: List[Installment] = []
    status: ScheduleStatus = ScheduleStatus.ACTIVE

    version: int = 1
    created_by: str = "system"

    def sorted_installments(self) -> List[Installment]:
        """Installments in waterfall order (oldest due first)."""
        return sorted(self.installments, key=lambda i: (i.due_date, i.installment_number))

    def scheduled_total(self) -> int:
        """Sum of installment amounts plus a deposit settled before the schedule."""
        total = sum(i.amount for i in self.installments)
        if self.deposit_paid:
            total += self.deposit_amount
        return total

    def paid_total(self) -> int:
        return sum(i.paid_amount for i in self.installments)

    def outstanding_total(self) -> int:
        return sum(i.outstanding_amount() for i in self.installments)

    def pending_installments(self) -> List[Installment]:
        return [i for i in self.sorted_installments() if i.status == InstallmentStatus.PENDING]

    def next_installment(self) -> Optional[Installment]:
        pending = self.pending_installments()
        return pending[0] if pending else None

    def overdue_installments(self, today: date) -> List[Installment]:
        return [i for i in self.pending_installments() if i.due_date < today]

    def all_paid(self) -> bool:
        return all(i.status == InstallmentStatus.PAID for i in self.installments)


class GeneratedSchedule(BaseModel):
    """Output of the plan generator, before it is bound to a client."""
    total_amount: int
    installments: List[Installment] = Field(default_factory=list)
    status: ScheduleStatus = ScheduleStatus.ACTIVE
