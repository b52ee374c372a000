from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from chantier_billing.models.base import MongoModel, coerce_date, new_id


class InvoiceType(str, Enum):
    INITIAL = "initial"
    PROGRESS = "progress"
    FINAL = "final"
    ADDITIONAL = "additional"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class InvoicePaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class ItemCategory(str, Enum):
    MATERIALS = "materials"
    LABOR = "labor"
    EQUIPMENT = "equipment"
    OTHER = "other"


class InvoiceItem(BaseModel):
    item_id: str = Field(default_factory=new_id)
    description: str
    quantity: int = 1
    unit_price: int
    total_price: int
    category: ItemCategory = ItemCategory.OTHER


def derive_payment_status(paid_amount: int, remaining_amount: int) -> InvoicePaymentStatus:
    """Payment status follows from the balances alone."""
    if remaining_amount <= 0:
        return InvoicePaymentStatus.PAID
    if paid_amount > 0:
        return InvoicePaymentStatus.PARTIAL
    return InvoicePaymentStatus.PENDING


class Invoice(MongoModel):
    client_id: str
    project_id: Optional[str] = None
    chantier_id: Optional[str] = None

    invoice_number: str  # INV-2024-001
    type: InvoiceType = InvoiceType.ADDITIONAL

    # Integer FCFA
    total_amount: int
    paid_amount: int = 0
    remaining_amount: int = 0

    status: InvoiceStatus = InvoiceStatus.DRAFT
    payment_status: InvoicePaymentStatus = InvoicePaymentStatus.PENDING

    issue_date: date
    due_date: date
    paid_date: Optional[datetime] = None

    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None

    description: str = ""
    notes: Optional[str] = None
    items: List[InvoiceItem] = []

    version: int = 1
    created_by: str = "system"
    sent_to_client: bool = False
    sent_at: Optional[datetime] = None

    @field_validator("issue_date", "due_date", mode="before")
    @classmethod
    def dates_from_datetime(cls, value):
        return coerce_date(value)

    def open_amount(self) -> int:
        return max(self.total_amount - self.paid_amount, 0)

    def is_cancelled(self) -> bool:
        return self.status == InvoiceStatus.CANCELLED

    def accepts_payment(self) -> bool:
        return not self.is_cancelled() and self.payment_status != InvoicePaymentStatus.PAID

    def is_overdue(self, today: date) -> bool:
        return self.accepts_payment() and self.due_date < today
