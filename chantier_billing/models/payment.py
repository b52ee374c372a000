"""
Payment ledger - one entry per payment received.

- Append-only: reconciliation never edits or deletes entries
- Not 1:1 with installments or invoices, one entry may fund several of each
- sum(amount) per client is the source of truth for "total paid"
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import field_validator

from chantier_billing.models.base import MongoModel


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CHECK = "check"
    MOBILE_MONEY = "mobile_money"


class PaymentLedgerEntry(MongoModel):
    client_id: str
    invoice_id: Optional[str] = None  # set only for payments recorded against one invoice
    amount: int
    method: str
    reference: Optional[str] = None
    date: datetime
    received_by: str = "system"
    notes: Optional[str] = None

    @field_validator("method", mode="before")
    @classmethod
    def normalise_method(cls, value):
        if isinstance(value, PaymentMethod):
            return value.value
        if isinstance(value, str):
            return value.strip().lower()
        return value
