from typing import List, Optional, Union
from pydantic import BaseModel, Field
from datetime import date, datetime

class PaymentCreate(BaseModel):
    amount: int  # Integer FCFA
    method: str
    reference: Optional[str] = None
    payment_date: Optional[Union[datetime, date]] = None  # Defaults to now
    notify: bool = True

class PaymentResponse(BaseModel):
    id: str
    client_id: str
    invoice_id: Optional[str] = None
    amount: int
    method: str
    reference: Optional[str] = None
    date: datetime
    received_by: str
    notes: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}

class InstallmentAllocationResponse(BaseModel):
    installment_number: int
    applied: int
    paid_amount: int
    settled: bool

    model_config = {"from_attributes": True}

class InvoiceAllocationResponse(BaseModel):
    invoice_id: str
    invoice_number: str
    applied: int
    remaining_amount: int
    settled: bool

    model_config = {"from_attributes": True}

class PaymentOutcomeResponse(BaseModel):
    """Result of allocating one payment."""
    payment: PaymentResponse
    installment_allocations: List[InstallmentAllocationResponse] = Field(default_factory=list)
    invoice_allocations: List[InvoiceAllocationResponse] = Field(default_factory=list)
    unallocated_amount: int = 0
