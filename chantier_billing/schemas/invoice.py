from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import date, datetime
from chantier_billing.models.invoice import (
    InvoicePaymentStatus,
    InvoiceStatus,
    InvoiceType,
    ItemCategory,
)

class InvoiceItemBase(BaseModel):
    description: str
    quantity: int = 1
    unit_price: int  # Integer FCFA
    total_price: int
    category: ItemCategory = ItemCategory.OTHER

    model_config = {"from_attributes": True}

class InvoiceItemResponse(InvoiceItemBase):
    item_id: str

class InvoiceCreate(BaseModel):
    client_id: str
    total_amount: int
    due_date: date
    type: InvoiceType = InvoiceType.ADDITIONAL
    description: str = ""
    items: List[InvoiceItemBase] = Field(default_factory=list)
    project_id: Optional[str] = None
    chantier_id: Optional[str] = None
    notes: Optional[str] = None

class InvoicePaymentCreate(BaseModel):
    amount: int
    method: str
    reference: Optional[str] = None

class InvoiceResponse(BaseModel):
    id: str
    client_id: str
    project_id: Optional[str] = None
    chantier_id: Optional[str] = None
    invoice_number: str
    type: InvoiceType
    total_amount: int
    paid_amount: int
    remaining_amount: int
    status: InvoiceStatus
    payment_status: InvoicePaymentStatus
    issue_date: date
    due_date: date
    paid_date: Optional[datetime] = None
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    description: str
    notes: Optional[str] = None
    items: List[InvoiceItemResponse] = Field(default_factory=list)
    created_by: str
    sent_to_client: bool
    sent_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
