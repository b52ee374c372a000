from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import date, datetime
from chantier_billing.models.schedule import InstallmentStatus, ScheduleStatus

class AccountingInit(BaseModel):
    project_id: Optional[str] = None
    total_amount: int  # Integer FCFA
    months: Optional[int] = None  # Defaults to DEFAULT_TERM_MONTHS
    deposit_amount: int = 0  # 0 = default deposit rate
    start_date: Optional[date] = None

class InstallmentResponse(BaseModel):
    installment_number: int
    amount: int
    due_date: date
    status: InstallmentStatus
    paid_amount: int
    paid_date: Optional[datetime] = None
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None

    model_config = {"from_attributes": True}

class ScheduleResponse(BaseModel):
    id: str
    client_id: str
    project_id: Optional[str] = None
    total_amount: int
    deposit_amount: int
    deposit_paid: bool
    installments: List[InstallmentResponse] = Field(default_factory=list)
    status: ScheduleStatus
    version: int
    created_by: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

class ResetResponse(BaseModel):
    client_id: str
    schedules_deleted: int
    invoices_deleted: int
    payments_deleted: int

    model_config = {"from_attributes": True}
