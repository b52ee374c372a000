from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import date, datetime
from chantier_billing.schemas.invoice import InvoiceResponse
from chantier_billing.schemas.payment import PaymentResponse
from chantier_billing.schemas.schedule import InstallmentResponse, ScheduleResponse
from chantier_billing.services.notifier import ReminderKind

class DashboardResponse(BaseModel):
    client_id: str
    total_project_cost: int
    total_paid: int
    total_remaining: int
    total_overdue: int
    current_schedule: Optional[ScheduleResponse] = None
    next_payment: Optional[InstallmentResponse] = None
    overdue_payments: List[InstallmentResponse] = Field(default_factory=list)
    recent_invoices: List[InvoiceResponse] = Field(default_factory=list)
    total_invoices: int
    recent_payments: List[PaymentResponse] = Field(default_factory=list)
    last_updated: datetime
    show_reminder: bool = False  # Hint for the manual reminder button

    model_config = {"from_attributes": True}

class GlobalStatsResponse(BaseModel):
    client_count: int
    total_expected: int
    total_collected: int
    total_overdue: int
    collection_rate: float

    model_config = {"from_attributes": True}

class ConsistencyResponse(BaseModel):
    client_id: str
    schedule_paid: int
    invoices_paid: int
    ledger_total: int
    consistent: bool
    discrepancies: List[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}

class ReminderResponse(BaseModel):
    client_id: str
    installment_number: int
    amount: int
    due_date: date
    kind: ReminderKind
    delivered: bool

    model_config = {"from_attributes": True}

class ReminderCheckRequest(BaseModel):
    today: Optional[date] = None  # Defaults to the service clock

class ManualReminderCreate(BaseModel):
    amount: int
    kind: ReminderKind = ReminderKind.OVERDUE

class ManualReminderResponse(BaseModel):
    client_id: str
    amount: int
    kind: ReminderKind
    delivered: bool
