from typing import List
from fastapi import APIRouter, Depends, HTTPException, status

from chantier_billing.api.deps import BillingServices, get_services
from chantier_billing.core.auth import get_current_actor
from chantier_billing.schemas.dashboard import (
    ConsistencyResponse,
    DashboardResponse,
    ManualReminderCreate,
    ManualReminderResponse,
)
from chantier_billing.schemas.invoice import InvoiceResponse
from chantier_billing.schemas.payment import (
    InstallmentAllocationResponse,
    InvoiceAllocationResponse,
    PaymentCreate,
    PaymentOutcomeResponse,
    PaymentResponse,
)
from chantier_billing.schemas.schedule import AccountingInit, ResetResponse, ScheduleResponse
from chantier_billing.services.reminder_service import should_show_reminder

router = APIRouter()


@router.post("/{client_id}/accounting", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
async def initialize_accounting(
    client_id: str,
    payload: AccountingInit,
    actor_id: str = Depends(get_current_actor),
    services: BillingServices = Depends(get_services)
):
    """Create the deposit invoice and the installment schedule of a client."""
    schedule = await services.schedules.initialize_client_accounting(
        client_id=client_id,
        project_id=payload.project_id,
        total_amount=payload.total_amount,
        months=payload.months,
        deposit_amount=payload.deposit_amount,
        start_date=payload.start_date,
        created_by=actor_id,
    )
    return ScheduleResponse.model_validate(schedule)


@router.delete("/{client_id}/accounting", response_model=ResetResponse)
async def reset_accounting(
    client_id: str,
    actor_id: str = Depends(get_current_actor),
    services: BillingServices = Depends(get_services)
):
    """Delete schedule, initial invoices and payment history. Irreversible."""
    summary = await services.payments.reset_client_accounting(client_id)
    return ResetResponse.model_validate(summary)


@router.get("/{client_id}/schedule", response_model=ScheduleResponse)
async def get_schedule(
    client_id: str,
    actor_id: str = Depends(get_current_actor),
    services: BillingServices = Depends(get_services)
):
    schedule = await services.schedules.get_schedule(client_id)
    if schedule is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active payment schedule"
        )
    return ScheduleResponse.model_validate(schedule)


@router.post("/{client_id}/payments", response_model=PaymentOutcomeResponse, status_code=status.HTTP_201_CREATED)
async def record_payment(
    client_id: str,
    payload: PaymentCreate,
    actor_id: str = Depends(get_current_actor),
    services: BillingServices = Depends(get_services)
):
    """Record a payment and allocate it oldest-due-first."""
    outcome = await services.payments.process_payment(
        client_id=client_id,
        amount=payload.amount,
        method=payload.method,
        reference=payload.reference,
        received_by=actor_id,
        payment_date=payload.payment_date,
        notify=payload.notify,
    )
    return PaymentOutcomeResponse(
        payment=PaymentResponse.model_validate(outcome.ledger_entry),
        installment_allocations=[InstallmentAllocationResponse.model_validate(a) for a in outcome.installment_allocations],
        invoice_allocations=[InvoiceAllocationResponse.model_validate(a) for a in outcome.invoice_allocations],
        unallocated_amount=outcome.unallocated_amount,
    )


@router.get("/{client_id}/payments", response_model=List[PaymentResponse])
async def list_client_payments(
    client_id: str,
    actor_id: str = Depends(get_current_actor),
    services: BillingServices = Depends(get_services)
):
    entries = await services.payments.get_payment_history(client_id)
    return [PaymentResponse.model_validate(e) for e in entries]


@router.get("/{client_id}/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    client_id: str,
    actor_id: str = Depends(get_current_actor),
    services: BillingServices = Depends(get_services)
):
    dashboard = await services.dashboard.get_client_payment_dashboard(client_id)
    response = DashboardResponse.model_validate(dashboard)
    if dashboard.next_payment is not None:
        response.show_reminder = should_show_reminder(
            dashboard.next_payment.due_date, services.clock.today()
        )
    return response


@router.get("/{client_id}/consistency", response_model=ConsistencyResponse)
async def check_consistency(
    client_id: str,
    actor_id: str = Depends(get_current_actor),
    services: BillingServices = Depends(get_services)
):
    report = await services.dashboard.check_consistency(client_id)
    return ConsistencyResponse.model_validate(report)


@router.get("/{client_id}/invoices", response_model=List[InvoiceResponse])
async def list_client_invoices(
    client_id: str,
    actor_id: str = Depends(get_current_actor),
    services: BillingServices = Depends(get_services)
):
    invoices = await services.invoices.list_client_invoices(client_id)
    return [InvoiceResponse.model_validate(i) for i in invoices]


@router.post("/{client_id}/reminders", response_model=ManualReminderResponse)
async def send_manual_reminder(
    client_id: str,
    payload: ManualReminderCreate,
    actor_id: str = Depends(get_current_actor),
    services: BillingServices = Depends(get_services)
):
    """Send a reminder right away, regardless of the schedule."""
    delivered = await services.reminders.send_manual_reminder(client_id, payload.amount, payload.kind)
    return ManualReminderResponse(
        client_id=client_id,
        amount=payload.amount,
        kind=payload.kind,
        delivered=delivered,
    )
