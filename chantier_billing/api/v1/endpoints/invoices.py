from fastapi import APIRouter, Depends, status

from chantier_billing.api.deps import BillingServices, get_services
from chantier_billing.core.auth import get_current_actor
from chantier_billing.models.invoice import InvoiceItem
from chantier_billing.schemas.invoice import InvoiceCreate, InvoicePaymentCreate, InvoiceResponse

router = APIRouter()


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_in: InvoiceCreate,
    actor_id: str = Depends(get_current_actor),
    services: BillingServices = Depends(get_services)
):
    """Create an ad hoc invoice (draft)."""
    invoice = await services.invoices.create_invoice(
        client_id=invoice_in.client_id,
        total_amount=invoice_in.total_amount,
        due_date=invoice_in.due_date,
        type=invoice_in.type,
        description=invoice_in.description,
        items=[InvoiceItem(**item.model_dump()) for item in invoice_in.items],
        project_id=invoice_in.project_id,
        chantier_id=invoice_in.chantier_id,
        notes=invoice_in.notes,
        created_by=actor_id,
    )
    return InvoiceResponse.model_validate(invoice)


@router.post("/{invoice_id}/payments", response_model=InvoiceResponse)
async def pay_invoice(
    invoice_id: str,
    payload: InvoicePaymentCreate,
    actor_id: str = Depends(get_current_actor),
    services: BillingServices = Depends(get_services)
):
    """Pay down a single invoice."""
    invoice = await services.invoices.record_invoice_payment(
        invoice_id,
        payload.amount,
        payload.method,
        reference=payload.reference,
        received_by=actor_id,
    )
    return InvoiceResponse.model_validate(invoice)


@router.post("/{invoice_id}/send", response_model=InvoiceResponse)
async def send_invoice(
    invoice_id: str,
    actor_id: str = Depends(get_current_actor),
    services: BillingServices = Depends(get_services)
):
    invoice = await services.invoices.mark_invoice_as_sent(invoice_id)
    return InvoiceResponse.model_validate(invoice)


@router.delete("/{invoice_id}", response_model=InvoiceResponse)
async def cancel_invoice(
    invoice_id: str,
    actor_id: str = Depends(get_current_actor),
    services: BillingServices = Depends(get_services)
):
    """Soft delete: the invoice stays on record as cancelled."""
    invoice = await services.invoices.cancel_invoice(invoice_id)
    return InvoiceResponse.model_validate(invoice)
