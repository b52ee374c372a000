from typing import List, Optional
from fastapi import APIRouter, Depends

from chantier_billing.api.deps import BillingServices, get_services
from chantier_billing.core.auth import get_current_actor
from chantier_billing.schemas.dashboard import ReminderCheckRequest, ReminderResponse

router = APIRouter()


@router.post("/check", response_model=List[ReminderResponse])
async def check_reminders(
    payload: Optional[ReminderCheckRequest] = None,
    actor_id: str = Depends(get_current_actor),
    services: BillingServices = Depends(get_services)
):
    """Run the daily reminder scan now."""
    today = payload.today if payload else None
    dispatches = await services.reminders.check_payment_reminders(today)
    return [ReminderResponse.model_validate(d) for d in dispatches]
