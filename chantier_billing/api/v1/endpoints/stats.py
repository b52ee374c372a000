from typing import List, Optional
from fastapi import APIRouter, Depends, Query

from chantier_billing.api.deps import BillingServices, get_services
from chantier_billing.core.auth import get_current_actor
from chantier_billing.schemas.dashboard import GlobalStatsResponse
from chantier_billing.schemas.payment import PaymentResponse

router = APIRouter()


@router.get("/stats", response_model=GlobalStatsResponse)
async def get_global_stats(
    actor_id: str = Depends(get_current_actor),
    services: BillingServices = Depends(get_services)
):
    """Expected, collected and overdue totals across all clients."""
    stats = await services.dashboard.get_global_stats()
    return GlobalStatsResponse.model_validate(stats)


@router.get("/payments", response_model=List[PaymentResponse])
async def list_payments(
    limit: Optional[int] = Query(default=50, ge=1, le=500),
    actor_id: str = Depends(get_current_actor),
    services: BillingServices = Depends(get_services)
):
    """Most recent payments across clients."""
    entries = await services.payments.list_all_payments(limit)
    return [PaymentResponse.model_validate(e) for e in entries]
