from fastapi import APIRouter
from chantier_billing.api.v1.endpoints import clients, invoices, reminders, stats

api_router = APIRouter()

api_router.include_router(clients.router, prefix="/clients", tags=["clients"])
api_router.include_router(invoices.router, prefix="/invoices", tags=["invoices"])
api_router.include_router(reminders.router, prefix="/reminders", tags=["reminders"])
api_router.include_router(stats.router, tags=["stats"])
