"""
Service wiring for the HTTP layer.

Every request shares one set of services and one per-client lock registry:
a fresh instance per request would not serialize anything.
"""

from dataclasses import dataclass
from typing import Optional

from chantier_billing.core.clock import Clock, system_clock
from chantier_billing.core.config import settings
from chantier_billing.db.mongo import get_db
from chantier_billing.repositories.billing_store import MongoBillingStore
from chantier_billing.repositories.memory_store import InMemoryBillingStore
from chantier_billing.repositories.store import BillingStore
from chantier_billing.services.dashboard_service import DashboardService
from chantier_billing.services.invoice_service import InvoiceService
from chantier_billing.services.locks import ClientLocks
from chantier_billing.services.notifier import LoggingNotifier, Notifier
from chantier_billing.services.payment_service import PaymentService
from chantier_billing.services.reminder_service import ReminderService
from chantier_billing.services.schedule_service import ScheduleService


@dataclass
class BillingServices:
    store: BillingStore
    schedules: ScheduleService
    invoices: InvoiceService
    payments: PaymentService
    reminders: ReminderService
    dashboard: DashboardService
    clock: Clock


def build_services(
    store: BillingStore,
    notifier: Optional[Notifier] = None,
    clock: Clock = system_clock,
) -> BillingServices:
    notifier = notifier or LoggingNotifier()
    locks = ClientLocks()
    return BillingServices(
        store=store,
        schedules=ScheduleService(store, clock, locks),
        invoices=InvoiceService(store, clock, locks),
        payments=PaymentService(store, notifier, clock, locks),
        reminders=ReminderService(store, notifier, clock),
        dashboard=DashboardService(store, clock),
        clock=clock,
    )


def build_store() -> BillingStore:
    if settings.STORE_BACKEND == "memory":
        return InMemoryBillingStore()
    db = get_db()
    if db is None:
        raise RuntimeError("MongoDB is not connected")
    return MongoBillingStore(db)


_services: Optional[BillingServices] = None


def get_services() -> BillingServices:
    """Dependency: the application-wide services."""
    global _services
    if _services is None:
        _services = build_services(build_store())
    return _services


def reset_services() -> None:
    global _services
    _services = None
