import asyncio
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from chantier_billing.api.deps import build_services, get_services
from chantier_billing.core.auth import get_current_actor
from chantier_billing.core.clock import FixedClock
from chantier_billing.main import app
from chantier_billing.repositories.memory_store import InMemoryBillingStore
from chantier_billing.services.notifier import Notifier

# Monday 15 January 2024, 09:00 UTC
TODAY = date(2024, 1, 15)
NOW = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    """Clock frozen at NOW."""
    return FixedClock(NOW)


@pytest.fixture
def store():
    return InMemoryBillingStore()


class YieldingBillingStore(InMemoryBillingStore):
    """In-memory store that gives the event loop a turn after every read, as a driver would."""

    async def get_active_schedule(self, client_id):
        schedule = await super().get_active_schedule(client_id)
        await asyncio.sleep(0)
        return schedule

    async def get_client_invoices(self, client_id):
        invoices = await super().get_client_invoices(client_id)
        await asyncio.sleep(0)
        return invoices

    async def get_invoice(self, invoice_id):
        invoice = await super().get_invoice(invoice_id)
        await asyncio.sleep(0)
        return invoice


@pytest.fixture
def yielding_store():
    return YieldingBillingStore()


@pytest.fixture
def notifier():
    """Notifier double recording every call."""
    return AsyncMock(spec=Notifier)


@pytest.fixture
def services(store, notifier, clock):
    return build_services(store, notifier=notifier, clock=clock)


@pytest_asyncio.fixture
async def client_schedule(services):
    """
    Client "client-1": total 1000, deposit 100, 9 months from TODAY.

    Installments: #0 = 100 due TODAY, #1..#9 = 100 due on the 15th of each
    following month. One INITIAL invoice of 100 due TODAY + 7 days.
    """
    return await services.schedules.initialize_client_accounting(
        client_id="client-1",
        project_id="project-1",
        total_amount=1000,
        months=9,
        deposit_amount=100,
    )


@pytest.fixture
def test_client(services):
    """FastAPI test client on the in-memory services, authenticated as admin-1."""
    app.dependency_overrides[get_services] = lambda: services
    app.dependency_overrides[get_current_actor] = lambda: "admin-1"
    yield TestClient(app)
    app.dependency_overrides.clear()
