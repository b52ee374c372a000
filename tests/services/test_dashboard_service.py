import pytest
from datetime import date, datetime, timezone

from chantier_billing.repositories.batch import WriteBatch

NOW = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_dashboard_for_unknown_client(services):
    dashboard = await services.dashboard.get_client_payment_dashboard("nobody")

    assert dashboard.client_id == "nobody"
    assert dashboard.total_project_cost == 0
    assert dashboard.total_paid == 0
    assert dashboard.total_remaining == 0
    assert dashboard.total_overdue == 0
    assert dashboard.current_schedule is None
    assert dashboard.next_payment is None
    assert dashboard.overdue_payments == []
    assert dashboard.recent_invoices == []
    assert dashboard.total_invoices == 0
    assert dashboard.last_updated == NOW


@pytest.mark.asyncio
async def test_dashboard_totals(services, client_schedule):
    await services.invoices.create_invoice(
        client_id="client-1", total_amount=900, due_date=date(2024, 3, 1)
    )
    cancelled = await services.invoices.create_invoice(
        client_id="client-1", total_amount=5000, due_date=date(2024, 3, 1)
    )
    await services.invoices.cancel_invoice(cancelled.id)
    await services.payments.process_payment("client-1", 150, "cash", notify=False)

    dashboard = await services.dashboard.get_client_payment_dashboard("client-1")

    # Deposit 100 + extra 900 + cancelled 5000: every issued invoice counts
    assert dashboard.total_project_cost == 6000
    assert dashboard.total_paid == 150
    assert dashboard.total_remaining == 5850
    assert dashboard.total_invoices == 3
    assert dashboard.current_schedule.id == client_schedule.id
    assert dashboard.next_payment.installment_number == 1
    assert dashboard.next_payment.paid_amount == 50
    assert [p.amount for p in dashboard.recent_payments] == [150]


@pytest.mark.asyncio
async def test_project_cost_counts_cancelled_invoices(services, client_schedule):
    deposit = (await services.invoices.list_client_invoices("client-1"))[0]
    await services.invoices.cancel_invoice(deposit.id)

    dashboard = await services.dashboard.get_client_payment_dashboard("client-1")

    assert dashboard.total_project_cost == 100
    assert dashboard.total_remaining == 100


@pytest.mark.asyncio
async def test_dashboard_overdue(services):
    await services.schedules.initialize_client_accounting(
        client_id="client-1", project_id=None, total_amount=1000, months=9,
        deposit_amount=100, start_date=date(2023, 11, 15),
    )
    await services.payments.process_payment("client-1", 30, "cash", notify=False)

    dashboard = await services.dashboard.get_client_payment_dashboard("client-1")

    # #0 (Nov) and #1 (Dec) are overdue, #2 is due today and not yet late
    assert [i.installment_number for i in dashboard.overdue_payments] == [0, 1]
    assert dashboard.total_overdue == 170
    assert dashboard.next_payment.installment_number == 0


@pytest.mark.asyncio
async def test_dashboard_recent_lists_are_capped(services, client_schedule):
    for i in range(6):
        await services.invoices.create_invoice(
            client_id="client-1", total_amount=10, due_date=date(2024, 2, 1)
        )
    for i in range(7):
        await services.payments.process_payment("client-1", 10, "cash", notify=False)

    dashboard = await services.dashboard.get_client_payment_dashboard("client-1")

    assert len(dashboard.recent_invoices) == 5
    assert dashboard.total_invoices == 7
    assert len(dashboard.recent_payments) == 5


@pytest.mark.asyncio
async def test_dashboard_is_a_pure_read(services, store, client_schedule):
    await services.payments.process_payment("client-1", 150, "cash", notify=False)
    commits = store.commit_count

    first = await services.dashboard.get_client_payment_dashboard("client-1")
    second = await services.dashboard.get_client_payment_dashboard("client-1")

    assert first == second
    assert store.commit_count == commits


@pytest.mark.asyncio
async def test_global_stats(services, client_schedule):
    await services.schedules.initialize_client_accounting(
        client_id="client-2", project_id=None, total_amount=2000, months=4,
        deposit_amount=300, start_date=date(2023, 12, 1),
    )
    await services.payments.process_payment("client-1", 100, "cash", notify=False)
    await services.payments.process_payment("client-2", 50, "cash", notify=False)

    stats = await services.dashboard.get_global_stats()

    assert stats.client_count == 2
    # Deposit invoices only: 100 + 300
    assert stats.total_expected == 400
    assert stats.total_collected == 150
    # client-2: deposit 300 (Dec 1, 250 left) and #1 (Jan 1, 425) are late
    assert stats.total_overdue == 250 + 425
    assert stats.collection_rate == pytest.approx(37.5)


@pytest.mark.asyncio
async def test_global_stats_empty(services):
    stats = await services.dashboard.get_global_stats()

    assert stats.client_count == 0
    assert stats.collection_rate == 0.0


@pytest.mark.asyncio
async def test_consistency_holds_after_payments(services, client_schedule):
    await services.payments.process_payment("client-1", 150, "cash", notify=False)
    await services.payments.process_payment("client-1", 2000, "cash", notify=False)

    report = await services.dashboard.check_consistency("client-1")

    assert report.consistent
    assert report.schedule_paid == 1000
    assert report.invoices_paid == 100
    assert report.ledger_total == 2150
    assert report.discrepancies == []


@pytest.mark.asyncio
async def test_consistency_flags_schedule_ahead_of_ledger(services, store, client_schedule):
    schedule = await store.get_active_schedule("client-1")
    schedule.installments[0].paid_amount = 100
    batch = WriteBatch()
    batch.update_schedule(schedule, expected_version=schedule.version)
    await store.commit(batch)

    report = await services.dashboard.check_consistency("client-1")

    assert not report.consistent
    assert report.schedule_paid == 100
    assert report.ledger_total == 0
    assert len(report.discrepancies) == 1
