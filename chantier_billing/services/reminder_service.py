"""
Payment reminders.

Each unpaid installment falls in at most one bucket for a given day:
- upcoming: due exactly REMINDER_LEAD_DAYS days from today
- due_today: due today
- overdue: due before today (recomputed on every scan)

The scan does not remember what it already sent; the notifier is called once
per (installment, bucket) on every run.
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional

from chantier_billing.core.clock import Clock, system_clock
from chantier_billing.core.config import settings
from chantier_billing.core.logging import get_logger
from chantier_billing.models.schedule import Installment, InstallmentStatus
from chantier_billing.repositories.store import BillingStore
from chantier_billing.services.notifier import LoggingNotifier, Notifier, ReminderKind

logger = get_logger(__name__)


@dataclass
class ReminderDispatch:
    client_id: str
    installment_number: int
    amount: int
    due_date: date
    kind: ReminderKind
    delivered: bool


def classify_installment(
    installment: Installment,
    today: date,
    lead_days: Optional[int] = None,
) -> Optional[ReminderKind]:
    if lead_days is None:
        lead_days = settings.REMINDER_LEAD_DAYS
    if installment.status == InstallmentStatus.PAID:
        return None
    if installment.due_date == today:
        return ReminderKind.DUE_TODAY
    if installment.due_date < today:
        return ReminderKind.OVERDUE
    if installment.due_date == today + timedelta(days=lead_days):
        return ReminderKind.UPCOMING
    return None


def should_show_reminder(due_date: Optional[date], today: date, window_days: int = 10) -> bool:
    """
    Display hint for the billing view's manual reminder button: due within the
    next ``window_days`` days, or today falls in the last ``window_days`` days
    of the month.
    """
    if due_date is None:
        return False
    days_until_due = (due_date - today).days
    end_of_month = today.replace(day=calendar.monthrange(today.year, today.month)[1])
    days_until_month_end = (end_of_month - today).days
    return 0 <= days_until_due <= window_days or 0 <= days_until_month_end <= window_days


class ReminderService:

    def __init__(
        self,
        store: BillingStore,
        notifier: Optional[Notifier] = None,
        clock: Clock = system_clock,
    ):
        self.store = store
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock

    async def check_payment_reminders(self, today: Optional[date] = None) -> List[ReminderDispatch]:
        """Scan active schedules and notify every installment that falls in a bucket."""
        if today is None:
            today = self.clock.today()

        dispatches: List[ReminderDispatch] = []
        schedules = await self.store.list_active_schedules()

        for schedule in schedules:
            for installment in schedule.sorted_installments():
                kind = classify_installment(installment, today)
                if kind is None:
                    continue

                amount = installment.outstanding_amount()
                delivered = await self._send(schedule.client_id, amount, installment.due_date, kind)
                dispatches.append(ReminderDispatch(
                    client_id=schedule.client_id,
                    installment_number=installment.installment_number,
                    amount=amount,
                    due_date=installment.due_date,
                    kind=kind,
                    delivered=delivered,
                ))

        logger.info(
            "Reminder scan for %s: %s schedule(s), %s reminder(s)",
            today.isoformat(), len(schedules), len(dispatches),
        )
        return dispatches

    async def send_manual_reminder(
        self,
        client_id: str,
        amount: int,
        kind: ReminderKind = ReminderKind.OVERDUE,
    ) -> bool:
        """Reminder triggered by an administrator, dated today."""
        return await self._send(client_id, amount, self.clock.today(), kind)

    async def _send(self, client_id: str, amount: int, due_date: date, kind: ReminderKind) -> bool:
        try:
            await self.notifier.send_payment_reminder(client_id, amount, due_date, kind)
        except Exception:
            logger.exception("Reminder (%s) for client %s could not be sent", kind.value, client_id)
            return False
        return True
