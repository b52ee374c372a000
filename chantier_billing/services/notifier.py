"""Notification collaborator. Delivery is out of this service's hands."""

from abc import ABC, abstractmethod
from datetime import date
from enum import Enum

from chantier_billing.core.logging import get_logger

logger = get_logger(__name__)


class ReminderKind(str, Enum):
    UPCOMING = "upcoming"
    DUE_TODAY = "due_today"
    OVERDUE = "overdue"


class Notifier(ABC):

    @abstractmethod
    async def send_payment_reminder(
        self, client_id: str, amount: int, due_date: date, kind: ReminderKind
    ) -> None:
        ...

    @abstractmethod
    async def notify_payment_received(self, client_id: str, amount: int, note: str) -> None:
        ...


class LoggingNotifier(Notifier):
    """Default notifier: records what would have been sent."""

    async def send_payment_reminder(
        self, client_id: str, amount: int, due_date: date, kind: ReminderKind
    ) -> None:
        logger.info(
            "Payment reminder (%s) for client %s: %s FCFA due %s",
            kind.value, client_id, amount, due_date.isoformat(),
        )

    async def notify_payment_received(self, client_id: str, amount: int, note: str) -> None:
        logger.info("Payment received from client %s: %s FCFA (%s)", client_id, amount, note)
