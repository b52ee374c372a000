"""
MongoBillingStore - BillingStore on MongoDB through motor.

Atomic batches run inside a multi-document transaction (replica set
required). Schedule and invoice updates filter on the version read by the
caller, so a concurrent writer makes the update match nothing and the whole
transaction is aborted.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, DuplicateKeyError, OperationFailure, PyMongoError

from chantier_billing.core.exceptions import (
    BatchWriteError,
    ConcurrentUpdateError,
    ConnectivityBlockedError,
    PermissionDeniedError,
    ScheduleAlreadyExistsError,
    StoreError,
)
from chantier_billing.core.logging import get_logger
from chantier_billing.db.mongo import INVOICES, PAYMENTS, SCHEDULES
from chantier_billing.models.invoice import Invoice
from chantier_billing.models.payment import PaymentLedgerEntry
from chantier_billing.models.schedule import PaymentSchedule, ScheduleStatus
from chantier_billing.repositories.batch import BatchOperation, OperationKind, WriteBatch
from chantier_billing.repositories.store import BillingStore

logger = get_logger(__name__)

# Server error codes for missing rights
_PERMISSION_CODES = {13, 18}  # Unauthorized, AuthenticationFailed


def to_document(value: Any) -> Any:
    """Make a model dump storable: BSON has datetimes but no plain dates or enums."""
    if isinstance(value, dict):
        return {k: to_document(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_document(v) for v in value]
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, Enum):
        return value.value
    return value


def translate_error(exc: PyMongoError) -> Optional[StoreError]:
    """Map driver failures that must reach the caller; None for the rest."""
    if isinstance(exc, ConnectionFailure):
        return ConnectivityBlockedError(str(exc))
    if isinstance(exc, OperationFailure) and exc.code in _PERMISSION_CODES:
        return PermissionDeniedError(str(exc))
    return None


class MongoBillingStore(BillingStore):
    """Repository over the schedules, invoices and payment_history collections."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.schedules = db[SCHEDULES]
        self.invoices = db[INVOICES]
        self.payments = db[PAYMENTS]

    def _read_failed(self, operation: str, exc: PyMongoError, default: Any) -> Any:
        translated = translate_error(exc)
        if translated is not None:
            raise translated from exc
        logger.warning("Store read %s failed, treating as not found: %s", operation, exc)
        return default

    # ===== READS =====

    async def get_active_schedule(self, client_id: str) -> Optional[PaymentSchedule]:
        try:
            doc = await self.schedules.find_one({
                "client_id": client_id,
                "status": ScheduleStatus.ACTIVE.value
            })
        except PyMongoError as exc:
            return self._read_failed("get_active_schedule", exc, None)
        return PaymentSchedule(**doc) if doc else None

    async def list_active_schedules(self) -> List[PaymentSchedule]:
        try:
            docs = await self.schedules.find({
                "status": ScheduleStatus.ACTIVE.value
            }).to_list(None)
        except PyMongoError as exc:
            return self._read_failed("list_active_schedules", exc, [])
        return [PaymentSchedule(**doc) for doc in docs]

    async def get_client_invoices(self, client_id: str) -> List[Invoice]:
        try:
            docs = await self.invoices.find({
                "client_id": client_id
            }).sort([("issue_date", -1), ("invoice_number", -1)]).to_list(None)
        except PyMongoError as exc:
            return self._read_failed("get_client_invoices", exc, [])
        return [Invoice(**doc) for doc in docs]

    async def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        try:
            doc = await self.invoices.find_one({"_id": invoice_id})
        except PyMongoError as exc:
            return self._read_failed("get_invoice", exc, None)
        return Invoice(**doc) if doc else None

    async def get_client_payments(self, client_id: str) -> List[PaymentLedgerEntry]:
        try:
            docs = await self.payments.find({
                "client_id": client_id
            }).sort([("date", -1), ("created_at", -1)]).to_list(None)
        except PyMongoError as exc:
            return self._read_failed("get_client_payments", exc, [])
        return [PaymentLedgerEntry(**doc) for doc in docs]

    async def list_payments(self, limit: Optional[int] = None) -> List[PaymentLedgerEntry]:
        try:
            cursor = self.payments.find({}).sort([("date", -1), ("created_at", -1)])
            if limit is not None:
                cursor = cursor.limit(limit)
            docs = await cursor.to_list(None)
        except PyMongoError as exc:
            return self._read_failed("list_payments", exc, [])
        return [PaymentLedgerEntry(**doc) for doc in docs]

    async def list_client_ids(self) -> List[str]:
        try:
            schedule_clients = await self.schedules.distinct("client_id")
            invoice_clients = await self.invoices.distinct("client_id")
        except PyMongoError as exc:
            return self._read_failed("list_client_ids", exc, [])
        return sorted(set(schedule_clients) | set(invoice_clients))

    async def last_invoice_number(self, year: int) -> Optional[str]:
        try:
            docs = await self.invoices.find({
                "invoice_number": {"$gte": f"INV-{year}-000", "$lte": f"INV-{year}-999"}
            }).sort("invoice_number", -1).limit(1).to_list(1)
        except PyMongoError as exc:
            return self._read_failed("last_invoice_number", exc, None)
        return docs[0]["invoice_number"] if docs else None

    # ===== WRITES =====

    async def update_invoice_fields(self, invoice_id: str, fields: Dict[str, Any]) -> Optional[Invoice]:
        updates = to_document(dict(fields))
        updates["updated_at"] = datetime.now(timezone.utc)
        try:
            result = await self.invoices.find_one_and_update(
                {"_id": invoice_id},
                {"$set": updates, "$inc": {"version": 1}},
                return_document=True
            )
        except PyMongoError as exc:
            translated = translate_error(exc)
            raise (translated or BatchWriteError(str(exc))) from exc
        return Invoice(**result) if result else None

    async def commit(self, batch: WriteBatch) -> None:
        if batch.is_empty():
            return
        try:
            async with await self.db.client.start_session() as session:
                async with session.start_transaction():
                    for op in batch.operations:
                        await self._apply(op, session)
        except (ConcurrentUpdateError, BatchWriteError, ScheduleAlreadyExistsError):
            raise
        except PyMongoError as exc:
            if exc.has_error_label("TransientTransactionError"):
                # Write conflict with another transaction
                logger.warning("Batch of %s operation(s) hit a transient conflict: %s", len(batch), exc)
                raise ConcurrentUpdateError(batch.operations[0].record_id) from exc
            translated = translate_error(exc)
            logger.error("Batch of %s operation(s) aborted: %s", len(batch), exc)
            raise (translated or BatchWriteError(str(exc))) from exc

    async def _apply(self, op: BatchOperation, session) -> None:
        if op.kind == OperationKind.INSERT_SCHEDULE:
            try:
                await self.schedules.insert_one(
                    to_document(op.schedule.model_dump(by_alias=True, mode="python")),
                    session=session
                )
            except DuplicateKeyError as exc:
                # Partial unique index: one active schedule per client
                raise ScheduleAlreadyExistsError(op.schedule.client_id) from exc

        elif op.kind == OperationKind.UPDATE_SCHEDULE:
            result = await self.schedules.update_one(
                {"_id": op.record_id, "version": op.expected_version},  # Optimistic lock
                {"$set": {
                    "installments": to_document(
                        [i.model_dump(mode="python") for i in op.schedule.installments]
                    ),
                    "status": op.schedule.status.value,
                    "version": op.expected_version + 1,
                    "updated_at": datetime.now(timezone.utc)
                }},
                session=session
            )
            if result.matched_count == 0:
                raise ConcurrentUpdateError(op.record_id, op.expected_version)

        elif op.kind == OperationKind.DELETE_SCHEDULE:
            await self.schedules.delete_one({"_id": op.record_id}, session=session)

        elif op.kind == OperationKind.INSERT_INVOICE:
            await self.invoices.insert_one(
                to_document(op.invoice.model_dump(by_alias=True, mode="python")),
                session=session
            )

        elif op.kind == OperationKind.UPDATE_INVOICE:
            doc = to_document(op.invoice.model_dump(by_alias=True, mode="python"))
            doc["version"] = op.expected_version + 1
            doc["updated_at"] = datetime.now(timezone.utc)
            result = await self.invoices.replace_one(
                {"_id": op.record_id, "version": op.expected_version},  # Optimistic lock
                doc,
                session=session
            )
            if result.matched_count == 0:
                raise ConcurrentUpdateError(op.record_id, op.expected_version)

        elif op.kind == OperationKind.DELETE_INVOICE:
            await self.invoices.delete_one({"_id": op.record_id}, session=session)

        elif op.kind == OperationKind.APPEND_PAYMENT:
            await self.payments.insert_one(
                to_document(op.payment.model_dump(by_alias=True, mode="python")),
                session=session
            )

        elif op.kind == OperationKind.DELETE_PAYMENT:
            await self.payments.delete_one({"_id": op.record_id}, session=session)
