from datetime import datetime, timezone
from typing import Any

from bson import ObjectId
from pydantic import BaseModel, Field, ConfigDict, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(ObjectId())


class MongoModel(BaseModel):
    """Top-level document. Ids are ObjectId hex strings stored under ``_id``."""

    id: str = Field(default_factory=new_id, alias="_id")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True
    )

    @field_validator("id", mode="before")
    @classmethod
    def coerce_object_id(cls, value: Any) -> Any:
        if isinstance(value, ObjectId):
            return str(value)
        return value


def coerce_date(value: Any) -> Any:
    """Mongo has no date type, dates come back as midnight datetimes."""
    if isinstance(value, datetime):
        return value.date()
    return value
