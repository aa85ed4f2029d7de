from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ConfigDict


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Document(BaseModel):
    """
    Base for persisted documents.

    `id` is the stringified ObjectId; repositories convert `_id` on read and
    drop it on insert so MongoDB assigns one.
    """
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    id: Optional[str] = Field(default=None, validation_alias="_id", serialization_alias="_id")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def to_document(self) -> Dict[str, Any]:
        """Dump for MongoDB: civil dates become YYYY-MM-DD strings, enums their values."""
        doc = self.model_dump(by_alias=True, exclude_none=True)
        return {key: bson_value(value) for key, value in doc.items()}


def bson_value(value: Any) -> Any:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value
