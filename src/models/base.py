"""Shared helpers for records persisted in MongoDB."""
import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class MongoRecord(BaseModel):
    """
    Base class for records stored one-per-document in MongoDB.

    The record `id` is stored as `_id`; `version` is the optimistic
    concurrency counter bumped by every compare-and-set write.
    """

    id: str
    version: int = 0

    def to_mongo(self) -> dict:
        data = {}
        for key, value in self.model_dump().items():
            data[key] = value.value if isinstance(value, Enum) else value
        data["_id"] = data.pop("id")
        return data

    @classmethod
    def from_mongo(cls, data: dict):
        data = dict(data)
        data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)
