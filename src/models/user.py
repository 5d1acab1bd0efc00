"""Authenticated user identity and its persisted profile."""
from datetime import datetime

from pydantic import BaseModel, Field

from models.base import MongoRecord, utcnow
from models.enums import PlanTypeEnum


class UserIdentity(BaseModel):
    """Opaque identity handed over by the authentication gateway."""

    id: str
    email: str = ""
    plan_type: PlanTypeEnum = PlanTypeEnum.FREE
    tokens_remaining: int = 0


class UserProfile(MongoRecord):
    """Stored copy of the identity so background workers can read the plan."""

    email: str = ""
    plan_type: PlanTypeEnum = PlanTypeEnum.FREE
    tokens_remaining: int = 0
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_identity(cls, user: UserIdentity) -> "UserProfile":
        return cls(
            id=user.id,
            email=user.email,
            plan_type=user.plan_type,
            tokens_remaining=user.tokens_remaining,
        )

    def to_identity(self) -> UserIdentity:
        return UserIdentity(
            id=self.id,
            email=self.email,
            plan_type=self.plan_type,
            tokens_remaining=self.tokens_remaining,
        )
