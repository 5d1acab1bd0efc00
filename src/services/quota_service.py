"""
Quota Guard 🎟️
==============

Plan-based ceilings on document count and token consumption.

Denials are expected, user-facing outcomes: the `can_*` checks return a
`QuotaDecision` and the `ensure_*` variants raise `QuotaExceeded` carrying it.
"""
from typing import Optional

from pydantic import BaseModel

from core.config import PlanLimits, QuotaSettings, get_settings
from core.exceptions import QuotaExceeded
from core.logging_config import get_logger
from models.enums import PlanTypeEnum
from models.user import UserIdentity

logger = get_logger(__name__)


class QuotaDecision(BaseModel):
    allowed: bool
    resource: str  # "documents" or "tokens"
    plan_type: str
    limit: int
    used: int
    requested: int
    reason: str = ""

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)


class QuotaUsage(BaseModel):
    plan_type: str
    max_documents: int
    documents_used: int
    documents_remaining: int
    max_tokens: int
    tokens_used: int
    tokens_remaining: int


def _plan_name(user: UserIdentity) -> str:
    return PlanTypeEnum(user.plan_type).value


class QuotaGuard:
    """Checks uploads and extractions against the user's plan limits."""

    def __init__(self, settings: Optional[QuotaSettings] = None):
        self.settings = settings or get_settings().quota

    def limits_for(self, user: UserIdentity) -> PlanLimits:
        return self.settings.limits_for(_plan_name(user))

    def can_upload(
        self,
        user: UserIdentity,
        existing_document_count: int,
        incoming_file_count: int,
    ) -> QuotaDecision:
        limits = self.limits_for(user)
        allowed = existing_document_count + incoming_file_count <= limits.max_documents
        reason = ""
        if not allowed:
            reason = (
                f"Upload of {incoming_file_count} file(s) would exceed the "
                f"{_plan_name(user)} plan limit of {limits.max_documents} documents "
                f"({existing_document_count} already uploaded)"
            )
            logger.warning(
                "Upload denied by quota",
                extra={"user_id": user.id, "existing": existing_document_count, "incoming": incoming_file_count},
            )
        return QuotaDecision(
            allowed=allowed,
            resource="documents",
            plan_type=_plan_name(user),
            limit=limits.max_documents,
            used=existing_document_count,
            requested=incoming_file_count,
            reason=reason,
        )

    def can_consume_tokens(self, user: UserIdentity, tokens_used: int, amount: int) -> QuotaDecision:
        limits = self.limits_for(user)
        allowed = tokens_used + amount <= limits.max_tokens
        reason = ""
        if not allowed:
            reason = (
                f"Token budget of the {_plan_name(user)} plan exhausted "
                f"({tokens_used}/{limits.max_tokens} used, {amount} requested)"
            )
            logger.warning(
                "Token consumption denied by quota",
                extra={"user_id": user.id, "tokens_used": tokens_used, "requested": amount},
            )
        return QuotaDecision(
            allowed=allowed,
            resource="tokens",
            plan_type=_plan_name(user),
            limit=limits.max_tokens,
            used=tokens_used,
            requested=amount,
            reason=reason,
        )

    def ensure_can_upload(self, user: UserIdentity, existing_document_count: int, incoming_file_count: int):
        decision = self.can_upload(user, existing_document_count, incoming_file_count)
        if not decision.allowed:
            raise QuotaExceeded(decision)
        return decision

    def ensure_can_consume_tokens(self, user: UserIdentity, tokens_used: int, amount: int):
        decision = self.can_consume_tokens(user, tokens_used, amount)
        if not decision.allowed:
            raise QuotaExceeded(decision)
        return decision

    def usage_summary(self, user: UserIdentity, document_count: int, tokens_used: int) -> QuotaUsage:
        limits = self.limits_for(user)
        return QuotaUsage(
            plan_type=_plan_name(user),
            max_documents=limits.max_documents,
            documents_used=document_count,
            documents_remaining=max(limits.max_documents - document_count, 0),
            max_tokens=limits.max_tokens,
            tokens_used=tokens_used,
            tokens_remaining=max(limits.max_tokens - tokens_used, 0),
        )
