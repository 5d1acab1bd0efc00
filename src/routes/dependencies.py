"""Request-scoped dependencies: caller identity and controllers."""
from typing import Optional

from fastapi import Depends, Header, HTTPException

from controllers import DocumentController, ExtractionController, SessionController
from core.logging_config import get_logger
from models.enums import PlanTypeEnum
from models.user import UserIdentity, UserProfile
from services.db_service import MongoRepository, get_repository

logger = get_logger(__name__)


def get_session_controller() -> SessionController:
    return SessionController()


def get_document_controller() -> DocumentController:
    return DocumentController()


def get_extraction_controller() -> ExtractionController:
    return ExtractionController()


def get_current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
    x_user_plan: Optional[str] = Header(None),
    x_tokens_remaining: Optional[int] = Header(None),
) -> UserIdentity:
    """
    Identity forwarded by the authentication gateway.

    Credentials are never checked here; the gateway in front of the API
    authenticates the caller and sets the `X-User-*` headers.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing authenticated user")
    try:
        plan = PlanTypeEnum((x_user_plan or PlanTypeEnum.FREE.value).lower())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown plan '{x_user_plan}'")
    return UserIdentity(
        id=x_user_id,
        email=x_user_email or "",
        plan_type=plan,
        tokens_remaining=x_tokens_remaining or 0,
    )


def sync_user_profile(
    user: UserIdentity = Depends(get_current_user),
    repository: MongoRepository = Depends(get_repository),
) -> UserIdentity:
    """Mirror the caller's plan so background workers can enforce it."""
    repository.upsert_profile(UserProfile.from_identity(user))
    return user
