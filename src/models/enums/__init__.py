"""Enums package initialization."""

from models.enums.FileTypeEnum import FileTypeEnum
from models.enums.PlanTypeEnum import PlanTypeEnum
from models.enums.StatusEnums import (
    DocumentStatusEnum,
    ExtractionStatusEnum,
    SessionStatusEnum,
)

__all__ = [
    "FileTypeEnum",
    "PlanTypeEnum",
    "DocumentStatusEnum",
    "ExtractionStatusEnum",
    "SessionStatusEnum",
]
