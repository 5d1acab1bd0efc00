"""Subscription plan enumeration."""
from enum import Enum


class PlanTypeEnum(str, Enum):
    FREE = "free"
    PRO = "pro"
    PREMIUM = "premium"
