"""Freemium usage ledger: subscriptions, daily quota and completion records."""

from brightbuddy.modules.freemium.models import (
    ActivityPermission,
    CompletionReceipt,
    PlanLimits,
    SubscriptionChange,
    UserStats,
)
from brightbuddy.modules.freemium.service import UsageLedgerService

__all__ = [
    "ActivityPermission",
    "CompletionReceipt",
    "PlanLimits",
    "SubscriptionChange",
    "UsageLedgerService",
    "UserStats",
]
