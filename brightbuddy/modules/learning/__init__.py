"""Learning use cases spanning the ledger and progression."""

from brightbuddy.modules.learning.models import (
    CompletionOutcome,
    ProgressionSummary,
    UpgradeOutcome,
)
from brightbuddy.modules.learning.service import LearningService

__all__ = ["CompletionOutcome", "LearningService", "ProgressionSummary", "UpgradeOutcome"]
