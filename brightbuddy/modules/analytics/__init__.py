"""Analytics sink: event log, aggregates and insights."""

from brightbuddy.modules.analytics.models import LearningInsights, SubjectAnalytics, UserAnalytics
from brightbuddy.modules.analytics.service import AnalyticsService

__all__ = ["AnalyticsService", "LearningInsights", "SubjectAnalytics", "UserAnalytics"]
