"""Static learning-activity catalog."""

from brightbuddy.modules.activities.catalog import ACTIVITIES, ActivityCatalog

__all__ = ["ACTIVITIES", "ActivityCatalog"]
