"""Pending user notifications."""

from brightbuddy.modules.notifications.service import NotificationService

__all__ = ["NotificationService"]
