"""Dependency injection for BrightBuddy domain services."""

from brightbuddy.core.services.container import ServiceContainer

__all__ = ["ServiceContainer"]
