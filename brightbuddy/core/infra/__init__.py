"""
Infrastructure orchestration for BrightBuddy.

Module Contents
---------------
- ApplicationContext: startup and shutdown of logging, config, storage,
  event bus and the service container
"""

from brightbuddy.core.infra.application_context import ApplicationContext

__all__ = ["ApplicationContext"]
