"""
Core infrastructure for BrightBuddy: configuration, logging, events,
storage backends, and application wiring.

Business rules live in ``brightbuddy.modules``; nothing in this package
knows about quotas or achievements.
"""
