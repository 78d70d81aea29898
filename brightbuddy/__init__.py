"""BrightBuddy freemium usage and achievement progression services."""

__version__ = "1.0.0"
