"""
BrightBuddy validation package.

Canonical import surface for ``InputValidator``, the low-level checks every
service runs on caller-supplied values.
"""

from brightbuddy.core.validation.input_validator import InputValidator

__all__ = ["InputValidator"]
