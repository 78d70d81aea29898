"""
BrightBuddy Test Suite
======================

Test Organization
-----------------
- tests/unit/          : In-memory store and a frozen clock, no external services
- tests/unit/domain/   : Pure domain model rules
- tests/integration/   : Store contract against Redis and PostgreSQL testcontainers

Running
-------
- ``pytest -m unit`` for the fast suite
- ``pytest -m integration`` needs Docker; tests skip when it is unavailable
"""
