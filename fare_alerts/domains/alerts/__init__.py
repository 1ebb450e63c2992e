"""Alerts domain package.

Matches price events against user preferences and hands formatted alerts to
a delivery gateway.
"""

__all__ = [
    "matching",
    "engine",
    "delivery",
    "tasks",
]
