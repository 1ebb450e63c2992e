"""
Interface definitions for the flight price alert pipeline.

Provides abstract base classes for the transports the matching engine
depends on.
"""

from .transports import PriceEventQueue, PreferenceStore, DeliveryGateway

__all__ = [
    'PriceEventQueue',
    'PreferenceStore',
    'DeliveryGateway',
]
