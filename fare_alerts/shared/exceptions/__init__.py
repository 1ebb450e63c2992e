"""
Shared exceptions for the flight price alert pipeline.

Defines the error taxonomy used by the queue transport, the preference
store and the matching engine.
"""

from .pipeline_exceptions import *

__all__ = [
    'FareAlertsError',
    'TransientTransportError',
    'TransportInitializationError',
    'NotFoundError',
    'NotPersistedError',
    'DuplicatePreferenceError',
    'MalformedEventError',
]
