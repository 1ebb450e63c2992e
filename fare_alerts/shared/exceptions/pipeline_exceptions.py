"""
Pipeline exception classes.

Hierarchical exception structure for transport, persistence and
event decoding failures.
"""

from typing import Optional, Dict, Any


class FareAlertsError(Exception):
    """Base exception for all pipeline errors"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self):
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class TransientTransportError(FareAlertsError):
    """Queue or store temporarily unreachable; the operation may be retried"""

    def __init__(self, message: str = "Transport temporarily unavailable", transport: Optional[str] = None):
        super().__init__(message, error_code="TRANSIENT_TRANSPORT")
        self.transport = transport


class TransportInitializationError(FareAlertsError):
    """Transport could not be acquired at startup; fatal to the pipeline"""

    def __init__(self, message: str = "Transport initialization failed", transport: Optional[str] = None):
        super().__init__(message, error_code="TRANSPORT_INIT")
        self.transport = transport


class NotFoundError(FareAlertsError):
    """Requested user or preference does not exist"""

    def __init__(self, resource: str, resource_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"{resource} with id '{resource_id}' not found",
            error_code="NOT_FOUND",
            details={"resource": resource, "resource_id": resource_id}
        )
        self.resource = resource
        self.resource_id = resource_id


class NotPersistedError(FareAlertsError):
    """Write rejected by the store"""

    def __init__(self, message: str = "Write was not persisted", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="NOT_PERSISTED", details=details)


class DuplicatePreferenceError(NotPersistedError):
    """Preference id already in use, or retired, for the owning user"""

    def __init__(self, user_id: str, preference_id: str):
        super().__init__(
            f"Preference '{preference_id}' already used by user '{user_id}'",
            details={"user_id": user_id, "preference_id": preference_id}
        )
        self.user_id = user_id
        self.preference_id = preference_id


class MalformedEventError(FareAlertsError):
    """Queue payload could not be interpreted as a price event"""

    def __init__(
        self,
        message: str = "Malformed price event",
        raw_payload: Optional[str] = None,
        validation_errors: Optional[list] = None
    ):
        super().__init__(message, error_code="MALFORMED_EVENT")
        self.raw_payload = raw_payload[:1000] if raw_payload else None  # Limit for logging
        self.validation_errors = validation_errors or []
