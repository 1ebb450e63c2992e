"""Price events domain package: the wire model and the Redis queue transport."""

__all__ = [
    "models",
    "queue",
]
