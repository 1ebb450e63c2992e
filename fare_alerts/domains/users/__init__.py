"""Users domain package: users, their alert preferences and the MongoDB store."""

__all__ = [
    "models",
    "repository",
]
