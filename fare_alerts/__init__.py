"""Flight price-drop alert pipeline."""

__version__ = "1.0.0"
