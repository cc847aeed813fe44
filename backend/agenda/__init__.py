"""Provider availability and slot-allocation engine."""

__version__ = "0.1.0"
