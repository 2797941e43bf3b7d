"""SlotSwap: a marketplace for exchanging calendar time slots."""

__version__ = "1.0.0"
