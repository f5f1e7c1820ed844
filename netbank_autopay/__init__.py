"""Pay upcoming CommBank NetBank bills before the next pay day."""

__version__ = "0.1.0"
