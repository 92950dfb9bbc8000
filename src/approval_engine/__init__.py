"""Report approval engine: status derivation and approval transitions."""

__version__ = "0.1.0"
