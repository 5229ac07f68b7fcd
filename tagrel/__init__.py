"""Tag-triggered release builder."""

__version__ = "0.1.0"
