"""Real-time one-to-one messaging service."""

__version__ = "0.1.0"
