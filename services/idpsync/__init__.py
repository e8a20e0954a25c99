"""Identity provider registry bootstrap."""

__version__ = "0.1.0"
