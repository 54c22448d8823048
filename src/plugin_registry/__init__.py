"""Plugin registry: file-based storage for versioned packages and plugins."""

__version__ = "0.1.0"
