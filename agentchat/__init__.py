"""Context assembly and request lifecycle for chat backends."""

__version__ = "0.1.0"
