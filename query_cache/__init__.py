"""Query Cache - Memoizing cache layer in front of a query engine."""

__version__ = "0.1.0"

from .cache import Cache, CacheStats
from .hasher import derive_key
from .retriever import retrieve

__all__ = ["Cache", "CacheStats", "derive_key", "retrieve"]
