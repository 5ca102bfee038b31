"""Offline-first sync core for the campus app.

Persistent TTL cache, stale-while-revalidate fetching, digest-based alert
detection and a local query engine over the cached papers dataset.
"""

__version__ = "0.1.0"

__all__: list[str] = ["__version__"]
