"""
listing-store — Git-backed YAML content store with tiered caching.

Purpose
- Package root. Defines public package-level metadata and import boundaries.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.4.0"

__all__ = ["__version__"]
