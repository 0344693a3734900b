"""
Registry access package.

This package talks to the deps.dev versions API:
- DepsDevClient: retrying HTTP client with response normalization
- select_latest_version: deterministic latest-stable selection
- BatchOrchestrator: concurrent, cache-aware batch fetches
- RegistryError / ErrorKind: uniform failure classification
"""

from depver.registry.batch import BatchOrchestrator
from depver.registry.client import DepsDevClient
from depver.registry.errors import ErrorKind, RegistryError, classify_status, error_payload
from depver.registry.selection import latest_from_versions, select_latest_version

__all__ = [
    "BatchOrchestrator",
    "DepsDevClient",
    "ErrorKind",
    "RegistryError",
    "classify_status",
    "error_payload",
    "latest_from_versions",
    "select_latest_version",
]
