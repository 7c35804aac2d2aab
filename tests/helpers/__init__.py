"""Test helpers for EcoEcho integration tests.

This module re-exports all helpers for convenient imports:

    from tests.helpers import FakeApiClient, MemoryStore, scan_input

See individual modules for full documentation:
- fakes.py: In-memory store and backend client used instead of real I/O
"""

from tests.helpers.fakes import FakeApiClient, MemoryStore, scan_input

__all__ = [
    "FakeApiClient",
    "MemoryStore",
    "scan_input",
]
