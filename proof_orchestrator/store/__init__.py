"""Request store module - persistence for proof requests."""

from .base import RequestStore
from .memory import InMemoryRequestStore
from .sqlite import SQLiteRequestStore

__all__ = ["RequestStore", "InMemoryRequestStore", "SQLiteRequestStore"]
