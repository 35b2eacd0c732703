"""
Store backends for the custody core.
"""

from custody.store.base import DocumentStorage, EntityStore, EventStore
from custody.store.files import LocalDocumentStorage
from custody.store.memory import InMemoryDocumentStorage, InMemoryEntityStore, InMemoryEventStore

__all__ = [
    "EventStore",
    "EntityStore",
    "DocumentStorage",
    "InMemoryEventStore",
    "InMemoryEntityStore",
    "InMemoryDocumentStorage",
    "LocalDocumentStorage",
]
