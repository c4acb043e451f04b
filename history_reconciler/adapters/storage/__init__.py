"""Storage adapters implementing HistoryStoragePort."""

from history_reconciler.adapters.storage.memory_store import InMemoryHistoryStore

__all__ = ["InMemoryHistoryStore"]
