"""Storage backends behind one capability interface."""

from crm_ledger.storage.interface import Snapshot, StorageBackend
from crm_ledger.storage.memory_backend import InMemoryStorage
from crm_ledger.storage.sqlalchemy_backend import SqlAlchemyStorage

__all__ = ["InMemoryStorage", "Snapshot", "SqlAlchemyStorage", "StorageBackend"]
