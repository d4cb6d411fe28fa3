"""Storage capability interface shared by every persistence backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from contextlib import AbstractContextManager
from typing import Any

from crm_ledger.history.types import EntityKind, HistoryEntry

Snapshot = dict[str, Any]


class StorageBackend(ABC):
    """Transactional table store used by reconciliation and read models.

    Snapshots are plain dicts holding every column of a row, including `id`,
    timestamps and `change_history`. Backends raise `PersistenceError` when
    the underlying store rejects an operation.
    """

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Scope a unit of work that commits on success and rolls back on any error."""

    @abstractmethod
    def get_entity(self, kind: EntityKind, identity: Mapping[str, Any]) -> Snapshot | None:
        """Look up one entity by exact match on its identity columns."""

    @abstractmethod
    def get_entity_by_id(self, kind: EntityKind, entity_id: str) -> Snapshot | None:
        """Fetch one entity by its internal identifier."""

    @abstractmethod
    def upsert_entity(
        self,
        kind: EntityKind,
        entity_id: str,
        values: Mapping[str, Any],
        history: Sequence[dict[str, Any]],
    ) -> None:
        """Insert or update one entity row together with its full history in one write."""

    @abstractmethod
    def append_history(
        self,
        kind: EntityKind,
        entity_id: str,
        entry: HistoryEntry | None,
        max_length: int,
    ) -> list[dict[str, Any]]:
        """Append one entry to an existing entity's bounded history and return the result."""

    @abstractmethod
    def latest_deal(self, company_id: str) -> Snapshot | None:
        """Return the most recently created deal for a company, if any."""

    @abstractmethod
    def find_product(self, name: str) -> Snapshot | None:
        """Look up a product by name."""

    @abstractmethod
    def get_product(self, product_id: str) -> Snapshot | None:
        """Fetch a product by identifier."""

    @abstractmethod
    def insert_product(self, product_id: str, name: str) -> None:
        """Create a product row."""

    @abstractmethod
    def insert_log(self, values: Mapping[str, Any]) -> str:
        """Append one interaction log row and return its identifier."""

    @abstractmethod
    def list_entities(self, kind: EntityKind, company_id: str) -> list[Snapshot]:
        """List contacts or deals owned by a company (deals: most recently updated first)."""

    @abstractmethod
    def list_companies(self, *, limit: int, offset: int) -> list[Snapshot]:
        """List companies, most recently updated first."""

    @abstractmethod
    def list_logs(self, company_id: str, *, limit: int, offset: int) -> list[Snapshot]:
        """List interaction logs for a company, newest first."""
