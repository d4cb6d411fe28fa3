"""Dict-backed storage backend with snapshot rollback.

Mirrors the relational constraints (unique company name, unique contact per
company, unique external deal id per company) so the reconciler sees the same
failures it would see against a database.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

from crm_ledger.errors import NotFoundError, PersistenceError
from crm_ledger.history.log import append_history
from crm_ledger.history.types import EntityKind, HistoryEntry
from crm_ledger.models.base import new_id, utc_now
from crm_ledger.storage.interface import Snapshot, StorageBackend

_UNIQUE_KEYS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.COMPANY: ("name",),
    EntityKind.CONTACT: ("company_id", "name"),
    EntityKind.DEAL: ("company_id", "deal_id"),
}


class InMemoryStorage(StorageBackend):
    """Process-local storage used for tests and offline runs."""

    def __init__(self) -> None:
        self._entities: dict[EntityKind, dict[str, Snapshot]] = {kind: {} for kind in EntityKind}
        self._products: dict[str, Snapshot] = {}
        self._logs: dict[str, Snapshot] = {}
        self._in_transaction = False

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._in_transaction:
            yield
            return

        saved = copy.deepcopy((self._entities, self._products, self._logs))
        self._in_transaction = True
        try:
            yield
        except BaseException:
            self._entities, self._products, self._logs = saved
            raise
        finally:
            self._in_transaction = False

    def get_entity(self, kind: EntityKind, identity: Mapping[str, Any]) -> Snapshot | None:
        for row in self._entities[kind].values():
            if all(row.get(column) == value for column, value in identity.items()):
                return copy.deepcopy(row)
        return None

    def get_entity_by_id(self, kind: EntityKind, entity_id: str) -> Snapshot | None:
        row = self._entities[kind].get(entity_id)
        return copy.deepcopy(row) if row is not None else None

    def upsert_entity(
        self,
        kind: EntityKind,
        entity_id: str,
        values: Mapping[str, Any],
        history: Sequence[dict[str, Any]],
    ) -> None:
        table = self._entities[kind]
        now = utc_now()
        row = copy.deepcopy(table.get(entity_id)) or {"id": entity_id, "created_at": now}
        row.update(copy.deepcopy(dict(values)))
        row["change_history"] = copy.deepcopy(list(history))
        row["updated_at"] = now
        self._check_unique(kind, row)
        table[entity_id] = row

    def append_history(
        self,
        kind: EntityKind,
        entity_id: str,
        entry: HistoryEntry | None,
        max_length: int,
    ) -> list[dict[str, Any]]:
        row = self._entities[kind].get(entity_id)
        if row is None:
            raise NotFoundError(f"{kind.value} {entity_id} not found")
        row["change_history"] = append_history(row["change_history"], entry, max_length)
        return copy.deepcopy(row["change_history"])

    def latest_deal(self, company_id: str) -> Snapshot | None:
        deals = [row for row in reversed(list(self._entities[EntityKind.DEAL].values())) if row["company_id"] == company_id]
        if not deals:
            return None
        return copy.deepcopy(max(deals, key=lambda row: row["created_at"]))

    def find_product(self, name: str) -> Snapshot | None:
        for row in self._products.values():
            if row["name"] == name:
                return dict(row)
        return None

    def get_product(self, product_id: str) -> Snapshot | None:
        row = self._products.get(product_id)
        return dict(row) if row is not None else None

    def insert_product(self, product_id: str, name: str) -> None:
        if product_id in self._products or self.find_product(name) is not None:
            raise PersistenceError(f"insert_product failed: duplicate product {name!r}")
        self._products[product_id] = {"id": product_id, "name": name, "created_at": utc_now()}

    def insert_log(self, values: Mapping[str, Any]) -> str:
        log_id = str(values.get("id") or new_id())
        row = {"interaction_type": "user_input", **dict(values), "id": log_id, "created_at": utc_now()}
        self._logs[log_id] = row
        return log_id

    def list_entities(self, kind: EntityKind, company_id: str) -> list[Snapshot]:
        if kind is EntityKind.COMPANY:
            raise ValueError("list_entities only lists company-owned kinds")
        rows = [copy.deepcopy(row) for row in self._entities[kind].values() if row["company_id"] == company_id]
        if kind is EntityKind.DEAL:
            return sorted(reversed(rows), key=lambda row: row["updated_at"], reverse=True)
        return rows

    def list_companies(self, *, limit: int, offset: int) -> list[Snapshot]:
        rows = sorted(
            reversed(list(self._entities[EntityKind.COMPANY].values())),
            key=lambda row: row["updated_at"],
            reverse=True,
        )
        return [copy.deepcopy(row) for row in rows[offset : offset + limit]]

    def list_logs(self, company_id: str, *, limit: int, offset: int) -> list[Snapshot]:
        rows = [row for row in reversed(list(self._logs.values())) if row["company_id"] == company_id]
        rows.sort(key=lambda row: row["created_at"], reverse=True)
        return [dict(row) for row in rows[offset : offset + limit]]

    def _check_unique(self, kind: EntityKind, candidate: Snapshot) -> None:
        columns = _UNIQUE_KEYS[kind]
        key = tuple(candidate.get(column) for column in columns)
        if any(part is None for part in key):
            return
        for row_id, row in self._entities[kind].items():
            if row_id == candidate["id"]:
                continue
            if tuple(row.get(column) for column in columns) == key:
                raise PersistenceError(
                    f"upsert_entity failed: duplicate {kind.value} for {dict(zip(columns, key, strict=True))}"
                )
