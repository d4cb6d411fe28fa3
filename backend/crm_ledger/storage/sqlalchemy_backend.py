"""Relational storage backend built on a SQLAlchemy session."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crm_ledger.errors import NotFoundError, PersistenceError
from crm_ledger.history.log import append_history
from crm_ledger.history.types import EntityKind, HistoryEntry
from crm_ledger.models.base import Base, utc_now
from crm_ledger.models.company import Company
from crm_ledger.models.contact import Contact
from crm_ledger.models.deal import Deal
from crm_ledger.models.interaction_log import InteractionLog
from crm_ledger.models.product import Product
from crm_ledger.storage.interface import Snapshot, StorageBackend

logger = logging.getLogger(__name__)

_MODELS: dict[EntityKind, type[Company] | type[Contact] | type[Deal]] = {
    EntityKind.COMPANY: Company,
    EntityKind.CONTACT: Contact,
    EntityKind.DEAL: Deal,
}


class SqlAlchemyStorage(StorageBackend):
    """Storage adapter over one explicitly supplied session."""

    def __init__(self, session: Session) -> None:
        self._session = session
        self._in_transaction = False

    @property
    def session(self) -> Session:
        return self._session

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._in_transaction:
            yield
            return

        self._in_transaction = True
        try:
            yield
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise PersistenceError(f"Transaction failed: {exc}") from exc
        except BaseException:
            self._session.rollback()
            raise
        finally:
            self._in_transaction = False

    def get_entity(self, kind: EntityKind, identity: Mapping[str, Any]) -> Snapshot | None:
        model = _MODELS[kind]
        conditions = [getattr(model, column) == value for column, value in identity.items()]
        with self._guard(f"get_entity kind={kind.value}"):
            row = self._session.scalars(select(model).where(*conditions).limit(1)).first()
        return _snapshot(row)

    def get_entity_by_id(self, kind: EntityKind, entity_id: str) -> Snapshot | None:
        with self._guard(f"get_entity_by_id kind={kind.value}"):
            row = self._session.get(_MODELS[kind], entity_id)
        return _snapshot(row)

    def upsert_entity(
        self,
        kind: EntityKind,
        entity_id: str,
        values: Mapping[str, Any],
        history: Sequence[dict[str, Any]],
    ) -> None:
        model = _MODELS[kind]
        with self._guard(f"upsert_entity kind={kind.value} id={entity_id}"):
            row = self._session.get(model, entity_id)
            if row is None:
                row = model(id=entity_id)
                self._session.add(row)
            for column, value in values.items():
                setattr(row, column, value)
            row.change_history = list(history)
            row.updated_at = utc_now()
            self._session.flush()

    def append_history(
        self,
        kind: EntityKind,
        entity_id: str,
        entry: HistoryEntry | None,
        max_length: int,
    ) -> list[dict[str, Any]]:
        with self._guard(f"append_history kind={kind.value} id={entity_id}"):
            row = self._session.get(_MODELS[kind], entity_id)
            if row is None:
                raise NotFoundError(f"{kind.value} {entity_id} not found")
            row.change_history = append_history(row.change_history, entry, max_length)
            self._session.flush()
            return list(row.change_history)

    def latest_deal(self, company_id: str) -> Snapshot | None:
        stmt = select(Deal).where(Deal.company_id == company_id).order_by(Deal.created_at.desc()).limit(1)
        with self._guard("latest_deal"):
            row = self._session.scalars(stmt).first()
        return _snapshot(row)

    def find_product(self, name: str) -> Snapshot | None:
        with self._guard("find_product"):
            row = self._session.scalars(select(Product).where(Product.name == name).limit(1)).first()
        return _snapshot(row)

    def get_product(self, product_id: str) -> Snapshot | None:
        with self._guard("get_product"):
            row = self._session.get(Product, product_id)
        return _snapshot(row)

    def insert_product(self, product_id: str, name: str) -> None:
        with self._guard("insert_product"):
            self._session.add(Product(id=product_id, name=name))
            self._session.flush()

    def insert_log(self, values: Mapping[str, Any]) -> str:
        with self._guard("insert_log"):
            log = InteractionLog(**values)
            self._session.add(log)
            self._session.flush()
            return log.id

    def list_entities(self, kind: EntityKind, company_id: str) -> list[Snapshot]:
        if kind is EntityKind.COMPANY:
            raise ValueError("list_entities only lists company-owned kinds")
        model = _MODELS[kind]
        order = (model.updated_at.desc(),) if kind is EntityKind.DEAL else (model.created_at.asc(), model.name.asc())
        stmt = select(model).where(model.company_id == company_id).order_by(*order)
        with self._guard(f"list_entities kind={kind.value}"):
            rows = list(self._session.scalars(stmt).all())
        return [_snapshot(row) for row in rows]

    def list_companies(self, *, limit: int, offset: int) -> list[Snapshot]:
        stmt = select(Company).order_by(Company.updated_at.desc(), Company.name.asc()).limit(limit).offset(offset)
        with self._guard("list_companies"):
            rows = list(self._session.scalars(stmt).all())
        return [_snapshot(row) for row in rows]

    def list_logs(self, company_id: str, *, limit: int, offset: int) -> list[Snapshot]:
        stmt = (
            select(InteractionLog)
            .where(InteractionLog.company_id == company_id)
            .order_by(InteractionLog.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        with self._guard("list_logs"):
            rows = list(self._session.scalars(stmt).all())
        return [_snapshot(row) for row in rows]

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            logger.warning("storage.operation_failed operation=%s error=%s", operation, exc.__class__.__name__)
            raise PersistenceError(f"{operation} failed: {exc}") from exc


def _snapshot(row: Base | None) -> Snapshot | None:
    if row is None:
        return None
    snapshot = {column.key: getattr(row, column.key) for column in row.__table__.columns}
    if "change_history" in snapshot:
        snapshot["change_history"] = list(snapshot["change_history"] or [])
    return snapshot
