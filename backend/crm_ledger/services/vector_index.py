"""Keyed similarity-search index over projected records."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from math import sqrt
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crm_ledger.errors import ProjectionError
from crm_ledger.models.vector_record import VectorRecord

logger = logging.getLogger(__name__)

_TEXT_METADATA_LIMIT = 1000


@dataclass(slots=True)
class VectorMatch:
    id: str
    score: float
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


class VectorIndex(Protocol):
    """Minimal keyed vector store contract."""

    def upsert(self, record_id: str, vector: list[float], text: str, metadata: Mapping[str, Any]) -> None:
        """Insert or replace one vector."""

    def query(self, vector: list[float], *, limit: int, min_score: float) -> list[VectorMatch]:
        """Return the best matches at or above `min_score`, best first."""

    def fetch(self, record_id: str) -> VectorMatch | None:
        """Return one stored record, if present."""


def clean_metadata(metadata: Mapping[str, Any]) -> dict[str, Any]:
    """Drop null values so metadata stays flat and filterable."""

    return {key: value for key, value in metadata.items() if value is not None}


class SqlVectorIndex:
    """Vector index stored in the `vector_records` table.

    Similarity is computed in Python, so it works on SQLite as well as PostgreSQL.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def upsert(self, record_id: str, vector: list[float], text: str, metadata: Mapping[str, Any]) -> None:
        cleaned = clean_metadata({**metadata, "text": text[:_TEXT_METADATA_LIMIT], "record_id": record_id})
        try:
            row = self._session.get(VectorRecord, record_id)
            if row is None:
                row = VectorRecord(id=record_id)
                self._session.add(row)
            row.embedding = list(vector)
            row.text = text
            row.metadata_json = cleaned
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise ProjectionError(f"Vector upsert failed for {record_id}: {exc}") from exc
        logger.info("vector_index.upserted record_id=%s dims=%d", record_id, len(vector))

    def query(self, vector: list[float], *, limit: int, min_score: float) -> list[VectorMatch]:
        try:
            rows = list(self._session.scalars(select(VectorRecord)).all())
        except SQLAlchemyError as exc:
            raise ProjectionError(f"Vector query failed: {exc}") from exc

        matches: list[VectorMatch] = []
        for row in rows:
            score = _similarity(vector, _as_vector(row.embedding))
            if score < min_score:
                continue
            matches.append(VectorMatch(id=row.id, score=score, text=row.text, metadata=dict(row.metadata_json or {})))
        matches.sort(key=lambda match: (-match.score, match.id))
        return matches[:limit]

    def fetch(self, record_id: str) -> VectorMatch | None:
        row = self._session.get(VectorRecord, record_id)
        if row is None:
            return None
        return VectorMatch(id=row.id, score=1.0, text=row.text, metadata=dict(row.metadata_json or {}))



def _as_vector(value: Any) -> list[float]:
    # pgvector hands back numpy arrays; the JSON fallback hands back lists.
    if value is None:
        return []
    if hasattr(value, "tolist"):
        value = value.tolist()
    return [float(item) for item in value]


def _similarity(left: list[float], right: list[float]) -> float:
    """Cosine similarity rescaled to [0, 1]; mismatched or zero vectors score 0."""

    if not left or len(left) != len(right):
        return 0.0
    dot = sum(a * b for a, b in zip(left, right))
    norms = sqrt(sum(a * a for a in left)) * sqrt(sum(b * b for b in right))
    if norms == 0.0:
        return 0.0
    return max(0.0, min(1.0, (dot / norms + 1.0) / 2.0))
