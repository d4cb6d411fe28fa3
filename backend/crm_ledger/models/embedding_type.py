"""Embedding column type used by the vector index table."""

from __future__ import annotations

from sqlalchemy import JSON
from sqlalchemy.types import TypeEngine

from crm_ledger.config import get_settings

EMBEDDING_DIMENSIONS = 1536


def resolve_embedding_column_type() -> TypeEngine | type[JSON]:
    """Use pgvector on PostgreSQL when enabled, plain JSON everywhere else."""

    if not get_settings().enable_pgvector:
        return JSON
    from pgvector.sqlalchemy import Vector

    return Vector(EMBEDDING_DIMENSIONS).with_variant(JSON, "sqlite")


EMBEDDING_COLUMN_TYPE = resolve_embedding_column_type()
