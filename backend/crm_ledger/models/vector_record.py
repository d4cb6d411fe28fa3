"""Vector index record model."""

from typing import Any

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from crm_ledger.models.base import Base, TimestampMixin
from crm_ledger.models.embedding_type import EMBEDDING_COLUMN_TYPE


class VectorRecord(Base, TimestampMixin):
    """Keyed embedding plus searchable text and flat metadata."""

    __tablename__ = "vector_records"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    embedding: Mapped[list[float]] = mapped_column(EMBEDDING_COLUMN_TYPE, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
