"""Contact ORM model."""

from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from crm_ledger.models.base import Base, IdMixin, TimestampMixin


class Contact(Base, IdMixin, TimestampMixin):
    """Person at a customer company, unique per (company, name)."""

    __tablename__ = "contacts"
    __table_args__ = (UniqueConstraint("company_id", "name", name="uq_contacts_company_id_name"),)

    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    influence_role: Mapped[str | None] = mapped_column(String(128), nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    change_history: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
