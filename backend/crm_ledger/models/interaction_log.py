"""Raw interaction log model."""

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from crm_ledger.models.base import Base, CreatedAtMixin, IdMixin


class InteractionLog(Base, IdMixin, CreatedAtMixin):
    """Append-only record of one ingestion call and its source text."""

    __tablename__ = "interaction_logs"

    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    contact_id: Mapped[str | None] = mapped_column(
        ForeignKey("contacts.id", ondelete="SET NULL"),
        nullable=True,
    )
    deal_id: Mapped[str | None] = mapped_column(
        ForeignKey("deals.id", ondelete="SET NULL"),
        nullable=True,
    )
    raw_input: Mapped[str] = mapped_column(Text, nullable=False)
    employee_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    employee_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    interaction_type: Mapped[str] = mapped_column(String(32), default="user_input", nullable=False)
