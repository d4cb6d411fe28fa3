"""Deal ORM model."""

from typing import Any

from sqlalchemy import JSON, Float, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from crm_ledger.models.base import Base, IdMixin, TimestampMixin


class Deal(Base, IdMixin, TimestampMixin):
    """Sales opportunity for a company. Date columns hold YYYY-MM-DD strings."""

    __tablename__ = "deals"
    __table_args__ = (UniqueConstraint("company_id", "deal_id", name="uq_deals_company_id_deal_id"),)

    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    product_id: Mapped[str | None] = mapped_column(
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
    )
    deal_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    deal_state: Mapped[str | None] = mapped_column(String(64), nullable=True)
    deal_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    deal_amount_currency: Mapped[str | None] = mapped_column(String(16), nullable=True)
    stage: Mapped[str | None] = mapped_column(String(64), nullable=True)
    deal_payment_status: Mapped[str | None] = mapped_column(String(64), nullable=True)
    deal_start_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    deal_end_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    deal_expected_signing_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    deal_signing_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    deal_policy_state: Mapped[str | None] = mapped_column(String(64), nullable=True)
    deal_health: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_frequency: Mapped[str | None] = mapped_column(String(64), nullable=True)
    acquisition_channel_source: Mapped[str | None] = mapped_column(String(255), nullable=True)
    acquisition_campaign_source: Mapped[str | None] = mapped_column(String(255), nullable=True)
    deal_activity: Mapped[str | None] = mapped_column(Text, nullable=True)
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    change_history: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
