"""Company ORM model."""

from typing import Any

from sqlalchemy import JSON, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from crm_ledger.models.base import Base, IdMixin, TimestampMixin


class Company(Base, IdMixin, TimestampMixin):
    """Customer company, unique by exact name."""

    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    industry_vertical: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sub_industry: Mapped[str | None] = mapped_column(String(255), nullable=True)
    b2b_or_b2c: Mapped[str | None] = mapped_column(String(32), nullable=True)
    size: Mapped[str | None] = mapped_column(String(64), nullable=True)
    website_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    country_hq: Mapped[str | None] = mapped_column(String(128), nullable=True)
    other_countries: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    revenue: Mapped[float | None] = mapped_column(Float, nullable=True)
    employee_size: Mapped[float | None] = mapped_column(Float, nullable=True)
    child_companies: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    customer_segment_label: Mapped[str | None] = mapped_column(String(128), nullable=True)
    primary_contact: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_team: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    company_hierarchy: Mapped[str | None] = mapped_column(String(255), nullable=True)
    decision_country: Mapped[str | None] = mapped_column(String(128), nullable=True)
    company_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    company_legal_entity: Mapped[str | None] = mapped_column(String(255), nullable=True)
    change_history: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
