"""Product ORM model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from crm_ledger.models.base import Base, CreatedAtMixin, IdMixin


class Product(Base, IdMixin, CreatedAtMixin):
    """Reference product named by deals. Never updated."""

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
