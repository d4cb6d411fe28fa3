"""SQLAlchemy metadata registry import for Alembic."""

from crm_ledger.models import Company, Contact, Deal, InteractionLog, Product, VectorRecord
from crm_ledger.models.base import Base

__all__ = ["Base", "Company", "Contact", "Deal", "InteractionLog", "Product", "VectorRecord"]
