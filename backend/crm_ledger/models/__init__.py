"""ORM models package exports."""

from crm_ledger.models.company import Company
from crm_ledger.models.contact import Contact
from crm_ledger.models.deal import Deal
from crm_ledger.models.interaction_log import InteractionLog
from crm_ledger.models.product import Product
from crm_ledger.models.vector_record import VectorRecord

__all__ = [
    "Company",
    "Contact",
    "Deal",
    "InteractionLog",
    "Product",
    "VectorRecord",
]
