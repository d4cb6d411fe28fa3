"""Extractor interface for pluggable extraction implementations."""

from abc import ABC, abstractmethod

from crm_ledger.schemas.ingest import CustomerRecord


class ExtractorInterface(ABC):
    """Abstract extractor interface."""

    @abstractmethod
    def extract(self, text: str) -> CustomerRecord:
        """Extract a structured customer record from free-text notes."""
