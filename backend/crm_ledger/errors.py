"""Error taxonomy shared by ingestion, storage, and projection."""


class CRMLedgerError(RuntimeError):
    """Base class for domain errors raised by the ledger core."""


class ValidationError(CRMLedgerError):
    """Raised when an incoming record is missing required data.

    Always raised before any persistence attempt.
    """


class NotFoundError(CRMLedgerError):
    """Raised when a referenced company/contact/deal does not exist."""


class PersistenceError(CRMLedgerError):
    """Raised when the relational store rejects a read or write."""


class ProjectionError(CRMLedgerError):
    """Raised when projecting a committed entity into the vector index fails."""
