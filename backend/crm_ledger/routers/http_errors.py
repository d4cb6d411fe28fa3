"""Translation of domain errors into HTTP responses."""

from fastapi import HTTPException

from crm_ledger.errors import CRMLedgerError, NotFoundError, PersistenceError, ProjectionError, ValidationError
from crm_ledger.extraction.llm_extractor import LLMExtractionError

_STATUS_BY_ERROR: tuple[tuple[type[Exception], int], ...] = (
    (ValidationError, 422),
    (NotFoundError, 404),
    (PersistenceError, 409),
    (ProjectionError, 503),
    (LLMExtractionError, 503),
)


def to_http_exception(exc: CRMLedgerError | LLMExtractionError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))
