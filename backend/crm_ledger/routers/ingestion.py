"""Customer update ingestion routes."""

from fastapi import APIRouter, BackgroundTasks, Depends

from crm_ledger.config import get_settings
from crm_ledger.db.dependencies import get_storage
from crm_ledger.errors import CRMLedgerError
from crm_ledger.extraction.extractor_interface import ExtractorInterface
from crm_ledger.extraction.llm_extractor import LLMExtractionError, get_default_extractor
from crm_ledger.history.types import ChangeActor
from crm_ledger.routers.http_errors import to_http_exception
from crm_ledger.schemas.common import ApiResponse
from crm_ledger.schemas.ingest import ActorInput, CustomerUpdateRequest, ExtractionRequest, IngestResult
from crm_ledger.services.background_jobs import run_projection_job
from crm_ledger.services.ingestion import ingest
from crm_ledger.storage import StorageBackend

router = APIRouter()


def actor_from_input(payload: ActorInput | None, default_source: str) -> ChangeActor:
    """Build a change actor, falling back to the configured default source."""

    if payload is None:
        return ChangeActor(source=default_source)
    return ChangeActor(
        source=(payload.source or "").strip() or default_source,
        user_id=payload.user_id,
        user_name=payload.user_name,
    )


def get_extractor() -> ExtractorInterface:
    try:
        return get_default_extractor()
    except LLMExtractionError as exc:
        raise to_http_exception(exc) from exc


@router.post("/customer-updates", response_model=ApiResponse[IngestResult])
def post_customer_update(
    payload: CustomerUpdateRequest,
    background_tasks: BackgroundTasks,
    storage: StorageBackend = Depends(get_storage),
) -> ApiResponse[IngestResult]:
    """Ingest one structured customer record, then project it in the background."""

    settings = get_settings()
    try:
        result = ingest(storage, payload.record, actor_from_input(payload.actor, settings.default_source))
    except CRMLedgerError as exc:
        raise to_http_exception(exc) from exc
    if settings.enable_projection:
        background_tasks.add_task(run_projection_job, result.company_id)
    return ApiResponse(data=result)


@router.post("/extract", response_model=ApiResponse[IngestResult])
def post_extract(
    payload: ExtractionRequest,
    background_tasks: BackgroundTasks,
    storage: StorageBackend = Depends(get_storage),
    extractor: ExtractorInterface = Depends(get_extractor),
) -> ApiResponse[IngestResult]:
    """Extract a customer record from free-text notes and ingest it."""

    settings = get_settings()
    try:
        record = extractor.extract(payload.text)
        result = ingest(storage, record, actor_from_input(payload.actor, settings.default_source))
    except (CRMLedgerError, LLMExtractionError) as exc:
        raise to_http_exception(exc) from exc
    if settings.enable_projection:
        background_tasks.add_task(run_projection_job, result.company_id)
    return ApiResponse(data=result)
