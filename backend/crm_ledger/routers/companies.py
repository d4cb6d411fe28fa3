"""Company read routes and human-initiated company mutations."""

from fastapi import APIRouter, Depends, Path, Query

from crm_ledger.config import get_settings
from crm_ledger.db.dependencies import get_storage
from crm_ledger.errors import CRMLedgerError
from crm_ledger.history.types import ChangeActor
from crm_ledger.routers.http_errors import to_http_exception
from crm_ledger.schemas.common import ApiResponse, Page
from crm_ledger.schemas.company import (
    CompanyRead,
    CompanyRenameRequest,
    CompanySnapshot,
    ContactRead,
    HistoryProjectionRead,
    InteractionLogRead,
    PrimaryContactRequest,
)
from crm_ledger.services.companies import (
    get_company_snapshot,
    get_entity_history,
    list_companies,
    list_interaction_logs,
    rename_company,
    set_primary_contact,
)
from crm_ledger.storage import StorageBackend

router = APIRouter()


@router.get("/companies", response_model=ApiResponse[Page[CompanyRead]])
def get_companies(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    storage: StorageBackend = Depends(get_storage),
) -> ApiResponse[Page[CompanyRead]]:
    """List companies, most recently updated first."""

    items = list_companies(storage, limit=limit, offset=offset)
    return ApiResponse(data=Page(items=items, limit=limit, offset=offset))


@router.get("/companies/{company_id}", response_model=ApiResponse[CompanySnapshot])
def get_company(
    company_id: str = Path(..., min_length=1),
    storage: StorageBackend = Depends(get_storage),
) -> ApiResponse[CompanySnapshot]:
    try:
        return ApiResponse(data=get_company_snapshot(storage, company_id))
    except CRMLedgerError as exc:
        raise to_http_exception(exc) from exc


@router.get(
    "/companies/{company_id}/interactions",
    response_model=ApiResponse[Page[InteractionLogRead]],
)
def get_company_interactions(
    company_id: str = Path(..., min_length=1),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    storage: StorageBackend = Depends(get_storage),
) -> ApiResponse[Page[InteractionLogRead]]:
    """List interaction logs for one company, newest first."""

    try:
        items = list_interaction_logs(storage, company_id, limit=limit, offset=offset)
    except CRMLedgerError as exc:
        raise to_http_exception(exc) from exc
    return ApiResponse(data=Page(items=items, limit=limit, offset=offset))


@router.patch("/companies/{company_id}/name", response_model=ApiResponse[CompanyRead])
def patch_company_name(
    payload: CompanyRenameRequest,
    company_id: str = Path(..., min_length=1),
    storage: StorageBackend = Depends(get_storage),
) -> ApiResponse[CompanyRead]:
    """Rename a company by id, recording the rename in its history."""

    actor = ChangeActor(source=get_settings().default_source, user_id=payload.user_id, user_name=payload.user_name)
    try:
        return ApiResponse(data=rename_company(storage, company_id, payload.name, actor))
    except CRMLedgerError as exc:
        raise to_http_exception(exc) from exc


@router.post("/companies/{company_id}/primary-contact", response_model=ApiResponse[ContactRead])
def post_primary_contact(
    payload: PrimaryContactRequest,
    company_id: str = Path(..., min_length=1),
    storage: StorageBackend = Depends(get_storage),
) -> ApiResponse[ContactRead]:
    """Promote one contact to primary and demote the rest."""

    actor = ChangeActor(source=get_settings().default_source, user_id=payload.user_id, user_name=payload.user_name)
    try:
        return ApiResponse(data=set_primary_contact(storage, company_id, payload.contact_id, actor))
    except CRMLedgerError as exc:
        raise to_http_exception(exc) from exc


@router.get(
    "/entities/{entity_kind}/{entity_id}/history",
    response_model=ApiResponse[list[HistoryProjectionRead]],
)
def get_history(
    entity_kind: str = Path(..., min_length=1),
    entity_id: str = Path(..., min_length=1),
    storage: StorageBackend = Depends(get_storage),
) -> ApiResponse[list[HistoryProjectionRead]]:
    """Return an entity's history trimmed for search projection."""

    try:
        return ApiResponse(data=get_entity_history(storage, entity_kind, entity_id))
    except CRMLedgerError as exc:
        raise to_http_exception(exc) from exc
