"""Semantic search routes over projected companies."""

from fastapi import APIRouter, Depends, Query

from crm_ledger.config import get_settings
from crm_ledger.db.dependencies import get_storage
from crm_ledger.errors import CRMLedgerError
from crm_ledger.routers.http_errors import to_http_exception
from crm_ledger.schemas.common import ApiResponse
from crm_ledger.schemas.search import SearchResults
from crm_ledger.services.embeddings import EmbeddingClient, get_default_embedding_client
from crm_ledger.services.projection import search_records
from crm_ledger.services.vector_index import SqlVectorIndex
from crm_ledger.storage import SqlAlchemyStorage

router = APIRouter()


@router.get("/search", response_model=ApiResponse[SearchResults])
def get_search(
    q: str = Query(..., min_length=1),
    limit: int | None = Query(None, ge=1, le=50),
    min_score: float | None = Query(None, ge=0.0, le=1.0),
    storage: SqlAlchemyStorage = Depends(get_storage),
    embedding_client: EmbeddingClient = Depends(get_default_embedding_client),
) -> ApiResponse[SearchResults]:
    """Search projected companies by meaning."""

    settings = get_settings()
    try:
        results = search_records(
            SqlVectorIndex(storage.session),
            embedding_client,
            q,
            limit=limit or settings.search_default_limit,
            min_score=settings.search_min_score if min_score is None else min_score,
        )
    except CRMLedgerError as exc:
        raise to_http_exception(exc) from exc
    return ApiResponse(data=results)
