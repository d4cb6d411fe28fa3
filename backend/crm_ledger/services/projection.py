"""Projection of committed companies into searchable text and the vector index."""

from __future__ import annotations

import json
import logging
from time import perf_counter
from typing import Any

from crm_ledger.errors import ProjectionError
from crm_ledger.history.types import ChangeImportance, EntityKind
from crm_ledger.schemas.company import CompanySnapshot, HistoryProjectionRead
from crm_ledger.schemas.search import SearchHit, SearchResults
from crm_ledger.services.companies import get_company_snapshot, get_entity_history
from crm_ledger.services.embeddings import EmbeddingClient, EmbeddingError
from crm_ledger.services.vector_index import VectorIndex
from crm_ledger.storage.interface import StorageBackend

logger = logging.getLogger(__name__)


def build_history_text(history: list[HistoryProjectionRead]) -> str:
    """Render history entries as blocks appended to the embedded text."""

    return "\n\n".join(
        (
            f"HISTORY_ENTRY: {entry.timestamp}\n"
            f"CATEGORY: {entry.change_category}\n"
            f"IMPORTANCE: {entry.change_type}\n"
            f"{entry.vector_searchable_text or entry.summary}"
        )
        for entry in history
    )


def build_history_metadata(history: list[HistoryProjectionRead]) -> dict[str, Any]:
    if not history:
        return {"has_history": False, "history_count": 0}

    metadata: dict[str, Any] = {
        "has_history": True,
        "history_count": len(history),
        "latest_change": history[-1].timestamp,
        "history_categories": sorted({entry.change_category for entry in history}),
    }
    for entry in reversed(history):
        if entry.change_type == ChangeImportance.MAJOR.value:
            metadata["latest_major_change"] = entry.timestamp
            metadata["latest_major_category"] = entry.change_category
            break
    return metadata


def build_company_projection(
    snapshot: CompanySnapshot,
    history: list[HistoryProjectionRead],
    *,
    notes: str | None = None,
) -> tuple[str, dict[str, Any]]:
    """Return the text to embed and the flat metadata stored beside it."""

    company = snapshot.company
    deal = snapshot.deals[0] if snapshot.deals else None
    lines = [
        f"COMPANY: {company.name}",
        f"INDUSTRY: {company.industry_vertical or ''}",
        f"SIZE: {company.size or ''}",
        f"LOCATION: {company.country_hq or ''}",
        f"PRIMARY CONTACT: {company.primary_contact or ''}",
        f"CONTACTS: {', '.join(contact.name for contact in snapshot.contacts)}",
        f"B2B_OR_B2C: {company.b2b_or_b2c or ''}",
        f"SUB_INDUSTRY: {company.sub_industry or ''}",
        f"WEBSITE: {company.website_url or ''}",
        f"OTHER_COUNTRIES: {', '.join(company.other_countries or [])}",
        f"REVENUE: {_fmt(company.revenue)}",
        f"EMPLOYEE_SIZE: {_fmt(company.employee_size)}",
        f"CUSTOMER_SEGMENT: {company.customer_segment_label or ''}",
        f"DEAL STATE: {(deal.deal_state if deal else None) or ''}",
        f"DEAL AMOUNT: {_fmt(deal.deal_amount if deal else None)}",
        f"STAGE: {(deal.stage if deal else None) or ''}",
        f"EXPECTED SIGNING: {(deal.deal_expected_signing_date if deal else None) or ''}",
        f"ACTUAL SIGNING: {(deal.deal_signing_date if deal else None) or ''}",
        f"ACQUISITION: {(deal.acquisition_channel_source if deal else None) or ''}",
        f"NOTES: {notes or ''}",
    ]
    text = "\n".join(lines)
    if history:
        text = f"{text}\n\nHISTORY:\n{build_history_text(history)}"

    metadata: dict[str, Any] = {
        "entity_type": EntityKind.COMPANY.value,
        "company_id": company.id,
        "company_name": company.name,
        "industry_vertical": company.industry_vertical,
        "size": company.size,
        "country_hq": company.country_hq,
        "website_url": company.website_url,
        "revenue": company.revenue,
        "employee_size": company.employee_size,
        "customer_segment_label": company.customer_segment_label,
        "primary_contact": company.primary_contact,
        "other_countries": json.dumps(company.other_countries) if company.other_countries else None,
        "account_team": json.dumps(company.account_team) if company.account_team else None,
        "contact_ids": [contact.id for contact in snapshot.contacts],
        "deal_id": deal.id if deal else None,
        "deal_stage": deal.stage if deal else None,
        "deal_amount": deal.deal_amount if deal else None,
        "deal_amount_currency": deal.deal_amount_currency if deal else None,
        **build_history_metadata(history),
    }
    return text, metadata


def project_company(
    storage: StorageBackend,
    vector_index: VectorIndex,
    embedding_client: EmbeddingClient,
    company_id: str,
) -> str:
    """Embed a committed company and upsert it into the vector index under its id."""

    try:
        snapshot = get_company_snapshot(storage, company_id)
        history = get_entity_history(storage, EntityKind.COMPANY, company_id)
        latest_logs = storage.list_logs(company_id, limit=1, offset=0)
        notes = latest_logs[0]["raw_input"] if latest_logs else None
        text, metadata = build_company_projection(snapshot, history, notes=notes)
        vectors = embedding_client.embed_texts([text])
        if len(vectors) != 1:
            raise EmbeddingError("Embedding client returned wrong vector count")
        vector_index.upsert(company_id, vectors[0], text, metadata)
    except ProjectionError:
        raise
    except Exception as exc:
        # Any collaborator failure (storage, embedder, index) becomes a ProjectionError.
        raise ProjectionError(f"Projection failed for company {company_id}: {exc}") from exc
    return company_id


def project_after_ingest(
    storage: StorageBackend,
    vector_index: VectorIndex,
    embedding_client: EmbeddingClient,
    company_id: str,
) -> bool:
    """Best-effort projection. Failures are logged and never reach the caller."""

    started = perf_counter()
    try:
        project_company(storage, vector_index, embedding_client, company_id)
    except ProjectionError:
        logger.exception(
            "projection.failed company_id=%s elapsed_ms=%.2f",
            company_id,
            (perf_counter() - started) * 1000.0,
        )
        return False
    logger.info(
        "projection.completed company_id=%s total_ms=%.2f",
        company_id,
        (perf_counter() - started) * 1000.0,
    )
    return True


def search_records(
    vector_index: VectorIndex,
    embedding_client: EmbeddingClient,
    query: str,
    *,
    limit: int = 5,
    min_score: float = 0.7,
) -> SearchResults:
    """Embed a free-text query and return matches above `min_score`."""

    clean_query = " ".join(query.strip().split())
    if not clean_query:
        return SearchResults(query=query, min_score=min_score, hits=[])
    try:
        vector = embedding_client.embed_texts([clean_query])[0]
    except (EmbeddingError, IndexError) as exc:
        raise ProjectionError(f"Query embedding failed: {exc}") from exc
    matches = vector_index.query(vector, limit=limit, min_score=min_score)
    return SearchResults(
        query=clean_query,
        min_score=min_score,
        hits=[SearchHit(id=match.id, score=match.score, text=match.text, metadata=match.metadata) for match in matches],
    )


def _fmt(value: float | None) -> str:
    if value is None:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return str(value)
