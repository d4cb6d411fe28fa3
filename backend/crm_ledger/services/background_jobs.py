"""Background jobs that run after an ingestion has committed."""

from __future__ import annotations

import logging
from time import perf_counter

from crm_ledger.db.session import SessionLocal
from crm_ledger.services.embeddings import get_default_embedding_client
from crm_ledger.services.projection import project_after_ingest
from crm_ledger.services.vector_index import SqlVectorIndex
from crm_ledger.storage import SqlAlchemyStorage

logger = logging.getLogger(__name__)


def run_projection_job(company_id: str) -> bool:
    """Project one company into the vector index using its own DB session."""

    total_started = perf_counter()
    db = SessionLocal()
    try:
        projected = project_after_ingest(
            SqlAlchemyStorage(db),
            SqlVectorIndex(db),
            get_default_embedding_client(),
            company_id,
        )
        logger.info(
            "projection.job_timing company_id=%s projected=%s total_ms=%.2f",
            company_id,
            projected,
            (perf_counter() - total_started) * 1000.0,
        )
        return projected
    except Exception:
        logger.exception(
            "projection.job_failed company_id=%s elapsed_ms=%.2f",
            company_id,
            (perf_counter() - total_started) * 1000.0,
        )
        raise
    finally:
        db.close()
