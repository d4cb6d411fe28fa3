"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from crm_ledger.config import get_settings
from crm_ledger.db.session import SessionLocal, dispose_engine
from crm_ledger.routers import companies, ingestion, search

logger = logging.getLogger(__name__)


def _warm_backend_state() -> None:
    """Prime the DB connection at process start."""

    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Backend warm-up failed; continuing without startup pre-warm.")


@asynccontextmanager
async def lifespan(_: FastAPI):
    _warm_backend_state()
    yield
    dispose_engine()


app = FastAPI(title=get_settings().app_name, version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ingestion.router, tags=["ingestion"])
app.include_router(companies.router, tags=["companies"])
app.include_router(search.router, tags=["search"])


@app.get("/health")
def health() -> dict[str, str]:
    """Simple health check endpoint."""

    return {"status": "ok"}
