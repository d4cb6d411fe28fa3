"""FastAPI dependencies for database access."""

from collections.abc import Iterator

from crm_ledger.db.session import SessionLocal
from crm_ledger.storage import SqlAlchemyStorage


def get_storage() -> Iterator[SqlAlchemyStorage]:
    """Yield a request-scoped storage handle over its own session."""

    db = SessionLocal()
    try:
        yield SqlAlchemyStorage(db)
    finally:
        db.close()
