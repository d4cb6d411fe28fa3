"""Seed a deterministic sequence of customer updates and project them.

Usage (from repository root):
    python backend/scripts/seed_demo.py

Usage (from backend directory):
    python scripts/seed_demo.py
    # or
    python -m scripts.seed_demo
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from sqlalchemy import delete, select

# Make `crm_ledger` imports work whether the script is run from repo root or backend/.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from crm_ledger.db.session import SessionLocal
from crm_ledger.history.types import ChangeActor
from crm_ledger.models import Company, VectorRecord
from crm_ledger.services.background_jobs import run_projection_job
from crm_ledger.services.ingestion import ingest
from crm_ledger.storage import SqlAlchemyStorage

DEFAULT_COMPANY_NAME = "Northwind Logistics"


def build_demo_records(company_name: str) -> list[dict]:
    """Return three updates for one account: first contact, qualification, and signature."""

    return [
        {
            "company_name": company_name,
            "raw_input": "Intro call with Dana Ortiz (VP Ops) at Northwind. Mid-market freight, HQ in Denmark.",
            "industry_vertical": "Logistics",
            "size": "Midmarket",
            "country_hq": "Denmark",
            "contacts": [{"name": "Dana Ortiz", "title": "VP Operations", "email": "dana@northwind.example"}],
            "deal": {"deal_id": "NW-001", "stage": "Prospect", "deal_product": "Route Planner"},
        },
        {
            "company_name": company_name,
            "raw_input": "Northwind qualified. Budget 120k EUR, expecting signature end of June. Sam Lee joins as CFO.",
            "revenue": 48000000,
            "employee_size": 650,
            "contacts": [
                {"name": "Dana Ortiz", "influence_role": "Champion"},
                {"name": "Sam Lee", "title": "CFO", "influence_role": "Decision maker"},
            ],
            "deal": {
                "deal_id": "NW-001",
                "stage": "Qualified",
                "deal_amount": 120000,
                "deal_amount_currency": "EUR",
                "deal_expected_signing_date": "2026-06-30",
            },
        },
        {
            "company_name": company_name,
            "raw_input": "Northwind signed today. Contract runs July to June, paid annually.",
            "industry_vertical": "Logistics & Supply Chain",
            "deal": {
                "deal_id": "NW-001",
                "stage": "Closed Won",
                "deal_state": "closed_won",
                "deal_signing_date": "2026-06-24",
                "deal_start_date": "2026-07-01",
                "deal_end_date": "2027-06-30",
                "payment_frequency": "annual",
            },
        },
    ]


def reset_company(db, company_name: str) -> None:
    """Remove the demo company, its dependent rows, and its vector record."""

    company_id = db.scalar(select(Company.id).where(Company.name == company_name))
    if company_id is None:
        return
    db.execute(delete(VectorRecord).where(VectorRecord.id == company_id))
    db.execute(delete(Company).where(Company.id == company_id))
    db.commit()


def parse_args() -> argparse.Namespace:
    """Parse script CLI arguments."""

    parser = argparse.ArgumentParser(description="Seed a demo account history and project it.")
    parser.add_argument(
        "--company-name",
        default=DEFAULT_COMPANY_NAME,
        help=f"Company name to seed (default: {DEFAULT_COMPANY_NAME})",
    )
    parser.add_argument(
        "--no-reset",
        action="store_true",
        help="Do not delete the existing company before seeding.",
    )
    parser.add_argument(
        "--no-project",
        action="store_true",
        help="Skip projecting the company into the vector index.",
    )
    return parser.parse_args()


def main() -> None:
    """Seed demo data and print a short summary."""

    args = parse_args()
    company_name: str = args.company_name
    actor = ChangeActor(source="seed_demo", user_id="demo", user_name="Demo Seeder")

    with SessionLocal() as db:
        if not args.no_reset:
            reset_company(db, company_name)
        storage = SqlAlchemyStorage(db)
        results = [ingest(storage, record, actor) for record in build_demo_records(company_name)]

    company_id = results[-1].company_id
    projected = False if args.no_project else run_projection_job(company_id)

    print("Seed complete")
    print(f"company_id={company_id}")
    print(f"updates_ingested={len(results)}")
    print(f"contact_ids={','.join(results[-2].contact_ids)}")
    print(f"deal_id={results[-1].deal_id}")
    print(f"projected={projected}")
    print()
    print("Inspect:")
    print(f"  GET /companies/{company_id}")
    print(f"  GET /companies/{company_id}/interactions")
    print(f"  GET /entities/company/{company_id}/history")
    print("  GET /search?q=logistics%20deal%20signed")


if __name__ == "__main__":
    main()
