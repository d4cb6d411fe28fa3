"""Atomic ingestion of one structured customer record."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from time import perf_counter
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from crm_ledger.config import get_settings
from crm_ledger.errors import ValidationError
from crm_ledger.history.diff import COMPANY_TRACKED_FIELDS
from crm_ledger.history.types import ChangeActor
from crm_ledger.schemas.ingest import CustomerRecord, IngestResult
from crm_ledger.services.companies import release_primary_contact
from crm_ledger.services.reconciler import (
    get_or_create_product,
    reconcile_company,
    reconcile_contact,
    reconcile_deal,
)
from crm_ledger.storage.interface import StorageBackend

logger = logging.getLogger(__name__)

INTERACTION_TYPE_USER_INPUT = "user_input"


def parse_customer_record(record: CustomerRecord | Mapping[str, Any]) -> CustomerRecord:
    """Coerce extraction output into a `CustomerRecord`, rejecting malformed payloads."""

    if isinstance(record, CustomerRecord):
        return record
    if not isinstance(record, Mapping):
        raise ValidationError(f"Customer record must be an object, got {type(record).__name__}")
    try:
        return CustomerRecord.model_validate(dict(record))
    except PydanticValidationError as exc:
        raise ValidationError(f"Customer record failed validation: {exc}") from exc


def validate_customer_record(record: CustomerRecord) -> None:
    """Check required fields before anything is written."""

    missing = [
        field_name
        for field_name in ("company_name", "raw_input")
        if not (getattr(record, field_name) or "").strip()
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    for index, contact in enumerate(record.contacts or []):
        if not contact.name.strip():
            raise ValidationError(f"contacts[{index}] must have a name")


def resolve_contact_inputs(record: CustomerRecord) -> list[dict[str, Any]]:
    """Pick the contact source for a record and force `is_primary` to False.

    Preference: the `contacts` array, then the legacy `contact` object, then the
    bare `primary_contact` string.
    """

    if record.contacts:
        candidates = [contact.model_dump() for contact in record.contacts]
    elif record.contact is not None and (record.contact.name or "").strip():
        candidates = [record.contact.model_dump()]
    elif (record.primary_contact or "").strip():
        candidates = [{"name": record.primary_contact}]
    else:
        candidates = []

    resolved = []
    for candidate in candidates:
        candidate["name"] = candidate["name"].strip()
        candidate["is_primary"] = False
        resolved.append(candidate)
    return resolved


def ingest(
    storage: StorageBackend,
    record: CustomerRecord | Mapping[str, Any],
    actor: ChangeActor | None = None,
    *,
    match_latest_deal_without_id: bool | None = None,
) -> IngestResult:
    """Reconcile company, contacts, and deal from one record in a single transaction.

    Raises `ValidationError` before touching storage. Any failure afterwards
    rolls the whole unit back and propagates unchanged.
    """

    settings = get_settings()
    parsed = parse_customer_record(record)
    validate_customer_record(parsed)
    active_actor = actor or ChangeActor(source=settings.default_source)
    match_latest = (
        settings.deal_match_latest_without_id
        if match_latest_deal_without_id is None
        else match_latest_deal_without_id
    )
    company_name = parsed.company_name.strip()

    total_started = perf_counter()
    try:
        with storage.transaction():
            company = reconcile_company(
                storage,
                company_name,
                parsed.model_dump(include=set(COMPANY_TRACKED_FIELDS)),
                active_actor,
            )

            contact_ids: list[str] = []
            demoted: list[str] = []
            for contact_input in resolve_contact_inputs(parsed):
                contact = reconcile_contact(storage, company.entity_id, contact_input, active_actor)
                contact_ids.append(contact.entity_id)
                if contact.history_entry is not None and contact.history_entry.previous_values.get("is_primary") is True:
                    demoted.append(contact_input["name"])
            if demoted:
                # Ingestion always demotes, so the company must not keep naming a non-primary contact.
                release_primary_contact(storage, company.entity_id, demoted, active_actor)

            deal_id: str | None = None
            deal_match = None
            if parsed.deal is not None:
                product_id = None
                if (parsed.deal.deal_product or "").strip():
                    product_id = get_or_create_product(storage, parsed.deal.deal_product.strip())
                deal = reconcile_deal(
                    storage,
                    company.entity_id,
                    parsed.deal.model_dump(exclude={"deal_product"}),
                    active_actor,
                    product_id=product_id,
                    match_latest_without_id=match_latest,
                )
                deal_id = deal.entity_id
                deal_match = deal.deal_match

            log_id = storage.insert_log(
                {
                    "company_id": company.entity_id,
                    "contact_id": contact_ids[0] if contact_ids else None,
                    "deal_id": deal_id,
                    "raw_input": parsed.raw_input,
                    "employee_id": active_actor.user_id,
                    "employee_name": active_actor.user_name,
                    "interaction_type": INTERACTION_TYPE_USER_INPUT,
                }
            )
    except Exception:
        logger.exception(
            "ingest.failed company_name=%s elapsed_ms=%.2f",
            company_name,
            (perf_counter() - total_started) * 1000.0,
        )
        raise

    result = IngestResult(
        company_id=company.entity_id,
        contact_ids=contact_ids,
        deal_id=deal_id,
        log_id=log_id,
        deal_match=deal_match,
    )
    logger.info(
        (
            "ingest.completed company_id=%s company_created=%s contact_ids=[%s] "
            "deal_id=%s deal_match=%s log_id=%s total_ms=%.2f"
        ),
        result.company_id,
        company.created,
        ", ".join(result.contact_ids),
        result.deal_id or "none",
        result.deal_match or "none",
        result.log_id,
        (perf_counter() - total_started) * 1000.0,
    )
    return result
