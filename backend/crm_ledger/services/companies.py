"""Read models and human-initiated mutations for companies and their contacts."""

from __future__ import annotations

import logging
from typing import Any

from crm_ledger.errors import NotFoundError, ValidationError
from crm_ledger.history.diff import build_history_entry
from crm_ledger.history.log import history_limit
from crm_ledger.history.types import ChangeActor, EntityKind
from crm_ledger.schemas.company import (
    CompanyRead,
    CompanySnapshot,
    ContactRead,
    DealRead,
    HistoryProjectionRead,
    InteractionLogRead,
)
from crm_ledger.storage.interface import StorageBackend

logger = logging.getLogger(__name__)


def parse_entity_kind(value: str | EntityKind) -> EntityKind:
    """Return the entity kind for a raw string, raising `ValidationError` if unknown."""

    if isinstance(value, EntityKind):
        return value
    try:
        return EntityKind(value.strip().lower())
    except ValueError as exc:
        raise ValidationError(f"Invalid entity type: {value}") from exc


def get_entity_history(
    storage: StorageBackend,
    kind: str | EntityKind,
    entity_id: str,
) -> list[HistoryProjectionRead]:
    """Return an entity's history trimmed to the fields the vector index needs."""

    entity_kind = parse_entity_kind(kind)
    snapshot = storage.get_entity_by_id(entity_kind, entity_id)
    if snapshot is None:
        return []
    return [
        HistoryProjectionRead(
            timestamp=entry.get("timestamp", ""),
            summary=entry.get("summary", ""),
            vector_searchable_text=entry.get("vector_searchable_text", ""),
            change_type=entry.get("change_type", ""),
            change_category=entry.get("change_category", ""),
        )
        for entry in snapshot.get("change_history") or []
    ]


def get_company_snapshot(storage: StorageBackend, company_id: str) -> CompanySnapshot:
    """Return a company with its contacts and deals (most recently updated deal first)."""

    company = storage.get_entity_by_id(EntityKind.COMPANY, company_id)
    if company is None:
        raise NotFoundError(f"company {company_id} not found")
    return CompanySnapshot(
        company=CompanyRead.model_validate(company),
        contacts=[ContactRead.model_validate(row) for row in storage.list_entities(EntityKind.CONTACT, company_id)],
        deals=[DealRead.model_validate(row) for row in storage.list_entities(EntityKind.DEAL, company_id)],
    )


def list_companies(storage: StorageBackend, *, limit: int = 100, offset: int = 0) -> list[CompanyRead]:
    """List companies, most recently updated first."""

    return [CompanyRead.model_validate(row) for row in storage.list_companies(limit=limit, offset=offset)]


def list_interaction_logs(
    storage: StorageBackend,
    company_id: str,
    *,
    limit: int = 100,
    offset: int = 0,
) -> list[InteractionLogRead]:
    """List a company's interaction logs, newest first, with referenced names resolved."""

    if storage.get_entity_by_id(EntityKind.COMPANY, company_id) is None:
        raise NotFoundError(f"company {company_id} not found")

    logs: list[InteractionLogRead] = []
    for row in storage.list_logs(company_id, limit=limit, offset=offset):
        enriched: dict[str, Any] = dict(row)
        if row.get("contact_id"):
            contact = storage.get_entity_by_id(EntityKind.CONTACT, row["contact_id"])
            enriched["contact_name"] = contact["name"] if contact else None
        if row.get("deal_id"):
            deal = storage.get_entity_by_id(EntityKind.DEAL, row["deal_id"])
            if deal is not None:
                enriched["deal_amount"] = deal.get("deal_amount")
                enriched["stage"] = deal.get("stage")
                enriched["product_name"] = deal.get("product_name")
        logs.append(InteractionLogRead.model_validate(enriched))
    return logs


def rename_company(
    storage: StorageBackend,
    company_id: str,
    new_name: str,
    actor: ChangeActor,
) -> CompanyRead:
    """Rename a company by its stable id and refresh cached names on its contacts and deals."""

    clean_name = (new_name or "").strip()
    if not clean_name:
        raise ValidationError("Company name must not be blank")

    with storage.transaction():
        company = storage.get_entity_by_id(EntityKind.COMPANY, company_id)
        if company is None:
            raise NotFoundError(f"company {company_id} not found")
        if company["name"] == clean_name:
            return CompanyRead.model_validate(company)
        clash = storage.get_entity(EntityKind.COMPANY, {"name": clean_name})
        if clash is not None:
            raise ValidationError(f"A company named {clean_name!r} already exists")

        entry = build_history_entry(
            EntityKind.COMPANY,
            company,
            {"name": clean_name},
            actor,
            display_name=clean_name,
            fields=("name",),
        )
        history = storage.append_history(EntityKind.COMPANY, company_id, entry, history_limit(EntityKind.COMPANY))
        storage.upsert_entity(EntityKind.COMPANY, company_id, {"name": clean_name}, history)
        for kind in (EntityKind.CONTACT, EntityKind.DEAL):
            for row in storage.list_entities(kind, company_id):
                storage.upsert_entity(kind, row["id"], {"company_name": clean_name}, row["change_history"])
        renamed = storage.get_entity_by_id(EntityKind.COMPANY, company_id)

    logger.info("company.renamed company_id=%s old_name=%s new_name=%s", company_id, company["name"], clean_name)
    return CompanyRead.model_validate(renamed)


def set_primary_contact(
    storage: StorageBackend,
    company_id: str,
    contact_id: str,
    actor: ChangeActor,
) -> ContactRead:
    """Mark one contact as the company's primary contact and demote the others."""

    with storage.transaction():
        company = storage.get_entity_by_id(EntityKind.COMPANY, company_id)
        if company is None:
            raise NotFoundError(f"company {company_id} not found")
        contact = storage.get_entity_by_id(EntityKind.CONTACT, contact_id)
        if contact is None or contact["company_id"] != company_id:
            raise NotFoundError(f"contact {contact_id} not found for company {company_id}")

        limit = history_limit(EntityKind.CONTACT)
        for row in storage.list_entities(EntityKind.CONTACT, company_id):
            wanted = row["id"] == contact_id
            if bool(row.get("is_primary")) == wanted:
                continue
            entry = build_history_entry(
                EntityKind.CONTACT,
                row,
                {"is_primary": wanted},
                actor,
                display_name=row["name"],
            )
            history = storage.append_history(EntityKind.CONTACT, row["id"], entry, limit)
            storage.upsert_entity(EntityKind.CONTACT, row["id"], {"is_primary": wanted}, history)

        company_entry = build_history_entry(
            EntityKind.COMPANY,
            company,
            {"primary_contact": contact["name"]},
            actor,
            display_name=company["name"],
        )
        company_history = storage.append_history(
            EntityKind.COMPANY,
            company_id,
            company_entry,
            history_limit(EntityKind.COMPANY),
        )
        storage.upsert_entity(EntityKind.COMPANY, company_id, {"primary_contact": contact["name"]}, company_history)
        updated = storage.get_entity_by_id(EntityKind.CONTACT, contact_id)

    logger.info("contact.primary_set company_id=%s contact_id=%s", company_id, contact_id)
    return ContactRead.model_validate(updated)


def release_primary_contact(
    storage: StorageBackend,
    company_id: str,
    contact_names: list[str],
    actor: ChangeActor,
) -> bool:
    """Clear `primary_contact` if it names a contact that was just demoted.

    Runs inside the caller's transaction. Returns True when the company changed.
    """

    company = storage.get_entity_by_id(EntityKind.COMPANY, company_id)
    if company is None:
        raise NotFoundError(f"company {company_id} not found")
    if not company.get("primary_contact") or company["primary_contact"] not in contact_names:
        return False

    entry = build_history_entry(
        EntityKind.COMPANY,
        company,
        {"primary_contact": ""},
        actor,
        display_name=company["name"],
        fields=("primary_contact",),
    )
    history = storage.append_history(EntityKind.COMPANY, company_id, entry, history_limit(EntityKind.COMPANY))
    storage.upsert_entity(EntityKind.COMPANY, company_id, {"primary_contact": None}, history)
    logger.info(
        "company.primary_contact_released company_id=%s contact_name=%s",
        company_id,
        company["primary_contact"],
    )
    return True
