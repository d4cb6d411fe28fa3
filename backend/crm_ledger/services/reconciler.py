"""Per-kind identity resolution, merge, and history tracking."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

from crm_ledger.errors import NotFoundError
from crm_ledger.history.diff import (
    COMPANY_TRACKED_FIELDS,
    CONTACT_TRACKED_FIELDS,
    DEAL_TRACKED_FIELDS,
    build_history_entry,
)
from crm_ledger.history.log import append_history, history_limit
from crm_ledger.history.types import ChangeActor, EntityKind, HistoryEntry
from crm_ledger.models.base import new_id
from crm_ledger.storage.interface import Snapshot, StorageBackend

logger = logging.getLogger(__name__)

DEAL_DATE_FIELDS: tuple[str, ...] = (
    "deal_start_date",
    "deal_end_date",
    "deal_expected_signing_date",
    "deal_signing_date",
)

DealMatch = Literal["created", "matched_id", "matched_latest"]


@dataclass(slots=True)
class Reconciliation:
    """Outcome of reconciling one incoming record against the store."""

    entity_id: str
    created: bool
    history_entry: HistoryEntry | None = None
    deal_match: DealMatch | None = None


def merge_values(
    previous: Mapping[str, Any] | None,
    incoming: Mapping[str, Any],
    fields: tuple[str, ...],
) -> dict[str, Any]:
    """Incoming non-null values win; otherwise the previous value is kept."""

    merged: dict[str, Any] = {}
    for field_name in fields:
        value = incoming.get(field_name)
        if value is None and previous is not None:
            value = previous.get(field_name)
        merged[field_name] = value
    return merged


def normalize_deal_dates(deal: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of `deal` where blank date strings become None."""

    normalized = dict(deal)
    for field_name in DEAL_DATE_FIELDS:
        value = normalized.get(field_name)
        if isinstance(value, str) and not value.strip():
            normalized[field_name] = None
    return normalized


def reconcile_company(
    storage: StorageBackend,
    name: str,
    attributes: Mapping[str, Any],
    actor: ChangeActor,
) -> Reconciliation:
    """Upsert a company identified by its exact name."""

    previous = storage.get_entity(EntityKind.COMPANY, {"name": name})
    return _apply(
        storage,
        EntityKind.COMPANY,
        previous,
        attributes,
        COMPANY_TRACKED_FIELDS,
        identity={"name": name},
        actor=actor,
        display_name=name,
    )


def reconcile_contact(
    storage: StorageBackend,
    company_id: str,
    attributes: Mapping[str, Any],
    actor: ChangeActor,
) -> Reconciliation:
    """Upsert a contact identified by (company, name)."""

    name = attributes["name"]
    company = _require(storage, EntityKind.COMPANY, company_id)
    previous = storage.get_entity(EntityKind.CONTACT, {"company_id": company_id, "name": name})
    return _apply(
        storage,
        EntityKind.CONTACT,
        previous,
        attributes,
        CONTACT_TRACKED_FIELDS,
        identity={"company_id": company_id, "name": name},
        actor=actor,
        display_name=name,
        denormalized={"company_name": company["name"]},
    )


def reconcile_deal(
    storage: StorageBackend,
    company_id: str,
    attributes: Mapping[str, Any],
    actor: ChangeActor,
    *,
    product_id: str | None = None,
    match_latest_without_id: bool = False,
) -> Reconciliation:
    """Upsert a deal identified by its external id within the company.

    Without an external id a new deal is created unless
    `match_latest_without_id` asks for the most recent company deal instead.
    """

    company = _require(storage, EntityKind.COMPANY, company_id)
    incoming = normalize_deal_dates(attributes)

    product_name = None
    if product_id is not None:
        product = storage.get_product(product_id)
        if product is None:
            raise NotFoundError(f"product {product_id} not found")
        product_name = product["name"]
    incoming["product_name"] = product_name

    external_id = incoming.get("deal_id")
    previous: Snapshot | None = None
    match: DealMatch = "created"
    if external_id:
        previous = storage.get_entity(EntityKind.DEAL, {"company_id": company_id, "deal_id": external_id})
        if previous is not None:
            match = "matched_id"
    elif match_latest_without_id:
        previous = storage.latest_deal(company_id)
        if previous is not None:
            match = "matched_latest"

    result = _apply(
        storage,
        EntityKind.DEAL,
        previous,
        incoming,
        DEAL_TRACKED_FIELDS,
        identity={"company_id": company_id},
        actor=actor,
        display_name=external_id or company["name"],
        denormalized={"company_name": company["name"]},
        extra_fields=("product_id",),
        extra_incoming={"product_id": product_id},
    )
    result.deal_match = match
    return result


def get_or_create_product(storage: StorageBackend, name: str) -> str:
    """Resolve a product by name, creating it on first sight."""

    existing = storage.find_product(name)
    if existing is not None:
        return existing["id"]
    product_id = new_id()
    storage.insert_product(product_id, name)
    logger.info("reconcile.product_created product_id=%s name=%s", product_id, name)
    return product_id


def _apply(
    storage: StorageBackend,
    kind: EntityKind,
    previous: Snapshot | None,
    incoming: Mapping[str, Any],
    fields: tuple[str, ...],
    *,
    identity: Mapping[str, Any],
    actor: ChangeActor,
    display_name: str | None,
    denormalized: Mapping[str, Any] | None = None,
    extra_fields: tuple[str, ...] = (),
    extra_incoming: Mapping[str, Any] | None = None,
) -> Reconciliation:
    created = previous is None
    entity_id = new_id() if previous is None else previous["id"]

    entry = build_history_entry(kind, previous, incoming, actor, display_name=display_name)
    history = append_history(
        previous["change_history"] if previous is not None else [],
        entry,
        history_limit(kind),
    )

    values = merge_values(previous, incoming, fields)
    if extra_fields:
        values.update(merge_values(previous, extra_incoming or {}, extra_fields))
    if kind is EntityKind.CONTACT and values.get("is_primary") is None:
        values["is_primary"] = False
    values.update(identity)
    values.update(denormalized or {})

    storage.upsert_entity(kind, entity_id, values, history)
    logger.info(
        "reconcile.%s_%s id=%s changed_fields=%s history_len=%d",
        kind.value,
        "created" if created else "updated",
        entity_id,
        ",".join(entry.changed_fields) if entry else "",
        len(history),
    )
    return Reconciliation(entity_id=entity_id, created=created, history_entry=entry)


def _require(storage: StorageBackend, kind: EntityKind, entity_id: str) -> Snapshot:
    snapshot = storage.get_entity_by_id(kind, entity_id)
    if snapshot is None:
        raise NotFoundError(f"{kind.value} {entity_id} not found")
    return snapshot
