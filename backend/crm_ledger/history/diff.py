"""Field-level diffing and change classification for reconciled entities."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from crm_ledger.history.types import (
    ChangeActor,
    ChangeCategory,
    ChangeImportance,
    EntityKind,
    FieldDiff,
    HistoryEntry,
)

COMPANY_TRACKED_FIELDS: tuple[str, ...] = (
    "description",
    "industry_vertical",
    "sub_industry",
    "b2b_or_b2c",
    "size",
    "website_url",
    "country_hq",
    "other_countries",
    "revenue",
    "employee_size",
    "child_companies",
    "customer_segment_label",
    "primary_contact",
    "account_team",
    "company_hierarchy",
    "decision_country",
    "company_address",
    "company_legal_entity",
)
CONTACT_TRACKED_FIELDS: tuple[str, ...] = (
    "email",
    "phone",
    "title",
    "influence_role",
    "is_primary",
)
DEAL_TRACKED_FIELDS: tuple[str, ...] = (
    "deal_id",
    "product_name",
    "deal_state",
    "deal_amount",
    "deal_amount_currency",
    "stage",
    "deal_payment_status",
    "deal_start_date",
    "deal_end_date",
    "deal_expected_signing_date",
    "deal_signing_date",
    "deal_policy_state",
    "deal_health",
    "payment_frequency",
    "acquisition_channel_source",
    "acquisition_campaign_source",
    "deal_activity",
)

TRACKED_FIELDS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.COMPANY: COMPANY_TRACKED_FIELDS,
    EntityKind.CONTACT: CONTACT_TRACKED_FIELDS,
    EntityKind.DEAL: DEAL_TRACKED_FIELDS,
}

# Evaluated in order; first rule whose field set intersects the diff wins.
_CLASSIFICATION_RULES: dict[EntityKind, tuple[tuple[frozenset[str], ChangeCategory, ChangeImportance], ...]] = {
    EntityKind.COMPANY: (
        (frozenset({"industry_vertical", "size"}), ChangeCategory.COMPANY_CLASSIFICATION, ChangeImportance.MAJOR),
        (frozenset({"revenue", "employee_size"}), ChangeCategory.COMPANY_METRICS, ChangeImportance.MAJOR),
        (frozenset({"website_url", "country_hq"}), ChangeCategory.COMPANY_DETAILS, ChangeImportance.MINOR),
    ),
    EntityKind.CONTACT: (
        (frozenset({"email", "phone"}), ChangeCategory.CONTACT_INFO, ChangeImportance.MINOR),
        (frozenset({"title", "influence_role"}), ChangeCategory.CONTACT_ROLE, ChangeImportance.MAJOR),
    ),
    EntityKind.DEAL: (
        (frozenset({"stage", "deal_state"}), ChangeCategory.DEAL_STAGE, ChangeImportance.MAJOR),
        (frozenset({"deal_amount"}), ChangeCategory.DEAL_VALUE, ChangeImportance.MAJOR),
        (
            frozenset({"deal_signing_date", "deal_expected_signing_date"}),
            ChangeCategory.DEAL_TIMELINE,
            ChangeImportance.MAJOR,
        ),
    ),
}


def compute_diff(
    kind: EntityKind,
    previous: Mapping[str, Any] | None,
    incoming: Mapping[str, Any],
    *,
    fields: Sequence[str] | None = None,
) -> FieldDiff:
    """Return tracked fields whose incoming non-null value differs from `previous`.

    A missing `previous` means the entity is new, and creation is not a change.
    """

    if previous is None:
        return FieldDiff()

    diff = FieldDiff()
    for field_name in fields if fields is not None else TRACKED_FIELDS[kind]:
        if field_name not in incoming:
            continue
        new_value = incoming[field_name]
        if new_value is None:
            continue
        old_value = previous.get(field_name)
        if old_value == new_value:
            continue
        diff.changed_fields.append(field_name)
        diff.previous_values[field_name] = old_value
    return diff


def classify_change(kind: EntityKind, changed_fields: Sequence[str]) -> tuple[ChangeCategory, ChangeImportance]:
    """Map a changed-field set to its (category, importance) pair."""

    changed = set(changed_fields)
    for rule_fields, category, importance in _CLASSIFICATION_RULES[kind]:
        if changed & rule_fields:
            return category, importance
    return ChangeCategory.GENERAL_UPDATE, ChangeImportance.MINOR


def summarize_change(
    kind: EntityKind,
    diff: FieldDiff,
    incoming: Mapping[str, Any],
    *,
    display_name: str | None = None,
) -> str:
    """Render a one-line human summary of a diff."""

    changed = diff.changed_fields
    old = diff.previous_values
    joined = ", ".join(changed)
    name = display_name or "unknown"

    def _from_to(field_name: str) -> str:
        previous = old.get(field_name)
        return f"from {_display(previous)} to {_display(incoming.get(field_name))}"

    if kind is EntityKind.COMPANY:
        if "industry_vertical" in changed:
            return f"Changed {name}'s industry {_from_to('industry_vertical')}"
        if "size" in changed:
            return f"Changed {name}'s size {_from_to('size')}"
        if "name" in changed:
            return f"Renamed company {_from_to('name')}"
        return f"Updated {joined} for company {name}"

    if kind is EntityKind.CONTACT:
        if "title" in changed:
            return f"Updated {name}'s title {_from_to('title')}"
        if "is_primary" in changed:
            role = "primary" if incoming.get("is_primary") else "non-primary"
            return f"Marked {name} as {role} contact"
        return f"Updated {joined} for contact {name}"

    if "stage" in changed:
        return f"Deal stage changed {_from_to('stage')}"
    if "deal_amount" in changed:
        previous_amount = old.get("deal_amount")
        return f"Deal amount updated from {previous_amount or 0} to {incoming.get('deal_amount')}"
    if "deal_signing_date" in changed:
        return f"Deal was signed on {incoming.get('deal_signing_date')}"
    if "deal_expected_signing_date" in changed:
        return f"Expected signing date updated to {incoming.get('deal_expected_signing_date')}"
    return f"Updated {joined} for deal"


def build_searchable_text(
    summary: str,
    diff: FieldDiff,
    importance: ChangeImportance,
) -> str:
    """Flatten a change into text suitable for embedding."""

    previous = ", ".join(f"{key}: {_display(value)}" for key, value in diff.previous_values.items())
    parts = [
        f"{summary}.",
        f"Changed fields: {', '.join(diff.changed_fields)}.",
        f"Previous values: {previous}.",
    ]
    if importance is ChangeImportance.MAJOR:
        parts.append("This is a significant change.")
    return " ".join(parts)


def build_history_entry(
    kind: EntityKind,
    previous: Mapping[str, Any] | None,
    incoming: Mapping[str, Any],
    actor: ChangeActor,
    *,
    display_name: str | None = None,
    fields: Sequence[str] | None = None,
    now: datetime | None = None,
) -> HistoryEntry | None:
    """Diff, classify, and summarize one update. Returns None when nothing changed."""

    diff = compute_diff(kind, previous, incoming, fields=fields)
    if not diff:
        return None

    category, importance = classify_change(kind, diff.changed_fields)
    summary = summarize_change(kind, diff, incoming, display_name=display_name)
    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    return HistoryEntry(
        timestamp=timestamp,
        change_type=importance,
        change_category=category,
        summary=summary,
        changed_fields=list(diff.changed_fields),
        previous_values=dict(diff.previous_values),
        vector_searchable_text=build_searchable_text(summary, diff, importance),
        source=actor.source,
        user_id=actor.user_id,
        user_name=actor.user_name,
    )


def _display(value: Any) -> str:
    if value is None or value == "":
        return "unspecified"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value) or "unspecified"
    return str(value)
