"""Shared types for change tracking."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EntityKind(str, Enum):
    COMPANY = "company"
    CONTACT = "contact"
    DEAL = "deal"


class ChangeImportance(str, Enum):
    MAJOR = "major"
    MINOR = "minor"


class ChangeCategory(str, Enum):
    GENERAL_UPDATE = "GENERAL_UPDATE"
    COMPANY_CLASSIFICATION = "COMPANY_CLASSIFICATION"
    COMPANY_METRICS = "COMPANY_METRICS"
    COMPANY_DETAILS = "COMPANY_DETAILS"
    CONTACT_INFO = "CONTACT_INFO"
    CONTACT_ROLE = "CONTACT_ROLE"
    DEAL_STAGE = "DEAL_STAGE"
    DEAL_VALUE = "DEAL_VALUE"
    DEAL_TIMELINE = "DEAL_TIMELINE"


HISTORY_ENTRY_VERSION = "1.0"


@dataclass(slots=True)
class FieldDiff:
    """Changed field names (allow-list order) and their previous values."""

    changed_fields: list[str] = field(default_factory=list)
    previous_values: dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.changed_fields)


@dataclass(slots=True)
class ChangeActor:
    """Who or what caused a change. Copied onto history entries and logs."""

    source: str = "API"
    user_id: str | None = None
    user_name: str | None = None


@dataclass(slots=True)
class HistoryEntry:
    """One classified, timestamped change on an entity."""

    timestamp: str
    change_type: ChangeImportance
    change_category: ChangeCategory
    summary: str
    changed_fields: list[str]
    previous_values: dict[str, Any]
    vector_searchable_text: str
    source: str
    user_id: str | None = None
    user_name: str | None = None
    version: str = HISTORY_ENTRY_VERSION

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready shape stored in `change_history` columns."""

        return {
            "timestamp": self.timestamp,
            "change_type": self.change_type.value,
            "change_category": self.change_category.value,
            "summary": self.summary,
            "changed_fields": list(self.changed_fields),
            "previous_values": dict(self.previous_values),
            "vector_searchable_text": self.vector_searchable_text,
            "source": self.source,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "version": self.version,
        }
