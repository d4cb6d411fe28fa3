"""Change tracking: diffing, classification, and bounded history."""

from crm_ledger.history.diff import (
    TRACKED_FIELDS,
    build_history_entry,
    classify_change,
    compute_diff,
    summarize_change,
)
from crm_ledger.history.log import HISTORY_LIMITS, append_history, history_limit
from crm_ledger.history.types import (
    ChangeActor,
    ChangeCategory,
    ChangeImportance,
    EntityKind,
    FieldDiff,
    HistoryEntry,
)

__all__ = [
    "HISTORY_LIMITS",
    "TRACKED_FIELDS",
    "ChangeActor",
    "ChangeCategory",
    "ChangeImportance",
    "EntityKind",
    "FieldDiff",
    "HistoryEntry",
    "append_history",
    "build_history_entry",
    "classify_change",
    "compute_diff",
    "history_limit",
    "summarize_change",
]
