"""Bounded, append-only history sequences."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from crm_ledger.history.types import EntityKind, HistoryEntry

HISTORY_LIMITS: dict[EntityKind, int] = {
    EntityKind.COMPANY: 20,
    EntityKind.CONTACT: 10,
    EntityKind.DEAL: 15,
}


def append_history(
    existing: Sequence[dict[str, Any]] | None,
    new_entry: HistoryEntry | dict[str, Any] | None,
    max_length: int,
) -> list[dict[str, Any]]:
    """Return a new history list with `new_entry` appended and the oldest entries evicted.

    The input sequence is never mutated. A `None` entry leaves the history as-is.
    """

    if max_length < 1:
        raise ValueError("max_length must be at least 1")

    history = list(existing or [])
    if new_entry is None:
        return history

    entry = new_entry.to_dict() if isinstance(new_entry, HistoryEntry) else dict(new_entry)
    history.append(entry)
    if len(history) > max_length:
        history = history[-max_length:]
    return history


def history_limit(kind: EntityKind) -> int:
    """Return the retention bound for an entity kind."""

    return HISTORY_LIMITS[kind]
