"""
Ledger Entries (Canonical)
==========================

Two append-only tables record the same concept with different columns:

- points_ledger        -> `delta`
- child_points_ledger  -> `points` (+ evidence_count)

Both are mapped onto one immutable LedgerEntry at the repository boundary so
business logic never sees two shapes. Rows are never updated or deleted here;
corrections are new entries.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Literal, Optional

from dateutil.parser import isoparse

LedgerSource = Literal["points_ledger", "child_points_ledger"]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def as_points(value: Any) -> Optional[int]:
    """
    Coerce a numeric column to int points.
    Ints pass through unchanged; Decimal, float and numeric strings go through
    Decimal so large values keep their precision. Returns None for missing,
    non-numeric, NaN or infinite values.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not d.is_finite():
        return None
    return int(d)


def parse_timestamp(value: Any) -> datetime:
    """PostgREST timestamptz text (any fraction length, Z or offset) to an aware datetime."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    raw = str(value or "").strip()
    if not raw:
        return _EPOCH
    try:
        ts = isoparse(raw)
    except (ValueError, OverflowError):
        return _EPOCH
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class LedgerEntry:
    child_ref: str
    delta: int
    reason: Optional[str]
    created_at: str
    source: LedgerSource
    evidence_count: int = 0

    @property
    def timestamp(self) -> datetime:
        return parse_timestamp(self.created_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "child_uid": self.child_ref,
            "delta": int(self.delta),
            "reason": self.reason,
            "created_at": self.created_at,
            "source": self.source,
            "evidence_count": int(self.evidence_count),
        }


def from_points_ledger(row: Dict[str, Any]) -> LedgerEntry:
    return LedgerEntry(
        child_ref=str(row.get("child_uid") or ""),
        delta=as_points(row.get("delta")) or 0,
        reason=row.get("reason"),
        created_at=str(row.get("created_at") or ""),
        source="points_ledger",
    )


def from_child_points_ledger(row: Dict[str, Any]) -> LedgerEntry:
    return LedgerEntry(
        child_ref=str(row.get("child_uid") or ""),
        delta=as_points(row.get("points")) or 0,
        reason=row.get("reason"),
        created_at=str(row.get("created_at") or ""),
        source="child_points_ledger",
        evidence_count=as_points(row.get("evidence_count")) or 0,
    )


def merge_entries(*sources: Iterable[LedgerEntry]) -> List[LedgerEntry]:
    """Merge ledger sources newest-first."""
    merged: List[LedgerEntry] = []
    for src in sources:
        merged.extend(src)
    return sorted(merged, key=lambda e: e.timestamp, reverse=True)


def net_points(entries: Iterable[LedgerEntry]) -> int:
    return sum(int(e.delta) for e in entries)


def earned_points(entries: Iterable[LedgerEntry]) -> int:
    # Negative rows are spends/corrections; they never reduce "earned".
    return sum(int(e.delta) for e in entries if e.delta > 0)
