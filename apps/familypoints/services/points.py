# apps/familypoints/services/points.py
"""
Idempotent point awards.

Primary path is the award_points_idem_api RPC, which records at most one
ledger row per scoped key ("{canonical_child_id}:{ref}"). When the RPC cannot
confirm the award (error, empty payload, or no key to dedupe on) a plain
points_ledger row is inserted instead. That fallback gives up the idempotency
guarantee so a legitimate award is never lost; duplicates are possible only
when the RPC is failing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Literal, Optional, Union

from apps.familypoints.services.errors import AwardUnconfirmed, BackendUnavailable
from apps.familypoints.services.events import POINTS_CHANGED, PointsEvents
from apps.familypoints.services.wallet.identifiers import resolve_identifiers
from apps.familypoints.services.wallet.repository import ChildPointsRepository

log = logging.getLogger("familypoints.points")

AWARD_RPC = "award_points_idem_api"

GAME_REASONS: Dict[str, str] = {
    "mathsprint": "Math Sprint reward",
    "wordbuilder": "Word Builder reward",
    "memory": "Memory Match reward",
    "starcatcher": "StarCatcher reward",
    "jump": "Jumping Platformer reward",
}

AwardPath = Literal["rpc", "insert", "duplicate"]


@dataclass(frozen=True)
class AwardResult:
    awarded: bool
    ledger_id: Optional[str]
    via: AwardPath
    child_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "awarded": self.awarded,
            "ledger_id": self.ledger_id,
            "via": self.via,
            "child_id": self.child_id,
        }


def _day(d: Union[date, datetime]) -> str:
    if isinstance(d, datetime):
        d = (d.astimezone(timezone.utc) if d.tzinfo else d).date()
    return d.isoformat()


def make_idem_key(subject: str, segment: int, day: Optional[Union[date, datetime]] = None) -> str:
    """
    Deterministic key for one logical award.
    make_idem_key("quiz", 2)                    -> "quiz:2"
    make_idem_key("mathsprint", 2, date(...))   -> "mathsprint:2024-05-01:seg:2"
    """
    if day is None:
        return f"{subject}:{segment}"
    return f"{subject}:{_day(day)}:seg:{segment}"


def segment_from_count(count: int, every: int) -> int:
    return int(count) // int(every) - 1


def scoped_ref(canonical_child_id: str, ref: Optional[str]) -> Optional[str]:
    return f"{canonical_child_id}:{ref}" if ref else None


def _award_row(data: Any) -> Optional[Dict[str, Any]]:
    row = data[0] if isinstance(data, list) and data else data
    return row if isinstance(row, dict) else None


class PointsService:
    def __init__(self, repo: ChildPointsRepository, *, events: Optional[PointsEvents] = None) -> None:
        self.repo = repo
        self.events = events or PointsEvents()

    async def _award_via_rpc(self, child: str, delta: int, reason: str, key: Optional[str]) -> AwardResult:
        try:
            data = await self.repo.rpc(
                AWARD_RPC,
                {"p_child": child, "p_delta": delta, "p_reason": reason, "p_ref": key},
            )
        except Exception as e:
            raise AwardUnconfirmed(f"{AWARD_RPC} failed: {e}") from e

        row = _award_row(data)
        if row is None or "awarded" not in row:
            raise AwardUnconfirmed(f"{AWARD_RPC} returned no award payload")
        if row.get("awarded"):
            ledger_id = row.get("ledger_id")
            return AwardResult(True, str(ledger_id) if ledger_id else None, "rpc", child)
        if key:
            return AwardResult(False, None, "duplicate", child)
        # Without a key the RPC has nothing to dedupe on; "not awarded" is unexplained.
        raise AwardUnconfirmed(f"{AWARD_RPC} declined an award without an idempotency key")

    async def award_points(self, child: Any, delta: int, reason: str, ref: Optional[str] = None) -> AwardResult:
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise ValueError("delta must be an integer")
        if delta == 0:
            raise ValueError("delta must be non-zero")

        canonical = (await resolve_identifiers(self.repo, child)).canonical
        key = scoped_ref(canonical, ref)

        try:
            result = await self._award_via_rpc(canonical, delta, reason, key)
        except AwardUnconfirmed as e:
            log.warning("[points] %s; inserting points_ledger row directly (child=%s ref=%s)", e, canonical, key)
            try:
                row = await self.repo.insert_points_ledger(canonical, delta, reason)
            except Exception as ex:
                raise BackendUnavailable(f"points award failed: {ex}") from ex
            result = AwardResult(True, str(row["id"]) if row.get("id") else None, "insert", canonical)

        if result.awarded:
            log.info("Awarded %s points to child=%s via=%s", delta, canonical, result.via)
            self.events.publish(POINTS_CHANGED, {"childId": canonical})
        else:
            log.info("Duplicate award ignored for child=%s ref=%s", canonical, key)
        return result

    async def award_game_segment(
        self,
        child: Any,
        game: str,
        segment: int,
        delta: int,
        day: Optional[Union[date, datetime]] = None,
    ) -> AwardResult:
        reason = GAME_REASONS.get(game)
        if reason is None:
            raise ValueError(f"Unknown game: {game}")
        ref = make_idem_key(game, segment, day or datetime.now(timezone.utc))
        return await self.award_points(child, delta, reason, ref=ref)
