"""
Earnings breakdown by source.

Every strictly positive ledger entry lands in exactly one bucket, chosen by
pattern-matching its free-text reason. Debug awards are dropped before
classification and never reach a bucket. `total` is always the sum of the
buckets.

This filter applies to the breakdown only; wallet aggregation still counts
debug rows in net/earned.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, fields
from typing import Any, Dict, Iterable, Literal

from apps.familypoints.services.wallet.ledger import LedgerEntry

Bucket = Literal[
    "daily",
    "checklists",
    "games",
    "targets",
    "wishlist",
    "reward_encourage",
    "reward_redemption",
    "other",
]

GAME_TOKENS = (
    "starcatcher",
    "mathsprint",
    "wordbuilder",
    "memorymatch",
    "jumpplatformer",
    "jumpingplatformer",
    "jumpinggame",
    "jumpgame",
    "quizgame",
    "trivia",
    "anyrunner",
    "game",
)

GAME_TOKEN_PAIRS = (
    ("math", "sprint"),
    ("word", "builder"),
    ("memory", "match"),
)

# Story/activity titles that were awarded without a "target" prefix.
STORY_TARGET_TITLES = (
    "read 10 pages",
    "dusting adventure",
    "block city",
    "blue sky with rainbow",
    "quick forest painting",
    "draw a monkey",
)

_COLLAPSE_RX = re.compile(r"[\s\W_]+")


def normalize_reason(reason: Any) -> str:
    return "" if reason is None else str(reason).lower().strip()


def collapse_reason(reason: Any) -> str:
    return _COLLAPSE_RX.sub("", normalize_reason(reason))


def is_debug_reason(reason: Any) -> bool:
    r = normalize_reason(reason)
    return bool(r) and ("rpc debug award" in r or r.startswith("debug"))


def is_game_reason(reason: Any) -> bool:
    s = collapse_reason(reason)
    if not s:
        return False
    if any(tok in s for tok in GAME_TOKENS):
        return True
    return any(a in s and b in s for a, b in GAME_TOKEN_PAIRS)


def classify_reason(reason: Any) -> Bucket:
    r = normalize_reason(reason)
    if not r:
        return "other"

    if is_game_reason(r):
        return "games"
    if "daily activity" in r:
        return "daily"
    if "checklist" in r:
        return "checklists"
    if "target" in r:
        return "targets"
    if "wishlist" in r or "wish" in r:
        return "wishlist"
    if any(title in r for title in STORY_TARGET_TITLES):
        return "targets"
    if "encourage reward" in r or "encouragement reward" in r or r.startswith("encouragement:"):
        return "reward_encourage"
    if "redemption reward" in r or r.startswith("reward redemption") or r.startswith("redeem reward"):
        return "reward_redemption"
    return "other"


@dataclass
class EarningsBreakdown:
    daily: int = 0
    checklists: int = 0
    games: int = 0
    targets: int = 0
    wishlist: int = 0
    reward_encourage: int = 0
    reward_redemption: int = 0
    other: int = 0

    @property
    def total(self) -> int:
        return sum(getattr(self, f.name) for f in fields(self))

    def add(self, bucket: Bucket, points: int) -> None:
        setattr(self, bucket, getattr(self, bucket) + int(points))

    def to_dict(self) -> Dict[str, int]:
        return {
            "daily": self.daily,
            "checklists": self.checklists,
            "games": self.games,
            "targets": self.targets,
            "wishlist": self.wishlist,
            "rewardEncourage": self.reward_encourage,
            "rewardRedemption": self.reward_redemption,
            "other": self.other,
            "total": self.total,
        }


def build_breakdown(entries: Iterable[LedgerEntry]) -> EarningsBreakdown:
    out = EarningsBreakdown()
    for e in entries:
        if e.delta <= 0 or is_debug_reason(e.reason):
            continue
        out.add(classify_reason(e.reason), e.delta)
    return out
