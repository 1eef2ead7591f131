"""
Wallet math.

Pure functions only: map the rollup view onto a ChildWallet, or derive the same
figures from raw ledger entries plus the reserved total from accepted offers.

For every wallet built here:
    balance   = available + reserved
    available = max(0, net - reserved)
    spent     = max(0, earned - available - reserved)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from apps.familypoints.services.wallet.ledger import LedgerEntry, as_points, earned_points, net_points


@dataclass(frozen=True)
class ChildWallet:
    child_uid: str
    total_points: int
    reserved_points: int
    available_points: int
    spent_points: int
    balance_points: int
    source: str = "rollup"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "child_uid": self.child_uid,
            "total_points": int(self.total_points),
            "reserved_points": int(self.reserved_points),
            "available_points": int(self.available_points),
            "spent_points": int(self.spent_points),
            "balance_points": int(self.balance_points),
            "source": self.source,
        }


@dataclass(frozen=True)
class WalletRow:
    """Family roster line."""

    child_uid: str
    first_name: Optional[str]
    nick_name: Optional[str]
    earned_points: int
    spent_points: int
    available_points: int
    reserved_points: int

    @property
    def free_points(self) -> int:
        return self.available_points

    def to_dict(self) -> Dict[str, Any]:
        return {
            "child_uid": self.child_uid,
            "first_name": self.first_name,
            "nick_name": self.nick_name,
            "earned_points": int(self.earned_points),
            "spent_points": int(self.spent_points),
            "available_points": int(self.available_points),
            "reserved_points": int(self.reserved_points),
            "free_points": int(self.free_points),
        }


def zero_wallet(child_uid: str, source: str = "rollup") -> ChildWallet:
    return ChildWallet(
        child_uid=child_uid,
        total_points=0,
        reserved_points=0,
        available_points=0,
        spent_points=0,
        balance_points=0,
        source=source,
    )


def wallet_from_rollup(row: Optional[Dict[str, Any]], child_uid: str) -> ChildWallet:
    """1:1 mapping of vw_child_wallet_rollup; no row means a new child."""
    if not row:
        return zero_wallet(child_uid)

    def pts(key: str) -> int:
        return as_points(row.get(key)) or 0

    return ChildWallet(
        child_uid=str(row.get("child_uid") or child_uid),
        total_points=pts("lifetime_earned_pts"),
        reserved_points=pts("reserved_pts"),
        available_points=pts("available_pts"),
        spent_points=pts("spent_total_pts"),
        balance_points=pts("balance_pts"),
        source="rollup",
    )


def derive_wallet(child_uid: str, *, net: int, earned: int, reserved: int, source: str = "ledger") -> ChildWallet:
    reserved = max(0, int(reserved))
    available = max(0, int(net) - reserved)
    spent = max(0, int(earned) - available - reserved)
    return ChildWallet(
        child_uid=child_uid,
        total_points=int(earned),
        reserved_points=reserved,
        available_points=available,
        spent_points=spent,
        balance_points=available + reserved,
        source=source,
    )


def wallet_from_ledger(child_uid: str, entries: Iterable[LedgerEntry], reserved: int) -> ChildWallet:
    entries = list(entries)
    if not entries:
        return zero_wallet(child_uid, source="ledger")
    return derive_wallet(
        child_uid,
        net=net_points(entries),
        earned=earned_points(entries),
        reserved=reserved,
    )


def row_from_family_rpc(raw: Dict[str, Any]) -> WalletRow:
    """Normalize one api_family_wallet row onto a WalletRow."""
    earned = as_points(raw.get("total_points"))
    if earned is None:
        earned = as_points(raw.get("earned_points")) or 0
    reserved = as_points(raw.get("reserved_points")) or 0
    available = max(0, as_points(raw.get("available_points")) or 0)
    spent = as_points(raw.get("spent_points"))
    if spent is None:
        spent = max(0, earned - available - reserved)
    return WalletRow(
        child_uid=str(raw.get("child_uid") or ""),
        first_name=raw.get("first_name"),
        nick_name=raw.get("nick_name"),
        earned_points=earned,
        spent_points=spent,
        available_points=available,
        reserved_points=reserved,
    )


def row_from_wallet(child: Dict[str, Any], wallet: ChildWallet) -> WalletRow:
    return WalletRow(
        child_uid=str(child.get("child_uid") or wallet.child_uid),
        first_name=child.get("first_name"),
        nick_name=child.get("nick_name"),
        earned_points=wallet.total_points,
        spent_points=wallet.spent_points,
        available_points=wallet.available_points,
        reserved_points=wallet.reserved_points,
    )
