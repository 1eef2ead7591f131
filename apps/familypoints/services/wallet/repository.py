"""
Child Points Repository (Supabase/Postgres Adapter)
===================================================

Purpose:
- DB-facing adapter for child profiles, both points ledgers, reward offers,
  the rewards catalog, the wallet rollup view, and the wallet RPCs.
- Written against the supabase-py query builder; no business rules here.

Tables / views read (names are constructor arguments):
1) public.child_profiles          id, child_uid, family_id, first_name, nick_name
2) public.points_ledger           child_uid, delta, reason, created_at
3) public.child_points_ledger     child_uid, points, reason, created_at, evidence_count
4) public.reward_offers           id, child_uid, reward_id, title, description,
                                  points_cost, points_cost_override, status
5) public.rewards_catalog         id, points_cost
6) public.vw_child_wallet_rollup  child_uid, lifetime_earned_pts, spent_cashout_pts,
                                  reserved_pts, spent_total_pts, available_pts, balance_pts

Errors from the client are not caught here; the service layer decides which
failures fall back and which surface.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from apps.familypoints.services.wallet.ledger import (
    LedgerEntry,
    from_child_points_ledger,
    from_points_ledger,
)


def _rows(r: Any) -> List[Dict[str, Any]]:
    data = getattr(r, "data", None) or []
    if isinstance(data, dict):
        return [data]
    return [x for x in data if isinstance(x, dict)]


def _first(r: Any) -> Optional[Dict[str, Any]]:
    rows = _rows(r)
    return rows[0] if rows else None


def _unique(values: Iterable[Optional[str]]) -> List[str]:
    out: List[str] = []
    for v in values:
        if v and v not in out:
            out.append(v)
    return out


class ChildPointsRepository:
    def __init__(
        self,
        supabase_client: Any,
        *,
        table_children: str = "child_profiles",
        table_points_ledger: str = "points_ledger",
        table_child_ledger: str = "child_points_ledger",
        table_offers: str = "reward_offers",
        table_catalog: str = "rewards_catalog",
        view_rollup: str = "vw_child_wallet_rollup",
    ) -> None:
        self.sb = supabase_client
        self.table_children = table_children
        self.table_points_ledger = table_points_ledger
        self.table_child_ledger = table_child_ledger
        self.table_offers = table_offers
        self.table_catalog = table_catalog
        self.view_rollup = view_rollup

    # -----------------------------
    # Children
    # -----------------------------
    async def find_child(self, key: str) -> Optional[Dict[str, Any]]:
        """Match on either the canonical id or the legacy child_uid."""
        r = (
            self.sb.table(self.table_children)
            .select("id,child_uid,family_id")
            .or_(f"id.eq.{key},child_uid.eq.{key}")
            .limit(1)
            .execute()
        )
        return _first(r)

    async def list_family_children(self, family_id: str) -> List[Dict[str, Any]]:
        r = (
            self.sb.table(self.table_children)
            .select("id,child_uid,first_name,nick_name")
            .eq("family_id", family_id)
            .execute()
        )
        return _rows(r)

    # -----------------------------
    # Rollup
    # -----------------------------
    async def get_wallet_rollup(self, child_uid: str) -> Optional[Dict[str, Any]]:
        r = self.sb.table(self.view_rollup).select("*").eq("child_uid", child_uid).limit(1).execute()
        return _first(r)

    # -----------------------------
    # Ledgers
    # -----------------------------
    async def list_points_ledger(self, ids: List[str], since: Optional[datetime] = None) -> List[LedgerEntry]:
        q = (
            self.sb.table(self.table_points_ledger)
            .select("delta,reason,created_at,child_uid")
            .in_("child_uid", _unique(ids))
        )
        if since is not None:
            q = q.gte("created_at", since.isoformat())
        r = q.order("created_at", desc=True).execute()
        return [from_points_ledger(x) for x in _rows(r)]

    async def list_child_points_ledger(self, ids: List[str], since: Optional[datetime] = None) -> List[LedgerEntry]:
        q = (
            self.sb.table(self.table_child_ledger)
            .select("points,reason,created_at,evidence_count,child_uid")
            .in_("child_uid", _unique(ids))
        )
        if since is not None:
            q = q.gte("created_at", since.isoformat())
        r = q.order("created_at", desc=True).execute()
        return [from_child_points_ledger(x) for x in _rows(r)]

    async def insert_points_ledger(self, child_uid: str, delta: int, reason: str) -> Dict[str, Any]:
        payload = {"child_uid": child_uid, "delta": int(delta), "reason": reason}
        r = self.sb.table(self.table_points_ledger).insert(payload).execute()
        row = _first(r)
        if row is None:
            raise RuntimeError("points_ledger insert returned no row")
        return row

    # -----------------------------
    # Offers / catalog
    # -----------------------------
    async def list_accepted_offers(self, ids: List[str]) -> List[Dict[str, Any]]:
        r = (
            self.sb.table(self.table_offers)
            .select("id,child_uid,reward_id,title,description,points_cost,points_cost_override,status")
            .in_("child_uid", _unique(ids))
            .eq("status", "Accepted")
            .execute()
        )
        return _rows(r)

    async def get_catalog_costs(self, reward_ids: List[str]) -> Dict[str, Any]:
        """One query for every reward id; returns {reward_id: points_cost}."""
        wanted = _unique(reward_ids)
        if not wanted:
            return {}
        r = self.sb.table(self.table_catalog).select("id,points_cost").in_("id", wanted).execute()
        return {str(x.get("id")): x.get("points_cost") for x in _rows(r)}

    # -----------------------------
    # RPCs
    # -----------------------------
    async def rpc(self, name: str, params: Dict[str, Any]) -> Any:
        r = self.sb.rpc(name, params).execute()
        return getattr(r, "data", None)
