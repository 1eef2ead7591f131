"""
Completed-target point sums per child.

Strategy order:
1) set-based RPC (two historical names)
2) per-child RPC (two historical names), accepted when any child resolves
3) heuristic over positive points_ledger rows whose reason hints at a target
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from apps.familypoints.services.wallet.ledger import as_points
from apps.familypoints.services.wallet.repository import ChildPointsRepository
from apps.familypoints.services.wallet.strategies import UNAVAILABLE, first_available

log = logging.getLogger("familypoints.wallet")

RPC_MANY = ("api_targets_completed_sum_many", "api_sum_completed_targets_many")
RPC_ONE = ("api_targets_completed_sum", "api_sum_completed_targets")

TARGET_REASON_HINTS = ("target", "completed target", "mission", "quest", "goal")

_NON_ID_RX = re.compile(r"[^0-9a-f-]")


def clean_child_id(raw: Any) -> str:
    """Lowercase and drop anything outside [0-9a-f-] so ids are safe inside PostgREST filters."""
    return _NON_ID_RX.sub("", str(raw or "").lower())


def normalize_child_ids(child_uids: Iterable[Any]) -> List[str]:
    out: List[str] = []
    for raw in child_uids or []:
        v = clean_child_id(raw)
        if v and v not in out:
            out.append(v)
    return out


def _total_from_rpc(data: Any) -> Optional[int]:
    # Some deployments return a bare number, others {total}.
    if isinstance(data, dict):
        data = data.get("total")
    if isinstance(data, list) and len(data) == 1 and isinstance(data[0], dict):
        data = data[0].get("total")
    return as_points(data)


def _with_all_ids(totals: Dict[str, int], ids: List[str]) -> Dict[str, int]:
    return {cid: int(totals.get(cid, 0)) for cid in ids}


async def sum_completed_totals(repo: ChildPointsRepository, child_uids: Iterable[Any]) -> Dict[str, int]:
    ids = normalize_child_ids(child_uids)
    if not ids:
        return {}

    async def set_rpc() -> Optional[Dict[str, int]]:
        for name in RPC_MANY:
            try:
                data = await repo.rpc(name, {"p_child_uids": ids})
            except Exception as e:
                log.info("[targets] %s unavailable: %s", name, e)
                continue
            if isinstance(data, list):
                totals: Dict[str, int] = {}
                for row in data:
                    if not isinstance(row, dict):
                        continue
                    cid = clean_child_id(row.get("child_uid") or row.get("child"))
                    if cid:
                        totals[cid] = as_points(row.get("total")) or 0
                return _with_all_ids(totals, ids)
        return UNAVAILABLE

    async def per_child_rpc() -> Optional[Dict[str, int]]:
        totals: Dict[str, int] = {}
        for cid in ids:
            for name in RPC_ONE:
                try:
                    n = _total_from_rpc(await repo.rpc(name, {"p_child_uid": cid}))
                except Exception:
                    continue
                if n is not None:
                    totals[cid] = n
                    break
        if not totals:
            return UNAVAILABLE
        return _with_all_ids(totals, ids)

    async def heuristic() -> Dict[str, int]:
        log.warning("[targets] completed-sum RPCs unavailable, using points_ledger heuristic")
        totals: Dict[str, int] = {}
        for e in await repo.list_points_ledger(ids):
            cid = clean_child_id(e.child_ref)
            if e.delta <= 0 or not cid:
                continue
            reason = (e.reason or "").lower()
            if any(h in reason for h in TARGET_REASON_HINTS):
                totals[cid] = totals.get(cid, 0) + e.delta
        return _with_all_ids(totals, ids)

    return await first_available(
        [("rpc_many", set_rpc), ("rpc_one", per_child_rpc), ("heuristic", heuristic)],
        label="completed targets",
    )
