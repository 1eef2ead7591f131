"""
Wallet Service (Canonical Integration Layer)
============================================

Purpose:
- Orchestrate identifier resolution, rollup reads, ledger fallback, reserved
  points and the earnings breakdown over a ChildPointsRepository.
- Keep routes thin. Keep the math in summary/reserved/breakdown.

All reads are side-effect free. Concurrent refreshes for the same child are
allowed; the datastore is the source of truth, so the last response wins.

No HTTP here. Routes should call this.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from apps.familypoints.services.errors import BackendUnavailable, InvalidIdentifier
from apps.familypoints.services.events import PointsEvents
from apps.familypoints.services.wallet.breakdown import EarningsBreakdown, build_breakdown
from apps.familypoints.services.wallet.identifiers import (
    ChildIdentifiers,
    lookup_child,
    resolve_identifiers,
    validate_child_id,
)
from apps.familypoints.services.wallet.ledger import LedgerEntry, as_points, merge_entries
from apps.familypoints.services.wallet.repository import ChildPointsRepository
from apps.familypoints.services.wallet.reserved import (
    ReservedOffer,
    compute_reserved_from_offers,
    list_reserved_offers,
)
from apps.familypoints.services.wallet.strategies import first_available
from apps.familypoints.services.wallet.summary import (
    ChildWallet,
    WalletRow,
    row_from_family_rpc,
    row_from_wallet,
    wallet_from_ledger,
    wallet_from_rollup,
    zero_wallet,
)
from apps.familypoints.services.wallet.targets import normalize_child_ids, sum_completed_totals

log = logging.getLogger("familypoints.wallet")


class WalletService:
    """
    Repo contract: see ChildPointsRepository.

    ledger_fallback=False turns off the raw-ledger wallet path, so a failing
    rollup view surfaces as BackendUnavailable.
    """

    def __init__(
        self,
        repo: ChildPointsRepository,
        *,
        events: Optional[PointsEvents] = None,
        ledger_fallback: bool = True,
    ) -> None:
        self.repo = repo
        self.events = events or PointsEvents()
        self.ledger_fallback = bool(ledger_fallback)

    # -----------------------------
    # Identifiers
    # -----------------------------
    async def resolve_identifiers(self, child_id: Any) -> ChildIdentifiers:
        return await resolve_identifiers(self.repo, child_id)

    async def lookup_child(self, key: Any) -> Optional[Dict[str, Any]]:
        return await lookup_child(self.repo, key)

    # -----------------------------
    # Ledgers
    # -----------------------------
    async def _gather_ledgers(self, ids: List[str], since: Optional[datetime] = None) -> List[LedgerEntry]:
        """
        Read both ledgers. One failing source is logged and skipped; both
        failing raises BackendUnavailable.
        """
        sources = (
            ("points_ledger", self.repo.list_points_ledger),
            ("child_points_ledger", self.repo.list_child_points_ledger),
        )
        collected: List[List[LedgerEntry]] = []
        errors: List[str] = []
        for name, fetch in sources:
            try:
                collected.append(await fetch(ids, since))
            except Exception as e:
                log.warning("[wallet] %s query failed for %s: %s", name, ids, e)
                errors.append(f"{name}: {e}")
        if not collected:
            raise BackendUnavailable(f"ledgers unavailable ({'; '.join(errors)})")
        return merge_entries(*collected)

    async def fetch_ledger_since(self, child_id: Any, since: datetime) -> List[LedgerEntry]:
        """Merged history of both ledgers since `since`, newest first. Strict: any failing source raises."""
        ids = (await self.resolve_identifiers(child_id)).ids
        try:
            points = await self.repo.list_points_ledger(ids, since)
            child_points = await self.repo.list_child_points_ledger(ids, since)
        except Exception as e:
            raise BackendUnavailable(f"ledger history unavailable: {e}") from e
        return merge_entries(child_points, points)

    # -----------------------------
    # Wallet
    # -----------------------------
    async def fetch_wallet(self, child_id: Any) -> ChildWallet:
        key = validate_child_id(child_id)

        async def rollup() -> ChildWallet:
            return wallet_from_rollup(await self.repo.get_wallet_rollup(key), key)

        async def ledger() -> ChildWallet:
            return await self._wallet_from_ledger(key)

        strategies = [("rollup", rollup)]
        if self.ledger_fallback:
            strategies.append(("ledger", ledger))
        return await first_available(strategies, label="wallet")

    async def _wallet_from_ledger(self, key: str) -> ChildWallet:
        ids = await self.resolve_identifiers(key)
        entries = await self._gather_ledgers(ids.ids)
        if not entries:
            return zero_wallet(key, source="ledger")

        try:
            reserved = await compute_reserved_from_offers(self.repo, ids.ids)
        except Exception as e:
            log.warning("[wallet] reserved-from-offers failed for %s, using 0: %s", key, e)
            reserved = 0

        return wallet_from_ledger(key, entries, reserved)

    # -----------------------------
    # Reserved points
    # -----------------------------
    async def fetch_reserved_points(self, child_id: Any) -> int:
        key = validate_child_id(child_id)

        async def via_rpc() -> Optional[int]:
            return as_points(await self.repo.rpc("api_child_reserved_points", {"p_child_uid": key}))

        async def via_offers() -> int:
            ids = await self.resolve_identifiers(key)
            return await compute_reserved_from_offers(self.repo, ids.ids)

        return await first_available([("rpc", via_rpc), ("offers", via_offers)], label="reserved points")

    async def fetch_reserved_offers(self, child_id: Any) -> List[ReservedOffer]:
        ids = await self.resolve_identifiers(child_id)
        try:
            return await list_reserved_offers(self.repo, ids.ids)
        except Exception as e:
            raise BackendUnavailable(f"reward offers unavailable: {e}") from e

    # -----------------------------
    # Breakdown
    # -----------------------------
    async def fetch_earnings_breakdown(self, child_id: Any) -> EarningsBreakdown:
        ids = await self.resolve_identifiers(child_id)
        return build_breakdown(await self._gather_ledgers(ids.ids))

    # -----------------------------
    # Family
    # -----------------------------
    async def child_ids_for_family(self, family_id: str) -> List[str]:
        try:
            children = await self.repo.list_family_children(family_id)
        except Exception as e:
            raise BackendUnavailable(f"family children unavailable: {e}") from e
        return [str(c["child_uid"]) for c in children if c.get("child_uid")]

    async def fetch_wallet_for_family(self, family_id: str) -> List[WalletRow]:
        family_id = str(family_id or "").strip()
        if not family_id:
            return []

        async def via_rpc() -> Optional[List[WalletRow]]:
            data = await self.repo.rpc("api_family_wallet", {"p_family": family_id})
            if not isinstance(data, list):
                return None
            return [row_from_family_rpc(r) for r in data if isinstance(r, dict)]

        async def per_child() -> List[WalletRow]:
            children = await self.repo.list_family_children(family_id)
            wallets = await asyncio.gather(*(self._roster_wallet(c) for c in children))
            return [row_from_wallet(c, w) for c, w in zip(children, wallets)]

        return await first_available([("rpc", via_rpc), ("per_child", per_child)], label="family wallet")

    async def _roster_wallet(self, child: Dict[str, Any]) -> ChildWallet:
        uid = str(child.get("child_uid") or child.get("id") or "")
        try:
            return await self.fetch_wallet(uid)
        except InvalidIdentifier:
            log.warning("[wallet] skipping malformed child_uid %r in family roster", uid)
            return zero_wallet(uid)

    # -----------------------------
    # Completed targets
    # -----------------------------
    async def sum_completed_for_children(self, child_uids: List[Any]) -> Dict[str, int]:
        return await sum_completed_totals(self.repo, child_uids)

    async def sum_completed_for_child(self, child_uid: Any) -> int:
        ids = normalize_child_ids([child_uid])
        if not ids:
            return 0
        totals = await self.sum_completed_for_children(ids)
        return int(totals.get(ids[0], 0))
