"""
Reserved points: the effective cost of every Accepted reward offer.

Effective cost precedence:
    points_cost_override -> points_cost -> rewards_catalog.points_cost -> 0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from apps.familypoints.services.wallet.ledger import as_points
from apps.familypoints.services.wallet.repository import ChildPointsRepository

log = logging.getLogger("familypoints.wallet")


@dataclass(frozen=True)
class ReservedOffer:
    offer_id: str
    child_uid: str
    title: Optional[str]
    description: Optional[str]
    eff_cost: int
    status: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "offer_id": self.offer_id,
            "child_uid": self.child_uid,
            "title": self.title,
            "description": self.description,
            "eff_cost": int(self.eff_cost),
            "status": self.status,
        }


def needs_catalog(offer: Dict[str, Any]) -> bool:
    return (
        as_points(offer.get("points_cost_override")) is None
        and as_points(offer.get("points_cost")) is None
        and bool(offer.get("reward_id"))
    )


def effective_cost(offer: Dict[str, Any], catalog: Dict[str, Any]) -> int:
    override = as_points(offer.get("points_cost_override"))
    if override is not None:
        return override
    direct = as_points(offer.get("points_cost"))
    if direct is not None:
        return direct
    reward_id = offer.get("reward_id")
    if reward_id:
        return as_points(catalog.get(str(reward_id))) or 0
    return 0


async def _catalog_for(repo: ChildPointsRepository, offers: List[Dict[str, Any]]) -> Dict[str, Any]:
    missing = sorted({str(o["reward_id"]) for o in offers if needs_catalog(o)})
    if not missing:
        return {}
    try:
        return await repo.get_catalog_costs(missing)
    except Exception as e:
        # Unresolvable catalog costs count as 0.
        log.warning("[reserved] rewards_catalog lookup failed: %s", e)
        return {}


async def list_reserved_offers(repo: ChildPointsRepository, ids: List[str]) -> List[ReservedOffer]:
    offers = await repo.list_accepted_offers(ids)
    catalog = await _catalog_for(repo, offers)
    return [
        ReservedOffer(
            offer_id=str(o.get("id") or ""),
            child_uid=str(o.get("child_uid") or ""),
            title=o.get("title"),
            description=o.get("description"),
            eff_cost=effective_cost(o, catalog),
            status=o.get("status"),
        )
        for o in offers
    ]


def sum_reserved(offers: List[ReservedOffer]) -> int:
    return sum(int(o.eff_cost) for o in offers)


async def compute_reserved_from_offers(repo: ChildPointsRepository, ids: List[str]) -> int:
    return sum_reserved(await list_reserved_offers(repo, ids))
