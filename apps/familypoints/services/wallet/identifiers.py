from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from apps.familypoints.services.errors import InvalidIdentifier, LookupMiss
from apps.familypoints.services.wallet.repository import ChildPointsRepository
from apps.familypoints.services.wallet.strategies import first_available

log = logging.getLogger("familypoints.wallet")

# RFC 4122 variants 1-5
UUID_RX = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def looks_like_uuid(value: Any) -> bool:
    return bool(UUID_RX.match(str(value if value is not None else "").strip()))


def validate_child_id(value: Any) -> str:
    """Return the stripped id or raise InvalidIdentifier. Never touches the network."""
    raw = str(value if value is not None else "").strip()
    if not UUID_RX.match(raw):
        raise InvalidIdentifier(value)
    return raw


@dataclass(frozen=True)
class ChildIdentifiers:
    legacy: str
    canonical: str
    family_id: Optional[str] = None

    @property
    def ids(self) -> List[str]:
        """Every id that denotes this child, for ledger/offer filters."""
        return list(dict.fromkeys([self.legacy, self.canonical]))

    def to_dict(self) -> Dict[str, Any]:
        return {"legacy": self.legacy, "canonical": self.canonical, "family_id": self.family_id}


async def _find_child_row(repo: ChildPointsRepository, key: str) -> Dict[str, Any]:
    row = await repo.find_child(key)
    if not row:
        raise LookupMiss(f"No child_profiles row for {key}")
    return row


async def resolve_identifiers(repo: ChildPointsRepository, child_id: Any) -> ChildIdentifiers:
    """
    Map either form of a child id to both forms.

    A missing row or a failed lookup is not an error: a child that is not
    materialized yet still resolves to (input, input) so views can render a
    zero state.
    """
    raw = validate_child_id(child_id)
    try:
        row = await _find_child_row(repo, raw)
    except LookupMiss:
        return ChildIdentifiers(legacy=raw, canonical=raw)
    except Exception as e:
        log.warning("[identifiers] child lookup failed for %s: %s", raw, e)
        return ChildIdentifiers(legacy=raw, canonical=raw)

    return ChildIdentifiers(
        legacy=str(row.get("child_uid") or raw),
        canonical=str(row.get("id") or raw),
        family_id=(str(row["family_id"]) if row.get("family_id") else None),
    )


async def lookup_child(repo: ChildPointsRepository, key: Any) -> Optional[Dict[str, Any]]:
    """
    Full profile key lookup: api_child_lookup RPC first, then the table.
    Returns {id, child_uid, family_id} or None when neither knows the child.
    """
    raw = validate_child_id(key)

    async def via_rpc() -> Optional[Dict[str, Any]]:
        data = await repo.rpc("api_child_lookup", {"p_key": raw})
        row = data[0] if isinstance(data, list) and data else data
        if isinstance(row, dict) and row.get("id"):
            return row
        return None

    async def via_table() -> Optional[Dict[str, Any]]:
        return await repo.find_child(raw)

    try:
        row = await first_available([("rpc", via_rpc), ("table", via_table)], label="child lookup")
    except Exception as e:
        log.info("[identifiers] no profile for %s: %s", raw, e)
        return None

    return {
        "id": str(row.get("id")),
        "child_uid": str(row.get("child_uid") or row.get("id")),
        "family_id": row.get("family_id"),
    }
