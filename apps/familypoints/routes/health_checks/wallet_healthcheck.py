from __future__ import annotations

from typing import Any, Dict

from apps.familypoints.services.wallet.repository import ChildPointsRepository

# Valid v4 UUID that never matches a real child.
HEALTH_CHILD = "00000000-0000-4000-8000-000000000000"


async def wallet_healthcheck(repo: ChildPointsRepository) -> Dict[str, Any]:
    checks: Dict[str, Any] = {"children": False, "rollup": False, "ledger": False, "child_ledger": False, "offers": False}

    try:
        await repo.find_child(HEALTH_CHILD)
        checks["children"] = True
    except Exception as e:
        checks["children_error"] = str(e)

    try:
        await repo.get_wallet_rollup(HEALTH_CHILD)
        checks["rollup"] = True
    except Exception as e:
        checks["rollup_error"] = str(e)

    try:
        entries = await repo.list_points_ledger([HEALTH_CHILD])
        if isinstance(entries, list):
            checks["ledger"] = True
    except Exception as e:
        checks["ledger_error"] = str(e)

    try:
        entries = await repo.list_child_points_ledger([HEALTH_CHILD])
        if isinstance(entries, list):
            checks["child_ledger"] = True
    except Exception as e:
        checks["child_ledger_error"] = str(e)

    try:
        offers = await repo.list_accepted_offers([HEALTH_CHILD])
        if isinstance(offers, list):
            checks["offers"] = True
    except Exception as e:
        checks["offers_error"] = str(e)

    ok = all(v for k, v in checks.items() if not k.endswith("_error"))
    return {"ok": ok, "checks": checks}
