from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar

from apps.familypoints.services.errors import BackendUnavailable, InvalidIdentifier

log = logging.getLogger("familypoints.wallet")

T = TypeVar("T")

# A strategy reports "unavailable" by returning this (or raising).
UNAVAILABLE = None

Strategy = Tuple[str, Callable[[], Awaitable[Optional[T]]]]


async def first_available(strategies: Sequence[Strategy], *, label: str) -> T:
    """
    Run strategies in order and return the first real result.

    Invalid identifiers are caller errors and propagate immediately; any other
    failure moves on to the next strategy. Raises BackendUnavailable when no
    strategy produced a result.
    """
    failures: List[str] = []
    for name, run in strategies:
        try:
            result = await run()
        except InvalidIdentifier:
            raise
        except Exception as e:
            log.warning("[%s] strategy %s failed: %s", label, name, e)
            failures.append(f"{name}: {e}")
            continue
        if result is UNAVAILABLE:
            failures.append(f"{name}: unavailable")
            continue
        return result

    raise BackendUnavailable(f"{label} unavailable ({'; '.join(failures) or 'no strategies'})")
