# apps/familypoints/deps.py
"""
Service container.

One repository, one event bus and the two services share a Supabase client.
Tests swap `get_container` through FastAPI dependency_overrides or build a
ServiceContainer around a fake client.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from fastapi import Depends

from apps.familypoints.db import get_supabase
from apps.familypoints.flags import ledger_fallback_enabled
from apps.familypoints.services.errors import BackendUnavailable
from apps.familypoints.services.events import PointsEvents
from apps.familypoints.services.points import PointsService
from apps.familypoints.services.wallet.repository import ChildPointsRepository
from apps.familypoints.services.wallet.wallet_service import WalletService


class SupabaseNotConfigured(BackendUnavailable):
    code = "supabase_config"


@dataclass
class ServiceContainer:
    repo: ChildPointsRepository
    events: PointsEvents
    wallet: WalletService
    points: PointsService


def build_container(supabase_client: Any, *, ledger_fallback: bool = True) -> ServiceContainer:
    repo = ChildPointsRepository(supabase_client)
    events = PointsEvents()
    return ServiceContainer(
        repo=repo,
        events=events,
        wallet=WalletService(repo, events=events, ledger_fallback=ledger_fallback),
        points=PointsService(repo, events=events),
    )


@lru_cache(maxsize=1)
def _default_container() -> ServiceContainer:
    sb = get_supabase()
    if not sb:
        raise SupabaseNotConfigured("Supabase not configured")
    return build_container(sb, ledger_fallback=ledger_fallback_enabled())


def get_container() -> ServiceContainer:
    return _default_container()


def get_wallet_service(container: ServiceContainer = Depends(get_container)) -> WalletService:
    return container.wallet


def get_points_service(container: ServiceContainer = Depends(get_container)) -> PointsService:
    return container.points
