"""Public pricing table — no auth required."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from config.settings import get_settings
from src.api.deps import get_tiers
from src.api.models.schemas import TierOut, TiersResponse
from src.metering.tiers import TierRegistry, render_limit

router = APIRouter(tags=["tiers"])


@router.get("/tiers", response_model=TiersResponse)
async def list_tiers(tiers: TierRegistry = Depends(get_tiers)) -> TiersResponse:
    """All tiers, cheapest first."""
    price_ids = get_settings().price_ids()
    return TiersResponse(
        tiers=[
            TierOut(
                id=t.tier_id,
                name=t.name,
                price=t.price,
                limit=render_limit(t.limit),
                hasPriceId=bool(price_ids.get(t.tier_id)),
            )
            for t in tiers.by_price()
        ]
    )
