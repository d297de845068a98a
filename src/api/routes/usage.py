"""Metered product endpoint and usage status — quota enforcement per principal."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from src.api.auth.tokens import Principal
from src.api.deps import get_accountant, get_clock, require_auth
from src.api.models.schemas import DataResponse, TierLimitResponse, UsageInfo, UsageResponse
from src.metering.tiers import render_limit
from src.metering.usage import UsageAccountant

router = APIRouter(tags=["usage"])


@router.post(
    "/data",
    response_model=DataResponse,
    responses={status.HTTP_403_FORBIDDEN: {"model": TierLimitResponse}},
)
async def process_data(
    principal: Principal = Depends(require_auth),
    accountant: UsageAccountant = Depends(get_accountant),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> DataResponse | JSONResponse:
    """Consume one request from the monthly quota, then run the product logic."""
    decision = await accountant.check_and_consume(
        principal.principal_id, principal.plan, clock()
    )
    if not decision.allowed:
        body = TierLimitResponse(usageCount=decision.usage_count, limit=int(decision.limit))
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content=body.model_dump())

    return DataResponse(
        data={"message": "Request processed successfully"},
        usage=UsageInfo(
            count=decision.usage_count,
            limit=render_limit(decision.limit),
            plan=decision.plan,
        ),
    )


@router.get("/usage", response_model=UsageResponse)
async def get_usage(
    principal: Principal = Depends(require_auth),
    accountant: UsageAccountant = Depends(get_accountant),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> UsageResponse:
    """Current usage and limits for the authenticated principal. Consumes nothing."""
    snapshot = await accountant.peek(principal.principal_id, principal.plan, clock())
    return UsageResponse(
        userId=snapshot.principal,
        plan=snapshot.plan,
        usageCount=snapshot.usage_count,
        limit=render_limit(snapshot.limit),
        remaining=render_limit(snapshot.remaining),
        periodStart=snapshot.period_start,
        periodEnd=snapshot.period_end,
    )
