from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from helpr.dependencies import require_role
from helpr.schemas import PriceEstimate, PriceEstimateRequest
from helpr.services.auth import ClientContext
from helpr.services.llm_provider import LLMProvider, get_llm_provider
from helpr.services.pricing import estimate_price

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/estimates", tags=["estimates"])


def get_llm() -> LLMProvider:
    try:
        return get_llm_provider()
    except RuntimeError as e:
        raise HTTPException(503, f"Price estimate unavailable: {e}")


@router.post("", response_model=PriceEstimate)
async def create_estimate(
    body: PriceEstimateRequest,
    ctx: ClientContext = Depends(require_role("customer")),
    llm: LLMProvider = Depends(get_llm),
):
    try:
        return await estimate_price(llm, body.service_type, body.description)
    except ValueError as e:
        logger.warning("Unparseable price estimate: %s", e)
        raise HTTPException(502, "Unable to estimate price right now.")
