"""LLM-backed price estimate for a job description."""

from __future__ import annotations

import json
import logging
import re

from helpr.config import get_settings
from helpr.schemas import PriceEstimate
from helpr.services.llm_provider import LLMProvider

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a pricing assistant for {service_type} help. Respond with a JSON object containing: "
    "price (number), needs_clarification (boolean), clarification_prompt (string, only if "
    "needs_clarification is true), safety_concern (boolean), safety_message (string, only if "
    "safety_concern is true). If critical details are missing (how many items or rooms, stairs "
    "or elevator, distance between locations), set needs_clarification and ask a friendly "
    "question. If the request involves hazardous materials or dangerous conditions, set "
    "safety_concern with a short safety_message. Otherwise give a competitive price in USD "
    "between {min_price:.0f} and {max_price:.0f}."
)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def parse_estimate(raw: str, min_price: float, max_price: float) -> PriceEstimate:
    """Parse the model reply. Prices are clamped into [min_price, max_price]."""
    match = _JSON_OBJECT.search(raw or "")
    if not match:
        raise ValueError("Unable to parse price estimate")
    data = json.loads(match.group(0))

    price = data.get("price")
    if isinstance(price, str):
        price = price.replace("$", "").replace(",", "").strip() or None
    if price is not None:
        price = round(min(max(float(price), min_price), max_price), 2)

    needs_clarification = bool(data.get("needs_clarification"))
    safety_concern = bool(data.get("safety_concern"))
    return PriceEstimate(
        price=None if needs_clarification or safety_concern else price,
        needs_clarification=needs_clarification,
        clarification_prompt=str(data.get("clarification_prompt") or "") if needs_clarification else "",
        safety_concern=safety_concern,
        safety_message=str(data.get("safety_message") or "") if safety_concern else "",
    )


async def estimate_price(llm: LLMProvider, service_type: str, description: str) -> PriceEstimate:
    cfg = get_settings().pricing
    system = SYSTEM_PROMPT.format(
        service_type=service_type.lower(), min_price=cfg.min_price, max_price=cfg.max_price,
    )
    raw = await llm.chat(description, system=system)
    estimate = parse_estimate(raw, cfg.min_price, cfg.max_price)
    logger.info(
        "Price estimate for %s: price=%s clarify=%s safety=%s",
        service_type, estimate.price, estimate.needs_clarification, estimate.safety_concern,
    )
    return estimate
