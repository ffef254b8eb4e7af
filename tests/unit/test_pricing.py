import pytest

from helpr.services.llm_provider import LLMProvider
from helpr.services.pricing import estimate_price, parse_estimate


class FakeLLM(LLMProvider):
    def __init__(self, reply: str):
        self.reply = reply
        self.calls = []

    async def chat(self, prompt: str, system: str = "") -> str:
        self.calls.append((prompt, system))
        return self.reply


def test_parse_plain_price():
    est = parse_estimate('{"price": 85, "needs_clarification": false}', 20, 250)
    assert est.price == 85
    assert not est.needs_clarification
    assert not est.safety_concern


def test_parse_strips_currency_and_prose():
    raw = 'Sure! Here you go: {"price": "$1,000"} Let me know.'
    est = parse_estimate(raw, 20, 250)
    assert est.price == 250


def test_parse_clamps_low_prices():
    assert parse_estimate('{"price": 3.5}', 20, 250).price == 20


def test_clarification_withholds_price():
    raw = '{"price": 90, "needs_clarification": true, "clarification_prompt": "How many rooms?"}'
    est = parse_estimate(raw, 20, 250)
    assert est.price is None
    assert est.needs_clarification
    assert est.clarification_prompt == "How many rooms?"


def test_safety_concern_withholds_price():
    raw = '{"price": 120, "safety_concern": true, "safety_message": "Asbestos needs a licensed crew."}'
    est = parse_estimate(raw, 20, 250)
    assert est.price is None
    assert est.safety_concern
    assert est.safety_message.startswith("Asbestos")


def test_unparseable_reply_raises():
    with pytest.raises(ValueError):
        parse_estimate("I cannot help with that.", 20, 250)


async def test_estimate_price_sends_service_type_in_system_prompt():
    llm = FakeLLM('{"price": 60}')
    est = await estimate_price(llm, "Cleaning", "Two bedroom apartment, no pets")

    assert est.price == 60
    prompt, system = llm.calls[0]
    assert prompt == "Two bedroom apartment, no pets"
    assert "cleaning help" in system
