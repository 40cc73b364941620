"""Tests for the LLM gateway client and prompt building."""

import json

import httpx
import pytest

from zusplus.core.errors import ConfigurationError, RecommendationServiceError
from zusplus.services.recommendation_service import (
    MSG_NO_DATA,
    MSG_PAYMENT,
    MSG_RATE_LIMIT,
    RecommendationClient,
    chat_prompt,
    recommendations_prompt,
    split_recommendations,
)
from tests.helpers import AI_URL

CONTEXT = {
    "wiek": 40,
    "plec": "kobieta",
    "wiek_przejscia_na_emeryture": 60,
    "miesieczny_dochod": 6500,
    "lata_do_emerytury": 20,
    "przyszla_emerytura_realna": 3100.4,
    "srednia_krajowa_emerytura": 3500,
    "roznica_procent": -11.43,
    "status_pogody": "Pochmurno",
}


def _completion(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


def _client(handler, api_key="test-key") -> RecommendationClient:
    return RecommendationClient(AI_URL, api_key, transport=httpx.MockTransport(handler))


def test_prompt_contains_user_data():
    prompt = recommendations_prompt(CONTEXT)

    assert "- Wiek: 40 lat" in prompt
    assert "- Przyszła emerytura: 3100 PLN/mies." in prompt
    assert "- Różnica: -11.4%" in prompt
    assert "- Status: Pochmurno" in prompt


def test_chat_prompt_without_data():
    assert MSG_NO_DATA in chat_prompt(None)
    assert "DANE UŻYTKOWNIKA" in chat_prompt(CONTEXT)


def test_split_recommendations_drops_blank_lines():
    assert split_recommendations("🎯 A – x\n\n  💰 B – y  \n") == ["🎯 A – x", "💰 B – y"]
    assert split_recommendations("") == []


def test_generate_recommendations_sends_openai_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return _completion("🎯 Dołącz do PPK – +300 PLN\n💰 Otwórz IKZE – +150 PLN")

    items = _client(handler).generate_recommendations(CONTEXT)

    assert items == ["🎯 Dołącz do PPK – +300 PLN", "💰 Otwórz IKZE – +150 PLN"]
    assert seen["path"] == "/v1/chat/completions"
    assert seen["auth"] == "Bearer test-key"
    assert seen["body"]["model"] == "google/gemini-2.5-flash"
    assert [m["role"] for m in seen["body"]["messages"]] == ["system", "user"]


def test_chat_returns_text():
    answer = _client(lambda request: _completion("Krótko: **3100 PLN**.")).chat("Ile dostanę?", CONTEXT)

    assert answer == "Krótko: **3100 PLN**."


@pytest.mark.parametrize("status,message", [(429, MSG_RATE_LIMIT), (402, MSG_PAYMENT)])
def test_gateway_limits_are_mapped(status, message):
    with pytest.raises(RecommendationServiceError) as exc:
        _client(lambda request: httpx.Response(status)).chat("hej")

    assert exc.value.status_code == status
    assert exc.value.message == message


def test_other_gateway_errors():
    with pytest.raises(RecommendationServiceError) as exc:
        _client(lambda request: httpx.Response(500)).chat("hej")

    assert exc.value.message == "AI gateway error: 500"


def test_missing_api_key():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(ConfigurationError):
        _client(handler, api_key=None).chat("hej")


def test_malformed_completion():
    with pytest.raises(RecommendationServiceError):
        _client(lambda request: httpx.Response(200, json={"choices": []})).chat("hej")
