# zusplus/services/recommendation_service.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from zusplus.core.errors import ConfigurationError, RecommendationServiceError

logger = logging.getLogger(__name__)

MSG_RATE_LIMIT = "Przekroczono limit zapytań. Spróbuj ponownie za chwilę."
MSG_PAYMENT = "Wymagana płatność. Dodaj środki do swojego konta."
MSG_NO_DATA = "Użytkownik nie ma jeszcze danych o emeryturze."


# ============================================================
# Prompts
# ============================================================

def _num(ctx: Mapping[str, Any], key: str, default: float = 0.0) -> float:
    try:
        return float(ctx.get(key, default) or default)
    except (TypeError, ValueError):
        return default


def _user_data_block(ctx: Mapping[str, Any]) -> str:
    return (
        f"- Wiek: {ctx.get('wiek', '-')} lat\n"
        f"- Płeć: {ctx.get('plec', '-')}\n"
        f"- Wiek emerytury: {ctx.get('wiek_przejscia_na_emeryture', '-')} lat\n"
        f"- Miesięczny dochód: {ctx.get('miesieczny_dochod', '-')} PLN\n"
        f"- Lata do emerytury: {ctx.get('lata_do_emerytury', '-')} lat\n"
    )


def _forecast_block(ctx: Mapping[str, Any]) -> str:
    return (
        f"- Przyszła emerytura: {round(_num(ctx, 'przyszla_emerytura_realna'))} PLN/mies.\n"
        f"- Średnia krajowa: {round(_num(ctx, 'srednia_krajowa_emerytura'))} PLN/mies.\n"
        f"- Różnica: {_num(ctx, 'roznica_procent'):.1f}%\n"
        f"- Status: {ctx.get('status_pogody', '-')}\n"
    )


def recommendations_prompt(ctx: Mapping[str, Any]) -> str:
    return (
        "Jesteś ekspertem ds. emerytur i planowania finansowego. Analizujesz dane emerytalne "
        "użytkownika i generujesz 3-5 KONKRETNYCH, PRAKTYCZNYCH rekomendacji.\n\n"
        "DANE UŻYTKOWNIKA:\n"
        + _user_data_block(ctx)
        + _forecast_block(ctx)
        + "\nZASADY:\n"
        "1. Generuj TYLKO rekomendacje, które FAKTYCZNIE mogą poprawić sytuację użytkownika\n"
        "2. Każda rekomendacja MUSI zawierać konkretną akcję, oszacowany wpływ i ikonę emoji na początku\n"
        "3. Sortuj od największego do najmniejszego wpływu\n"
        "4. Jeśli sytuacja jest bardzo dobra, zaproponuj optymalizacje podatkowe lub inwestycyjne\n"
        "5. Jeśli sytuacja jest słaba, skup się na praktycznych działaniach: PPK, IKE, IKZE, wydłużenie pracy\n"
        "6. MAX 5 rekomendacji, każda w osobnej linii\n"
        '7. Format: "🎯 [Akcja] – [Wpływ]"\n\n'
        "NIE używaj numeracji, tylko emoji i myślniki."
    )


def chat_prompt(ctx: Optional[Mapping[str, Any]]) -> str:
    if ctx:
        data = "DANE UŻYTKOWNIKA:\n" + _user_data_block(ctx) + "\nPROGNOZA:\n" + _forecast_block(ctx)
    else:
        data = MSG_NO_DATA + "\n"
    return (
        "Jesteś pomocnym asystentem AI w polskim panelu administracyjnym aplikacji emerytalnej.\n\n"
        "ZASADY ODPOWIEDZI:\n"
        "- Odpowiadaj KRÓTKO i ZWIĘŹLE (max 3-4 zdania)\n"
        "- Używaj formatowania markdown: **pogrubienie** dla liczb i ważnych informacji\n"
        "- Skupiaj się na konkretach, unikaj długich wyjaśnień\n\n"
        + data
        + "\nOdpowiadaj zawsze po polsku, krótko i konkretnie."
    )


def split_recommendations(text: str) -> List[str]:
    return [line.strip() for line in (text or "").splitlines() if line.strip()]


# ============================================================
# Client
# ============================================================

class RecommendationClient:
    """Client für das LLM-Gateway (OpenAI-kompatibles /v1/chat/completions)."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        *,
        model: str = "google/gemini-2.5-flash",
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._api_key = api_key
        self._model = model
        self._client = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    def _complete(self, system_prompt: str, user_message: str) -> str:
        if not self._api_key:
            raise ConfigurationError("AI_GATEWAY_API_KEY is not configured")

        try:
            resp = self._client.post(
                "/v1/chat/completions",
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={
                    "model": self._model,
                    "messages": [
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_message},
                    ],
                },
            )
        except httpx.HTTPError as ex:
            logger.warning("AI-Gateway nicht erreichbar: %r", ex)
            raise RecommendationServiceError("Usługa AI jest niedostępna") from ex

        if resp.status_code == 429:
            raise RecommendationServiceError(MSG_RATE_LIMIT, status_code=429)
        if resp.status_code == 402:
            raise RecommendationServiceError(MSG_PAYMENT, status_code=402)
        if resp.is_error:
            logger.error("AI-Gateway Fehler %s: %s", resp.status_code, resp.text[:200])
            raise RecommendationServiceError(f"AI gateway error: {resp.status_code}", status_code=resp.status_code)

        try:
            data: Dict[str, Any] = resp.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as ex:
            raise RecommendationServiceError("Nieprawidłowa odpowiedź usługi AI") from ex
        return str(content or "")

    def generate_recommendations(self, context: Mapping[str, Any]) -> List[str]:
        logger.info("Generiere Empfehlungen")
        text = self._complete(recommendations_prompt(context), "Wygeneruj rekomendacje dla tego użytkownika.")
        return split_recommendations(text)

    def chat(self, message: str, context: Optional[Mapping[str, Any]] = None) -> str:
        return self._complete(chat_prompt(context), message)

    def close(self) -> None:
        self._client.close()
