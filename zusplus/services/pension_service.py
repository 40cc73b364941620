# zusplus/services/pension_service.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from zusplus.core.errors import PensionServiceError
from zusplus.schemas.pension import ChartPoint, PrognosisOut, ProfileIn

logger = logging.getLogger(__name__)

GENDER_API = {"female": "kobieta", "male": "mezczyzna"}


def build_prognosis_request(profile: ProfileIn) -> Dict[str, Any]:
    """Formular -> Request-Body für /prognoza (optionale Felder nur wenn > 0 bzw. gesetzt)."""
    body: Dict[str, Any] = {
        "plec": GENDER_API[profile.gender],
        "wiek": profile.age,
        "miesieczny_przychod": profile.monthly_income,
        "rok_rozpoczecia_kariery": profile.career_start_year,
        "rok_przejscia_na_emeryture": profile.retirement_year,
    }

    if not profile.optional_data_enabled:
        return body

    if profile.zus_balance and profile.zus_balance > 0:
        body["saldo_zus"] = profile.zus_balance
    if profile.ofe_balance and profile.ofe_balance > 0:
        body["saldo_ofe"] = profile.ofe_balance
    if profile.postal_code and profile.postal_code.strip():
        body["kod_pocztowy"] = profile.postal_code.strip()
    if profile.sick_leave_days and profile.sick_leave_days > 0:
        body["ilosc_dni_zwolnien"] = profile.sick_leave_days
    if profile.expected_pension and profile.expected_pension > 0:
        body["oczekiwana_emerytura"] = profile.expected_pension
    return body


class PensionClient:
    """HTTP-Client für den externen Prognose-Dienst."""

    def __init__(self, base_url: str, *, timeout: float = 20.0, transport: Optional[httpx.BaseTransport] = None):
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def _post(self, path: str, body: Dict[str, Any]) -> Any:
        try:
            resp = self._client.post(path, json=body)
        except httpx.HTTPError as ex:
            logger.warning("Prognose-API nicht erreichbar (%s): %r", path, ex)
            raise PensionServiceError("Serwis prognoz jest niedostępny") from ex

        if resp.is_error:
            logger.warning("Prognose-API %s -> %s", path, resp.status_code)
            raise PensionServiceError(f"API error: {resp.status_code}", status_code=resp.status_code)

        try:
            return resp.json()
        except ValueError as ex:
            raise PensionServiceError("Nieprawidłowa odpowiedź serwisu prognoz") from ex

    def fetch_prognosis(self, body: Dict[str, Any]) -> PrognosisOut:
        data = self._post("/prognoza", body)
        try:
            return PrognosisOut.model_validate(data)
        except ValidationError as ex:
            logger.warning("Unerwartete Antwort von /prognoza: %s", ex.errors()[:3])
            raise PensionServiceError("Nieprawidłowa odpowiedź serwisu prognoz") from ex

    def fetch_chart(self, body: Dict[str, Any]) -> List[ChartPoint]:
        data = self._post("/prognoza-wykres", body)
        if not isinstance(data, list):
            raise PensionServiceError("Nieprawidłowa odpowiedź serwisu prognoz")
        try:
            return [ChartPoint.model_validate(p) for p in data]
        except ValidationError as ex:
            raise PensionServiceError("Nieprawidłowa odpowiedź serwisu prognoz") from ex

    def close(self) -> None:
        self._client.close()
