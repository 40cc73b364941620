"""Tests for the pension projection client and form mapping."""

from datetime import date

import httpx
import pytest
from pydantic import ValidationError

from zusplus.core.errors import PensionServiceError
from zusplus.schemas.pension import ProfileIn
from zusplus.services.pension_service import PensionClient, build_prognosis_request
from tests.helpers import CHART, PENSION_URL, PROGNOSIS

YEAR = date.today().year


def _profile(**overrides) -> ProfileIn:
    data = {
        "gender": "female",
        "age": 40,
        "monthly_income": 6500,
        "career_start_year": YEAR - 18,
        "retirement_year": YEAR + 20,
    }
    data.update(overrides)
    return ProfileIn.model_validate(data)


def _client(handler) -> PensionClient:
    return PensionClient(PENSION_URL, transport=httpx.MockTransport(handler))


# ----------------------------------------------------------------------
# Formular-Validierung
# ----------------------------------------------------------------------
def test_profile_accepts_minimal_form():
    profile = _profile()

    assert profile.optional_data_enabled is False
    assert profile.postal_code is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"age": 17},
        {"age": 101},
        {"monthly_income": 4241},
        {"gender": "other"},
        {"career_start_year": YEAR + 1},
        {"retirement_year": YEAR - 1},
        {"career_start_year": YEAR, "retirement_year": YEAR},
        {"postal_code": "00123"},
        {"zus_balance": -1},
    ],
)
def test_profile_rejects_invalid_values(overrides):
    with pytest.raises(ValidationError):
        _profile(**overrides)


def test_empty_optional_fields_become_none():
    profile = _profile(optional_data_enabled=True, zus_balance="", postal_code="  ", sick_leave_days="")

    assert profile.zus_balance is None
    assert profile.postal_code is None
    assert profile.sick_leave_days is None


# ----------------------------------------------------------------------
# Request-Mapping
# ----------------------------------------------------------------------
def test_request_contains_required_fields():
    body = build_prognosis_request(_profile(gender="male"))

    assert body == {
        "plec": "mezczyzna",
        "wiek": 40,
        "miesieczny_przychod": 6500,
        "rok_rozpoczecia_kariery": YEAR - 18,
        "rok_przejscia_na_emeryture": YEAR + 20,
    }


def test_optional_fields_only_when_enabled():
    profile = _profile(zus_balance=120000, postal_code="00-950")

    assert "saldo_zus" not in build_prognosis_request(profile)


def test_optional_fields_only_when_positive():
    profile = _profile(
        optional_data_enabled=True,
        zus_balance=120000,
        ofe_balance=0,
        postal_code="00-950",
        sick_leave_days=12,
        expected_pension=5000,
    )

    body = build_prognosis_request(profile)

    assert body["plec"] == "kobieta"
    assert body["saldo_zus"] == 120000
    assert "saldo_ofe" not in body
    assert body["kod_pocztowy"] == "00-950"
    assert body["ilosc_dni_zwolnien"] == 12
    assert body["oczekiwana_emerytura"] == 5000


# ----------------------------------------------------------------------
# HTTP-Client
# ----------------------------------------------------------------------
def test_fetch_prognosis_parses_response():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        return httpx.Response(200, json=PROGNOSIS)

    result = _client(handler).fetch_prognosis({"plec": "kobieta"})

    assert seen["path"] == "/prognoza"
    assert result.przyszla_emerytura_realna == 3100.0
    assert result.szczegoly.wspolczynnik_inflacji == 1.025
    assert result.ile_lat == "Pracuj 2 lata dłużej"


def test_fetch_chart_parses_points():
    result = _client(lambda request: httpx.Response(200, json=CHART)).fetch_chart({})

    assert [p.rok for p in result] == [2050, 2051, 2052]


def test_http_error_carries_status():
    with pytest.raises(PensionServiceError) as exc:
        _client(lambda request: httpx.Response(500, text="boom")).fetch_prognosis({})

    assert exc.value.status_code == 500
    assert exc.value.message == "API error: 500"


def test_unreachable_service():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(PensionServiceError) as exc:
        _client(handler).fetch_prognosis({})

    assert exc.value.status_code is None


def test_unexpected_payload_is_rejected():
    with pytest.raises(PensionServiceError):
        _client(lambda request: httpx.Response(200, json={"foo": 1})).fetch_prognosis({})

    with pytest.raises(PensionServiceError):
        _client(lambda request: httpx.Response(200, json={"rok": 1})).fetch_chart({})
