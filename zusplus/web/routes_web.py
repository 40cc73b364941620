# zusplus/web/routes_web.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError

from zusplus.api.deps import get_pension_client, get_recommendation_client, require_admin_session
from zusplus.core.errors import ConfigurationError, PensionServiceError, RecommendationServiceError
from zusplus.identity.base import Session
from zusplus.schemas.pension import MINIMUM_WAGE, ProfileIn
from zusplus.services.pension_service import PensionClient, build_prognosis_request
from zusplus.services.recommendation_service import RecommendationClient
from zusplus.services.results_service import (
    build_ai_context,
    form_insights,
    normalize_bars,
    retirement_weather,
)
from zusplus.web.templates import templates
from zusplus.web.toast import pack_cookie, set_toast_cookie, unpack_cookie

logger = logging.getLogger(__name__)

router = APIRouter(include_in_schema=False)

# letzter Ergebnis-Kontext für den Admin-Chat
RETIREMENT_COOKIE = "zp_retirement"


def _form_errors(ex: ValidationError) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for err in ex.errors():
        field = str(err["loc"][0]) if err.get("loc") else "form"
        msg = str(err.get("msg", ""))
        errors.setdefault(field, msg.removeprefix("Value error, "))
    return errors


def _render_index(request: Request, *, values: Dict[str, Any], errors: Dict[str, str], status_code: int = 200):
    return templates.TemplateResponse(
        request,
        "index.html",
        {"values": values, "errors": errors, "minimum_wage": MINIMUM_WAGE},
        status_code=status_code,
    )


# ============================================================
# Formular
# ============================================================

@router.get("/", response_class=HTMLResponse)
def index(request: Request):
    return _render_index(request, values={}, errors={})


@router.post("/", response_class=HTMLResponse)
def submit_profile(
    request: Request,
    gender: str = Form(""),
    age: str = Form(""),
    monthly_income: str = Form(""),
    career_start_year: str = Form(""),
    retirement_year: str = Form(""),
    optional_data_enabled: Optional[str] = Form(None),
    zus_balance: str = Form(""),
    ofe_balance: str = Form(""),
    postal_code: str = Form(""),
    sick_leave_days: str = Form(""),
    expected_pension: str = Form(""),
    client: PensionClient = Depends(get_pension_client),
):
    values: Dict[str, Any] = {
        "gender": gender,
        "age": age,
        "monthly_income": monthly_income,
        "career_start_year": career_start_year,
        "retirement_year": retirement_year,
        "optional_data_enabled": optional_data_enabled is not None,
        "zus_balance": zus_balance,
        "ofe_balance": ofe_balance,
        "postal_code": postal_code,
        "sick_leave_days": sick_leave_days,
        "expected_pension": expected_pension,
    }

    try:
        profile = ProfileIn.model_validate(values)
    except ValidationError as ex:
        return _render_index(request, values=values, errors=_form_errors(ex), status_code=422)

    insights = form_insights(profile)
    body = build_prognosis_request(profile)

    prognosis = None
    error: Optional[str] = None
    try:
        prognosis = client.fetch_prognosis(body)
    except PensionServiceError as ex:
        logger.warning("Prognose fehlgeschlagen: %s", ex.message)
        error = ex.message

    chart: List[Dict[str, Any]] = []
    if prognosis is not None:
        try:
            points = client.fetch_chart(body)
        except PensionServiceError as ex:
            # Diagramm ist optional
            logger.info("Diagramm nicht verfügbar: %s", ex.message)
            points = []
        heights = normalize_bars([p.kwota for p in points])
        chart = [{"rok": p.rok, "kwota": p.kwota, "height": h} for p, h in zip(points, heights)]

    context = build_ai_context(profile, prognosis) if prognosis is not None else None
    weather = retirement_weather(prognosis.roznica_procent) if prognosis is not None else None

    resp = templates.TemplateResponse(
        request,
        "results.html",
        {
            "profile": profile,
            "insights": insights,
            "prognosis": prognosis,
            "weather": weather,
            "chart": chart,
            "ai_context": json.dumps(context, ensure_ascii=False) if context else "",
        },
    )
    if error:
        set_toast_cookie(resp, message=error, level="error", title="Błąd prognozy")
    if context:
        resp.set_cookie(
            key=RETIREMENT_COOKIE,
            value=pack_cookie(context),
            httponly=True,
            samesite="lax",
            path="/",
        )
    return resp


@router.post("/recommendations", response_class=HTMLResponse)
def recommendations_page(
    request: Request,
    context: str = Form(""),
    client: RecommendationClient = Depends(get_recommendation_client),
):
    try:
        data = json.loads(context) if context else None
    except ValueError:
        data = None
    if not isinstance(data, dict):
        resp = RedirectResponse(url="/", status_code=303)
        set_toast_cookie(resp, message="Brak danych do analizy", level="warning")
        return resp

    items: List[str] = []
    error: Optional[str] = None
    try:
        items = client.generate_recommendations(data)
    except ConfigurationError as ex:
        logger.error("Empfehlungen nicht konfiguriert: %s", ex.message)
        error = "Usługa AI nie jest skonfigurowana"
    except RecommendationServiceError as ex:
        error = ex.message

    return templates.TemplateResponse(
        request,
        "recommendations.html",
        {"recommendations": items, "error": error},
        status_code=200 if error is None else 502,
    )


# ============================================================
# Admin (AAL2)
# ============================================================

@router.get("/admin", response_class=HTMLResponse)
def admin_panel(request: Request, session: Session = Depends(require_admin_session)):
    return templates.TemplateResponse(
        request,
        "admin.html",
        {
            "session": session,
            "has_context": unpack_cookie(request.cookies.get(RETIREMENT_COOKIE)) is not None,
            "message": "",
            "answer": None,
            "error": None,
        },
    )


@router.post("/admin/chat", response_class=HTMLResponse)
def admin_chat(
    request: Request,
    message: str = Form(""),
    session: Session = Depends(require_admin_session),
    client: RecommendationClient = Depends(get_recommendation_client),
):
    context = unpack_cookie(request.cookies.get(RETIREMENT_COOKIE))
    answer: Optional[str] = None
    error: Optional[str] = None

    message = message.strip()
    if not message:
        error = "Wpisz wiadomość"
    else:
        try:
            answer = client.chat(message[:2000], context)
        except ConfigurationError as ex:
            logger.error("Chat nicht konfiguriert: %s", ex.message)
            error = "Usługa AI nie jest skonfigurowana"
        except RecommendationServiceError as ex:
            error = ex.message

    return templates.TemplateResponse(
        request,
        "admin.html",
        {
            "session": session,
            "has_context": context is not None,
            "message": message,
            "answer": answer,
            "error": error,
        },
    )
