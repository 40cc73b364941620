# zusplus/api/routes/pension.py
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends

from zusplus.api.deps import get_pension_client, get_recommendation_client, require_admin_session
from zusplus.core.errors import (
    ConfigurationError,
    PensionServiceError,
    RecommendationServiceError,
    bad_gateway,
    payment_required,
    service_unavailable,
    too_many_requests,
)
from zusplus.identity.base import Session
from zusplus.schemas.ai import ChatIn, ChatOut, RecommendationsIn, RecommendationsOut
from zusplus.schemas.pension import ChartPoint, PrognosisOut, ProfileIn
from zusplus.services.pension_service import PensionClient, build_prognosis_request
from zusplus.services.recommendation_service import RecommendationClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Pension"])


def _raise_pension(ex: PensionServiceError):
    if ex.status_code is None:
        service_unavailable("PENSION_UNAVAILABLE", ex.message)
    bad_gateway("PENSION_API_ERROR", ex.message)


def _raise_ai(ex: RecommendationServiceError):
    if ex.status_code == 429:
        too_many_requests(ex.message)
    if ex.status_code == 402:
        payment_required(ex.message)
    if ex.status_code is None:
        service_unavailable("AI_UNAVAILABLE", ex.message)
    bad_gateway("AI_GATEWAY_ERROR", ex.message)


# ============================================================
# Prognose
# ============================================================

@router.post("/prognoza", response_model=PrognosisOut, openapi_extra={"security": []})
def prognosis(body: ProfileIn, client: PensionClient = Depends(get_pension_client)):
    try:
        return client.fetch_prognosis(build_prognosis_request(body))
    except PensionServiceError as ex:
        _raise_pension(ex)


@router.post("/prognoza-wykres", response_model=List[ChartPoint], openapi_extra={"security": []})
def prognosis_chart(body: ProfileIn, client: PensionClient = Depends(get_pension_client)):
    try:
        return client.fetch_chart(build_prognosis_request(body))
    except PensionServiceError as ex:
        _raise_pension(ex)


# ============================================================
# AI: Empfehlungen + Admin-Chat
# ============================================================

@router.post("/recommendations", response_model=RecommendationsOut, openapi_extra={"security": []})
def recommendations(body: RecommendationsIn, client: RecommendationClient = Depends(get_recommendation_client)):
    try:
        items = client.generate_recommendations(body.retirement_data)
    except ConfigurationError as ex:
        logger.error("Empfehlungen nicht konfiguriert: %s", ex.message)
        service_unavailable("AI_NOT_CONFIGURED", "Usługa AI nie jest skonfigurowana")
    except RecommendationServiceError as ex:
        _raise_ai(ex)
    return RecommendationsOut(recommendations=items)


@router.post("/chat", response_model=ChatOut)
def chat(
    body: ChatIn,
    session: Session = Depends(require_admin_session),
    client: RecommendationClient = Depends(get_recommendation_client),
):
    context = (body.dashboard_context or {}).get("retirementData")
    logger.info("Admin-Chat von %s", session.user.email)
    try:
        answer = client.chat(body.message, context if isinstance(context, dict) else None)
    except ConfigurationError as ex:
        logger.error("Chat nicht konfiguriert: %s", ex.message)
        service_unavailable("AI_NOT_CONFIGURED", "Usługa AI nie jest skonfigurowana")
    except RecommendationServiceError as ex:
        _raise_ai(ex)
    return ChatOut(response=answer)
