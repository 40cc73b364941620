# zusplus/main.py
from __future__ import annotations

# --- Framework / Utils ---
import logging
from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import quote

from fastapi import FastAPI
from fastapi.responses import RedirectResponse
from starlette.requests import Request

# --- Konfiguration / Infrastruktur ---
from zusplus.core.config import Settings, get_settings
from zusplus.core.logging import configure_logging
from zusplus.db.database import init_models, make_engine, make_session_factory
from zusplus.identity import build_identity_provider
from zusplus.identity.base import IdentityProvider
from zusplus.services.flow_store import GateStore
from zusplus.services.mfa_gate import MfaSessionGate
from zusplus.services.pension_service import PensionClient
from zusplus.services.recommendation_service import RecommendationClient

# --- Router ---
from zusplus.api.routes import auth as auth_routes
from zusplus.api.routes import pension as pension_routes
from zusplus.web import routes_web

logger = logging.getLogger(__name__)

# Seiten hinter dem MFA-Gate; alles andere bleibt öffentlich
GUARDED_PAGE_PREFIXES = ("/admin",)
LOGIN_PAGE = "/auth/login-web"


# =============================================================================
# Middleware: 401 auf geschützten HTML-Seiten → Login
# =============================================================================
async def redirect_unauthenticated_html(request: Request, call_next):
    response = await call_next(request)
    if response.status_code != 401 or request.method != "GET":
        return response

    path = request.url.path
    wants_html = "text/html" in request.headers.get("accept", "")
    if wants_html and path.startswith(GUARDED_PAGE_PREFIXES):
        return RedirectResponse(url=f"{LOGIN_PAGE}?next={quote(path)}", status_code=303)
    # JSON-Clients bekommen das 401 unverändert
    return response


def create_app(
    settings: Optional[Settings] = None,
    *,
    identity_provider: Optional[IdentityProvider] = None,
    pension_client: Optional[PensionClient] = None,
    recommendation_client: Optional[RecommendationClient] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    # =============================================================================
    # DB + Provider
    # =============================================================================
    engine = make_engine(settings.DB_URL)
    init_models(engine)
    session_factory = make_session_factory(engine)

    provider = identity_provider or build_identity_provider(settings, session_factory)

    pension_client = pension_client or PensionClient(
        settings.PENSION_API_URL,
        timeout=settings.PENSION_API_TIMEOUT_SECONDS,
    )
    recommendation_client = recommendation_client or RecommendationClient(
        settings.AI_GATEWAY_URL,
        settings.AI_GATEWAY_API_KEY,
        model=settings.AI_MODEL,
        timeout=settings.AI_TIMEOUT_SECONDS,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        logger.info(
            "%s gestartet (identity=%s, env=%s)",
            settings.APP_NAME,
            settings.IDENTITY_BACKEND,
            settings.APP_ENV,
        )
        yield
        pension_client.close()
        recommendation_client.close()
        provider.close()
        engine.dispose()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Prognoza emerytury ZUS + panel administratora (2FA)",
        version="1.0.0",
        redoc_url=None,
        lifespan=lifespan,
    )

    # Abhängigkeiten für api/deps.py
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.identity_provider = provider
    app.state.gate_store = GateStore(
        lambda: MfaSessionGate(provider, friendly_name=settings.MFA_FRIENDLY_NAME),
        ttl_seconds=settings.MFA_FLOW_TTL_SECONDS,
    )
    app.state.pension_client = pension_client
    app.state.recommendation_client = recommendation_client

    # =============================================================================
    # Router
    # =============================================================================
    app.include_router(auth_routes.router, prefix="/auth")
    app.include_router(pension_routes.router)       # /api/...
    app.include_router(routes_web.router)           # /, /recommendations, /admin

    app.middleware("http")(redirect_unauthenticated_html)
    return app


app = create_app()
