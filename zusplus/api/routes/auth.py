# zusplus/api/routes/auth.py
from __future__ import annotations

import logging
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, Form, Request, Response
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from zusplus.api.deps import (
    ACCESS_COOKIE,
    FLOW_COOKIE,
    get_flow_gate,
    get_gate_store,
    get_identity_provider,
    get_settings,
    require_admin_session,
)
from zusplus.core.config import Settings
from zusplus.core.errors import IdentityProviderError
from zusplus.identity.base import IdentityProvider, Session
from zusplus.schemas.auth import EnrollmentOut, GateOut, LoginIn, MfaCodeIn, SessionOut
from zusplus.services.flow_store import GateStore
from zusplus.services.mfa_gate import GateResult, GateState, MfaSessionGate, require_full_assurance
from zusplus.web.templates import templates
from zusplus.web.toast import set_toast_cookie

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth"])

NEXT_COOKIE = "zp_next"
DEFAULT_TARGET = "/admin"
VERIFY_PAGE = "/auth/mfa/verify-web"


# ============================================================
# Helper
# ============================================================

def _safe_next(raw: Optional[str]) -> str:
    if raw and raw.startswith("/") and not raw.startswith("//"):
        return raw
    return DEFAULT_TARGET


def _set_cookie(resp: Response, key: str, value: str, settings: Settings, max_age: Optional[int] = None) -> None:
    resp.set_cookie(
        key=key,
        value=value,
        max_age=max_age,
        httponly=True,
        samesite="lax",
        path="/",
        secure=settings.COOKIE_SECURE,
    )


def _clear_cookies(resp: Response) -> None:
    for key in (ACCESS_COOKIE, FLOW_COOKIE, NEXT_COOKIE):
        resp.delete_cookie(key=key, path="/", samesite="lax", httponly=True)


def _start_flow(store: GateStore, request: Request) -> Tuple[str, MfaSessionGate]:
    # alter Vorgang wird verworfen
    store.discard(request.cookies.get(FLOW_COOKIE))
    return store.create()


def _set_flow_cookie(resp: Response, flow_id: str, settings: Settings) -> None:
    _set_cookie(resp, FLOW_COOKIE, flow_id, settings, max_age=settings.MFA_FLOW_TTL_SECONDS)


def _login(gate: MfaSessionGate, email: str, password: str) -> GateResult:
    result = gate.login(email, password)
    if result.state is GateState.ENROLLMENT_REQUIRED:
        # ohne Faktor direkt in die Einrichtung
        started = gate.start_enrollment()
        if not started.ok:
            return started
    return result


def _finish(
    gate: MfaSessionGate,
    flow_id: Optional[str],
    resp: Response,
    store: GateStore,
    settings: Settings,
) -> None:
    """AUTHENTICATED: Session-Cookie setzen, Flow nur noch kurz aufheben."""
    resp.delete_cookie(key=FLOW_COOKIE, path="/", samesite="lax", httponly=True)
    resp.delete_cookie(key=NEXT_COOKIE, path="/", samesite="lax", httponly=True)
    if gate.session is None:
        # Session inzwischen abgemeldet
        store.discard(flow_id)
        return
    _set_cookie(resp, ACCESS_COOKIE, gate.session.access_token, settings)
    store.retire(flow_id)


def _gate_out(gate: MfaSessionGate, result: GateResult) -> GateOut:
    enrollment = None
    if result.state is GateState.ENROLLMENT_REQUIRED and gate.enrollment is not None:
        e = gate.enrollment
        enrollment = EnrollmentOut(factor_id=e.factor_id, secret=e.secret, uri=e.uri, qr_code=e.qr_code)

    token = None
    if result.state is GateState.AUTHENTICATED and gate.session is not None:
        token = gate.session.access_token

    return GateOut(
        state=result.state,
        ok=result.ok,
        message=result.message,
        clear_code=result.clear_code,
        busy=result.busy,
        enrollment=enrollment,
        access_token=token,
    )


def _status_for(result: GateResult) -> int:
    if result.ok:
        return 200
    if result.busy:
        return 409
    if result.state is GateState.LOGGED_OUT:
        return 401
    return 400


def _json(
    gate: MfaSessionGate,
    result: GateResult,
    flow_id: Optional[str],
    store: GateStore,
    settings: Settings,
) -> JSONResponse:
    resp = JSONResponse(
        status_code=_status_for(result),
        content=_gate_out(gate, result).model_dump(mode="json"),
    )
    if result.state is GateState.AUTHENTICATED:
        _finish(gate, flow_id, resp, store, settings)
    return resp


def _signed_in(request: Request, provider: IdentityProvider) -> Optional[Session]:
    """Flow schon abgeschlossen? Dann trägt der Client bereits ein AAL2-Cookie."""
    return require_full_assurance(provider, request.cookies.get(ACCESS_COOKIE))


def _no_flow_json(request: Request, provider: IdentityProvider) -> JSONResponse:
    session = _signed_in(request, provider)
    if session is not None:
        # später Doppel-Submit nach erfolgreichem Login
        out = GateOut(state=GateState.AUTHENTICATED, ok=True, busy=True, access_token=session.access_token)
        return JSONResponse(status_code=200, content=out.model_dump(mode="json"))
    out = GateOut(state=GateState.LOGGED_OUT, ok=False, message="Zaloguj się ponownie")
    return JSONResponse(status_code=401, content=out.model_dump(mode="json"))


# ============================================================
# API: JSON Endpunkte
# ============================================================

@router.post("/login", response_model=GateOut, openapi_extra={"security": []})
def api_login(
    body: LoginIn,
    request: Request,
    store: GateStore = Depends(get_gate_store),
    settings: Settings = Depends(get_settings),
):
    flow_id, gate = _start_flow(store, request)
    result = _login(gate, body.email, body.password)

    resp = _json(gate, result, flow_id, store, settings)
    if result.state is GateState.LOGGED_OUT:
        store.discard(flow_id)
    elif result.state is not GateState.AUTHENTICATED:
        _set_flow_cookie(resp, flow_id, settings)
    return resp


@router.get("/mfa/status", response_model=GateOut)
def api_mfa_status(
    request: Request,
    gate: Optional[MfaSessionGate] = Depends(get_flow_gate),
    provider: IdentityProvider = Depends(get_identity_provider),
    store: GateStore = Depends(get_gate_store),
    settings: Settings = Depends(get_settings),
):
    if gate is None:
        return _no_flow_json(request, provider)
    return _json(gate, gate.check_mfa_status(), request.cookies.get(FLOW_COOKIE), store, settings)


@router.post("/mfa/enroll", response_model=GateOut)
def api_mfa_enroll(
    request: Request,
    gate: Optional[MfaSessionGate] = Depends(get_flow_gate),
    provider: IdentityProvider = Depends(get_identity_provider),
    store: GateStore = Depends(get_gate_store),
    settings: Settings = Depends(get_settings),
):
    if gate is None:
        return _no_flow_json(request, provider)
    return _json(gate, gate.start_enrollment(), request.cookies.get(FLOW_COOKIE), store, settings)


@router.post("/mfa/enroll/verify", response_model=GateOut)
def api_mfa_enroll_verify(
    body: MfaCodeIn,
    request: Request,
    gate: Optional[MfaSessionGate] = Depends(get_flow_gate),
    provider: IdentityProvider = Depends(get_identity_provider),
    store: GateStore = Depends(get_gate_store),
    settings: Settings = Depends(get_settings),
):
    if gate is None:
        return _no_flow_json(request, provider)
    return _json(gate, gate.verify_enrollment(body.code), request.cookies.get(FLOW_COOKIE), store, settings)


@router.post("/mfa/verify", response_model=GateOut)
def api_mfa_verify(
    body: MfaCodeIn,
    request: Request,
    gate: Optional[MfaSessionGate] = Depends(get_flow_gate),
    provider: IdentityProvider = Depends(get_identity_provider),
    store: GateStore = Depends(get_gate_store),
    settings: Settings = Depends(get_settings),
):
    if gate is None:
        return _no_flow_json(request, provider)
    return _json(gate, gate.verify_login(body.code), request.cookies.get(FLOW_COOKIE), store, settings)


@router.get("/session", response_model=SessionOut)
def api_session(session: Session = Depends(require_admin_session)):
    return SessionOut(user_id=session.user.id, email=session.user.email, aal=session.aal.value)


def _sign_out(request: Request, provider: IdentityProvider, store: GateStore) -> None:
    gate = store.get(request.cookies.get(FLOW_COOKIE))
    if gate is not None:
        gate.sign_out()
        store.discard(request.cookies.get(FLOW_COOKIE))

    token = request.cookies.get(ACCESS_COOKIE)
    if token:
        try:
            provider.sign_out(token)
        except IdentityProviderError as ex:
            logger.warning("Logout beim Provider fehlgeschlagen: %s", ex.message)


@router.post("/logout", status_code=204)
def api_logout(
    request: Request,
    provider: IdentityProvider = Depends(get_identity_provider),
    store: GateStore = Depends(get_gate_store),
):
    _sign_out(request, provider, store)
    resp = Response(status_code=204)
    _clear_cookies(resp)
    return resp


# ======================
# WEB: HTML-Formulare
# ======================

def _render_login(request: Request, *, error: Optional[str] = None, next_url: str = "", status_code: int = 200):
    return templates.TemplateResponse(
        request,
        "login.html",
        {"error": error, "next": next_url},
        status_code=status_code,
    )


def _render_setup(request: Request, gate: MfaSessionGate, *, error: Optional[str] = None, status_code: int = 200):
    return templates.TemplateResponse(
        request,
        "mfa_setup.html",
        {"enrollment": gate.enrollment, "error": error, "code": ""},
        status_code=status_code,
    )


def _render_verify(request: Request, *, error: Optional[str] = None, status_code: int = 200):
    return templates.TemplateResponse(
        request,
        "mfa_verify.html",
        {"error": error, "code": ""},
        status_code=status_code,
    )


def _redirect_after_auth(
    gate: MfaSessionGate,
    request: Request,
    store: GateStore,
    settings: Settings,
    message: Optional[str] = None,
) -> RedirectResponse:
    resp = RedirectResponse(url=_safe_next(request.cookies.get(NEXT_COOKIE)), status_code=303)
    _finish(gate, request.cookies.get(FLOW_COOKIE), resp, store, settings)
    if message:
        set_toast_cookie(resp, message=message, level="success")
    return resp


def _to_login(message: Optional[str] = None) -> RedirectResponse:
    resp = RedirectResponse(url="/auth/login-web", status_code=303)
    if message:
        set_toast_cookie(resp, message=message, level="error")
    return resp


def _no_flow_web(request: Request, provider: IdentityProvider) -> RedirectResponse:
    if _signed_in(request, provider) is not None:
        return RedirectResponse(url=_safe_next(request.cookies.get(NEXT_COOKIE)), status_code=303)
    return _to_login()


@router.get("/login-web", response_class=HTMLResponse, openapi_extra={"security": []})
def login_form(request: Request, next: str = ""):
    return _render_login(request, next_url=next)


@router.post("/login-web", openapi_extra={"security": []})
def login_submit(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    next: str = Form(""),
    store: GateStore = Depends(get_gate_store),
    settings: Settings = Depends(get_settings),
):
    flow_id, gate = _start_flow(store, request)
    result = _login(gate, email, password)

    if result.state is GateState.AUTHENTICATED:
        resp = RedirectResponse(url=_safe_next(next), status_code=303)
        _finish(gate, flow_id, resp, store, settings)
        return resp

    if result.state is GateState.ENROLLMENT_REQUIRED:
        resp = RedirectResponse(url="/auth/mfa/setup", status_code=303)
    elif result.state is GateState.VERIFICATION_REQUIRED:
        resp = RedirectResponse(url=VERIFY_PAGE, status_code=303)
    else:
        store.discard(flow_id)
        return _render_login(request, error=result.message, next_url=next, status_code=401)

    _set_flow_cookie(resp, flow_id, settings)
    if next:
        _set_cookie(resp, NEXT_COOKIE, _safe_next(next), settings, max_age=settings.MFA_FLOW_TTL_SECONDS)
    if not result.ok and result.message:
        set_toast_cookie(resp, message=result.message, level="error")
    return resp


# ---------- 2FA-Einrichtung ----------

@router.get("/mfa/setup", response_class=HTMLResponse)
def mfa_setup_form(
    request: Request,
    gate: Optional[MfaSessionGate] = Depends(get_flow_gate),
    provider: IdentityProvider = Depends(get_identity_provider),
    store: GateStore = Depends(get_gate_store),
    settings: Settings = Depends(get_settings),
):
    if gate is None:
        return _no_flow_web(request, provider)
    if gate.state is GateState.AUTHENTICATED:
        return _redirect_after_auth(gate, request, store, settings)
    if gate.state is not GateState.ENROLLMENT_REQUIRED:
        return _to_login()
    return _render_setup(request, gate)


@router.post("/mfa/setup/start")
def mfa_setup_start(
    gate: Optional[MfaSessionGate] = Depends(get_flow_gate),
):
    if gate is None:
        return _to_login()
    result = gate.start_enrollment()
    if result.state is GateState.LOGGED_OUT:
        return _to_login(result.message)

    resp = RedirectResponse(url="/auth/mfa/setup", status_code=303)
    if not result.ok and not result.busy and result.message:
        set_toast_cookie(resp, message=result.message, level="error")
    return resp


@router.post("/mfa/setup")
def mfa_setup_submit(
    request: Request,
    code: str = Form(""),
    gate: Optional[MfaSessionGate] = Depends(get_flow_gate),
    provider: IdentityProvider = Depends(get_identity_provider),
    store: GateStore = Depends(get_gate_store),
    settings: Settings = Depends(get_settings),
):
    if gate is None:
        return _no_flow_web(request, provider)

    result = gate.verify_enrollment(code)
    if result.state is GateState.AUTHENTICATED:
        return _redirect_after_auth(gate, request, store, settings, result.message)
    if result.busy:
        return RedirectResponse(url="/auth/mfa/setup", status_code=303)
    if result.state is GateState.LOGGED_OUT:
        return _to_login(result.message)
    return _render_setup(request, gate, error=result.message, status_code=400)


# ---------- 2FA-Prüfung ----------

@router.get("/mfa/verify-web", response_class=HTMLResponse)
def mfa_verify_form(
    request: Request,
    gate: Optional[MfaSessionGate] = Depends(get_flow_gate),
    provider: IdentityProvider = Depends(get_identity_provider),
    store: GateStore = Depends(get_gate_store),
    settings: Settings = Depends(get_settings),
):
    if gate is None:
        return _no_flow_web(request, provider)
    if gate.state is GateState.AUTHENTICATED:
        return _redirect_after_auth(gate, request, store, settings)
    if gate.state is not GateState.VERIFICATION_REQUIRED:
        return _to_login()
    return _render_verify(request)


@router.post("/mfa/verify-web")
def mfa_verify_submit(
    request: Request,
    code: str = Form(""),
    gate: Optional[MfaSessionGate] = Depends(get_flow_gate),
    provider: IdentityProvider = Depends(get_identity_provider),
    store: GateStore = Depends(get_gate_store),
    settings: Settings = Depends(get_settings),
):
    if gate is None:
        return _no_flow_web(request, provider)

    result = gate.verify_login(code)
    if result.state is GateState.AUTHENTICATED:
        return _redirect_after_auth(gate, request, store, settings, result.message)
    if result.busy:
        return RedirectResponse(url=VERIFY_PAGE, status_code=303)
    if result.state is GateState.LOGGED_OUT:
        return _to_login(result.message)
    return _render_verify(request, error=result.message, status_code=400)


@router.post("/logout-web", openapi_extra={"security": []})
def logout_web(
    request: Request,
    provider: IdentityProvider = Depends(get_identity_provider),
    store: GateStore = Depends(get_gate_store),
):
    _sign_out(request, provider, store)
    resp = RedirectResponse(url="/auth/login-web", status_code=303)
    _clear_cookies(resp)
    set_toast_cookie(resp, message="Wylogowano pomyślnie", level="success")
    return resp
