# zusplus/web/toast.py
from __future__ import annotations

import base64
import json
from typing import Any, Dict, Literal, Optional

from starlette.responses import Response

ToastLevel = Literal["success", "error", "warning", "info"]

TOAST_COOKIE = "zp_toast"
TOAST_MAX_AGE = 20


# =============================
# Cookie-Codec (JSON → base64url ohne Padding)
# =============================

def pack_cookie(data: Dict[str, Any]) -> str:
    raw = json.dumps(data, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def unpack_cookie(value: Optional[str]) -> Optional[Dict[str, Any]]:
    if not value:
        return None
    try:
        raw = base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))
        data = json.loads(raw.decode("utf-8"))
    except (ValueError, UnicodeError):
        return None
    return data if isinstance(data, dict) else None


# =============================
# Toast
# =============================

def set_toast_cookie(
    resp: Response,
    *,
    message: str,
    level: ToastLevel = "info",
    title: Optional[str] = None,
) -> None:
    """Eine Meldung für die nächste Seite; base.html liest und löscht das Cookie per JS.

    Nicht httponly, deshalb nie Codes oder Secrets hineinschreiben.
    """
    toast: Dict[str, Any] = {"level": level, "message": message}
    if title:
        toast["title"] = title

    resp.set_cookie(
        TOAST_COOKIE,
        pack_cookie(toast),
        max_age=TOAST_MAX_AGE,
        path="/",
        httponly=False,
        samesite="lax",
    )
