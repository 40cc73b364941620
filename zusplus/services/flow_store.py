# zusplus/services/flow_store.py
from __future__ import annotations

import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from zusplus.services.mfa_gate import MfaSessionGate


@dataclass
class _Flow:
    gate: MfaSessionGate
    expires_at: float
    # False nach retire(): Zugriffe verlängern nicht mehr
    sliding: bool = True


class GateStore:
    """
    Laufende Login-Vorgänge im Prozessspeicher, Schlüssel = Flow-Cookie.
    Nichts davon wird persistiert; nach Neustart beginnt der Login von vorn.
    """

    def __init__(
        self,
        factory: Callable[[], MfaSessionGate],
        ttl_seconds: int = 600,
        grace_seconds: int = 30,
    ):
        self._factory = factory
        self._ttl = ttl_seconds
        self._grace = grace_seconds
        self._lock = threading.Lock()
        self._flows: Dict[str, _Flow] = {}

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, flow in self._flows.items() if now > flow.expires_at]
        for k in expired:
            del self._flows[k]

    def create(self) -> Tuple[str, MfaSessionGate]:
        flow_id = secrets.token_urlsafe(24)
        gate = self._factory()
        now = time.monotonic()
        with self._lock:
            self._purge_expired(now)
            self._flows[flow_id] = _Flow(gate, now + self._ttl)
        return flow_id, gate

    def get(self, flow_id: Optional[str]) -> Optional[MfaSessionGate]:
        if not flow_id:
            return None
        now = time.monotonic()
        with self._lock:
            self._purge_expired(now)
            flow = self._flows.get(flow_id)
            if flow is None:
                return None
            if flow.sliding:
                flow.expires_at = now + self._ttl
            return flow.gate

    def retire(self, flow_id: Optional[str]) -> None:
        """Abgeschlossener Login: Gate bleibt nur noch kurz für späte Doppel-Submits."""
        if not flow_id:
            return
        now = time.monotonic()
        with self._lock:
            flow = self._flows.get(flow_id)
            if flow is not None:
                flow.expires_at = min(flow.expires_at, now + self._grace)
                flow.sliding = False

    def discard(self, flow_id: Optional[str]) -> None:
        if not flow_id:
            return
        with self._lock:
            self._flows.pop(flow_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._flows)
