from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Einmaliges Logging-Setup beim App-Start (idempotent)."""
    root = logging.getLogger()
    root.setLevel((level or "INFO").upper())

    if any(getattr(h, "_zusplus", False) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._zusplus = True  # type: ignore[attr-defined]
    root.addHandler(handler)
