from __future__ import annotations

import logging
import os

from app.infra.tenant import RequestContextFilter

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] tenant=%(tenant_id)s actor=%(actor_id)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    root = logging.getLogger()
    root.setLevel((level or LOG_LEVEL).upper())
    if any(isinstance(item, RequestContextFilter) for handler in root.handlers for item in handler.filters):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestContextFilter())
    root.addHandler(handler)
