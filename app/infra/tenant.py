from __future__ import annotations

import logging
from contextvars import ContextVar

tenant_id_ctx: ContextVar[str | None] = ContextVar("tenant_id", default=None)
actor_id_ctx: ContextVar[str | None] = ContextVar("actor_id", default=None)


def set_request_context(tenant_id: str | None, actor_id: str | None) -> None:
    tenant_id_ctx.set(tenant_id)
    actor_id_ctx.set(actor_id)


def get_tenant_id() -> str | None:
    return tenant_id_ctx.get()


def get_actor_id() -> str | None:
    return actor_id_ctx.get()


class RequestContextFilter(logging.Filter):
    """Stamps every record with the tenant and actor of the current request."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.tenant_id = get_tenant_id() or "-"
        record.actor_id = get_actor_id() or "-"
        return True
