from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from app.domain.actor import Actor
from app.domain.errors import ConflictError, NotFoundError
from app.domain.models import now_utc
from app.infra.audit import audit_recorder, snapshot
from app.infra.db import get_engine
from app.services.location_service import get_scoped

logger = logging.getLogger(__name__)


class LookupService:
    """Tenant catalogs referenced by assets: equipment states, ownership kinds,
    intervention states and suppliers.

    Callers gate access with ``read Asset`` and ``manage Asset`` before reaching
    the service.
    """

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _load(self, session: Session, model: Any, actor: Actor, lookup_id: str) -> Any:
        row = get_scoped(session, model, actor.tenant_id, lookup_id)
        if row is None:
            raise NotFoundError(f"{model.__name__} not found")
        return row

    def _commit(self, session: Session, message: str) -> None:
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise ConflictError(message) from exc

    def list(self, actor: Actor, model: Any, *, active: bool | None = None) -> list[Any]:
        with self._session() as session:
            statement = select(model).where(model.tenant_id == actor.tenant_id)
            if active is not None:
                statement = statement.where(model.active == active)
            return list(session.exec(statement.order_by(col(model.code))).all())

    def create(self, actor: Actor, model: Any, payload: BaseModel) -> Any:
        row = model(tenant_id=actor.tenant_id, **payload.model_dump())
        with self._session() as session:
            session.add(row)
            self._commit(session, f"{model.__name__} code already exists in tenant")
            session.refresh(row)
        audit_recorder.record(
            tenant_id=actor.tenant_id,
            entity_type=model.__name__,
            entity_id=row.id,
            action="create",
            changed_by=actor.id,
            after=snapshot(row),
        )
        return row

    def update(self, actor: Actor, model: Any, lookup_id: str, payload: BaseModel) -> Any:
        patch = payload.model_dump(exclude_unset=True)
        with self._session() as session:
            row = self._load(session, model, actor, lookup_id)
            before = snapshot(row)
            for key, value in patch.items():
                if value is None and key in ("code", "description", "active"):
                    continue
                setattr(row, key, value)
            row.updated_at = now_utc()
            session.add(row)
            self._commit(session, f"{model.__name__} code already exists in tenant")
            session.refresh(row)
        audit_recorder.record(
            tenant_id=actor.tenant_id,
            entity_type=model.__name__,
            entity_id=row.id,
            action="update",
            changed_by=actor.id,
            before=before,
            after=snapshot(row),
        )
        return row

    def delete(self, actor: Actor, model: Any, lookup_id: str) -> None:
        with self._session() as session:
            row = self._load(session, model, actor, lookup_id)
            before = snapshot(row)
            session.delete(row)
            self._commit(session, f"{model.__name__} is still referenced")
        audit_recorder.record(
            tenant_id=actor.tenant_id,
            entity_type=model.__name__,
            entity_id=lookup_id,
            action="delete",
            changed_by=actor.id,
            before=before,
        )
        logger.info("%s %s deleted in tenant %s", model.__name__, lookup_id, actor.tenant_id)
