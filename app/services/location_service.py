from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel, col, select

from app.domain.ability import Ability
from app.domain.actor import Actor
from app.domain.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.domain.models import (
    Edificio,
    EdificioCreate,
    EdificioRead,
    EdificioUpdate,
    EntityHistory,
    Filiale,
    FilialeCreate,
    FilialeRead,
    FilialeUpdate,
    Locale,
    LocaleCreate,
    LocaleRead,
    LocaleUpdate,
    Piano,
    PianoCreate,
    PianoRead,
    PianoUpdate,
    now_utc,
)
from app.infra.audit import audit_recorder, snapshot
from app.infra.db import get_engine
from app.policies.base import BasePolicy
from app.policies.locations import EdificioPolicy, FilialePolicy, LocalePolicy, PianoPolicy

logger = logging.getLogger(__name__)


def get_scoped(session: Session, model: Any, tenant_id: str, entity_id: str) -> Any:
    statement = select(model).where(model.tenant_id == tenant_id).where(model.id == entity_id)
    return session.exec(statement).first()


def entity_history(tenant_id: str, entity_type: str, entity_id: str) -> list[EntityHistory]:
    with Session(get_engine(), expire_on_commit=False) as session:
        statement = (
            select(EntityHistory)
            .where(EntityHistory.tenant_id == tenant_id)
            .where(EntityHistory.entity_type == entity_type)
            .where(EntityHistory.entity_id == entity_id)
            .order_by(col(EntityHistory.ts))
        )
        return list(session.exec(statement).all())


class RegistryCrud:
    """Policy-gated persistence shared by the location and asset services."""

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def shape(
        self,
        policy: BasePolicy,
        read_model: type[BaseModel],
        actor: Actor,
        entity: SQLModel,
        ability: Ability | None = None,
    ) -> dict[str, Any]:
        data = read_model.model_validate(entity).model_dump(mode="json")
        return policy.shape(actor, entity, data, ability)

    def _load(self, session: Session, model: Any, actor: Actor, entity_id: str) -> Any:
        entity = get_scoped(session, model, actor.tenant_id, entity_id)
        if entity is None:
            raise NotFoundError(f"{model.subject_type} not found")
        return entity

    def _read(self, policy: BasePolicy, model: Any, actor: Actor, entity_id: str) -> Any:
        with self._session() as session:
            entity = self._load(session, model, actor, entity_id)
        if not policy.can_read(actor, entity):
            raise AuthorizationError(f"not allowed to read this {model.subject_type}")
        return entity

    def _list(
        self,
        policy: BasePolicy,
        model: Any,
        read_model: type[BaseModel],
        actor: Actor,
        **filters: Any,
    ) -> list[dict[str, Any]]:
        """Readable rows, shaped; one ability serves the whole listing."""
        with self._session() as session:
            statement = select(model).where(model.tenant_id == actor.tenant_id)
            for name, value in filters.items():
                if value is not None:
                    statement = statement.where(getattr(model, name) == value)
            statement = statement.order_by(col(model.code))
            rows = list(session.exec(statement).all())
        ability = policy.ability_for(actor)
        return [
            self.shape(policy, read_model, actor, row, ability)
            for row in rows
            if policy.can_read(actor, row, ability)
        ]

    def _insert(self, policy: BasePolicy, actor: Actor, entity: SQLModel) -> Any:
        kind = str(type(entity).subject_type)
        if not policy.can_create(actor, entity.model_dump()):
            raise AuthorizationError(f"not allowed to create {kind}")
        with self._session() as session:
            session.add(entity)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError(f"{kind} code already exists in tenant") from exc
            session.refresh(entity)
        audit_recorder.record(
            tenant_id=actor.tenant_id,
            entity_type=kind,
            entity_id=entity.id,
            action="create",
            changed_by=actor.id,
            after=snapshot(entity),
        )
        return entity

    def _apply_update(
        self,
        session: Session,
        policy: BasePolicy,
        actor: Actor,
        entity: Any,
        patch: dict[str, Any],
        derived: dict[str, Any] | None = None,
    ) -> Any:
        kind = str(entity.subject_type)
        if not policy.can_update(actor, entity, patch):
            raise AuthorizationError(f"not allowed to update this {kind}")
        before = snapshot(entity)
        for key, value in {**patch, **(derived or {})}.items():
            setattr(entity, key, value)
        entity.updated_at = now_utc()
        session.add(entity)
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise ConflictError(f"{kind} code already exists in tenant") from exc
        session.refresh(entity)
        audit_recorder.record(
            tenant_id=actor.tenant_id,
            entity_type=kind,
            entity_id=entity.id,
            action="update",
            changed_by=actor.id,
            before=before,
            after=snapshot(entity),
        )
        return entity

    def _delete(self, policy: BasePolicy, model: Any, actor: Actor, entity_id: str) -> None:
        kind = str(model.subject_type)
        with self._session() as session:
            entity = self._load(session, model, actor, entity_id)
            if not policy.can_delete(actor, entity):
                raise AuthorizationError(f"not allowed to delete this {kind}")
            before = snapshot(entity)
            session.delete(entity)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError(f"{kind} is still referenced") from exc
        audit_recorder.record(
            tenant_id=actor.tenant_id,
            entity_type=kind,
            entity_id=entity_id,
            action="delete",
            changed_by=actor.id,
            before=before,
        )

    def _history(self, policy: BasePolicy, model: Any, actor: Actor, entity_id: str) -> list[EntityHistory]:
        entity = self._read(policy, model, actor, entity_id)
        return entity_history(actor.tenant_id, str(model.subject_type), entity.id)


class LocationService(RegistryCrud):
    def __init__(
        self,
        filiale_policy: FilialePolicy | None = None,
        edificio_policy: EdificioPolicy | None = None,
        piano_policy: PianoPolicy | None = None,
        locale_policy: LocalePolicy | None = None,
    ) -> None:
        self.filiale_policy = filiale_policy or FilialePolicy()
        self.edificio_policy = edificio_policy or EdificioPolicy()
        self.piano_policy = piano_policy or PianoPolicy()
        self.locale_policy = locale_policy or LocalePolicy()

    def _parent(self, session: Session, model: Any, actor: Actor, parent_id: str, field: str) -> Any:
        parent = get_scoped(session, model, actor.tenant_id, parent_id)
        if parent is None:
            raise ValidationError("invalid parent", [f"{field}: {model.subject_type} not found"])
        return parent

    # filiali

    def create_filiale(self, actor: Actor, payload: FilialeCreate) -> Filiale:
        return self._insert(self.filiale_policy, actor, Filiale(tenant_id=actor.tenant_id, **payload.model_dump()))

    def list_filiali(self, actor: Actor) -> list[dict[str, Any]]:
        return self._list(self.filiale_policy, Filiale, FilialeRead, actor)

    def get_filiale(self, actor: Actor, filiale_id: str) -> Filiale:
        return self._read(self.filiale_policy, Filiale, actor, filiale_id)

    def update_filiale(self, actor: Actor, filiale_id: str, payload: FilialeUpdate) -> Filiale:
        with self._session() as session:
            filiale = self._load(session, Filiale, actor, filiale_id)
            return self._apply_update(session, self.filiale_policy, actor, filiale, payload.model_dump(exclude_unset=True))

    def delete_filiale(self, actor: Actor, filiale_id: str) -> None:
        self._delete(self.filiale_policy, Filiale, actor, filiale_id)

    def shape_filiale(self, actor: Actor, filiale: Filiale) -> dict[str, Any]:
        return self.shape(self.filiale_policy, FilialeRead, actor, filiale)

    # edifici

    def create_edificio(self, actor: Actor, payload: EdificioCreate) -> Edificio:
        with self._session() as session:
            self._parent(session, Filiale, actor, payload.filiale_id, "filiale_id")
        return self._insert(self.edificio_policy, actor, Edificio(tenant_id=actor.tenant_id, **payload.model_dump()))

    def list_edifici(self, actor: Actor, *, filiale_id: str | None = None) -> list[dict[str, Any]]:
        return self._list(self.edificio_policy, Edificio, EdificioRead, actor, filiale_id=filiale_id)

    def get_edificio(self, actor: Actor, edificio_id: str) -> Edificio:
        return self._read(self.edificio_policy, Edificio, actor, edificio_id)

    def update_edificio(self, actor: Actor, edificio_id: str, payload: EdificioUpdate) -> Edificio:
        with self._session() as session:
            edificio = self._load(session, Edificio, actor, edificio_id)
            return self._apply_update(session, self.edificio_policy, actor, edificio, payload.model_dump(exclude_unset=True))

    def delete_edificio(self, actor: Actor, edificio_id: str) -> None:
        self._delete(self.edificio_policy, Edificio, actor, edificio_id)

    def shape_edificio(self, actor: Actor, edificio: Edificio) -> dict[str, Any]:
        return self.shape(self.edificio_policy, EdificioRead, actor, edificio)

    # piani

    def create_piano(self, actor: Actor, payload: PianoCreate) -> Piano:
        with self._session() as session:
            edificio = self._parent(session, Edificio, actor, payload.edificio_id, "edificio_id")
        piano = Piano(tenant_id=actor.tenant_id, filiale_id=edificio.filiale_id, **payload.model_dump())
        return self._insert(self.piano_policy, actor, piano)

    def list_piani(self, actor: Actor, *, edificio_id: str | None = None) -> list[dict[str, Any]]:
        return self._list(self.piano_policy, Piano, PianoRead, actor, edificio_id=edificio_id)

    def get_piano(self, actor: Actor, piano_id: str) -> Piano:
        return self._read(self.piano_policy, Piano, actor, piano_id)

    def update_piano(self, actor: Actor, piano_id: str, payload: PianoUpdate) -> Piano:
        with self._session() as session:
            piano = self._load(session, Piano, actor, piano_id)
            return self._apply_update(session, self.piano_policy, actor, piano, payload.model_dump(exclude_unset=True))

    def delete_piano(self, actor: Actor, piano_id: str) -> None:
        self._delete(self.piano_policy, Piano, actor, piano_id)

    def shape_piano(self, actor: Actor, piano: Piano) -> dict[str, Any]:
        return self.shape(self.piano_policy, PianoRead, actor, piano)

    # locali

    def create_locale(self, actor: Actor, payload: LocaleCreate) -> Locale:
        with self._session() as session:
            piano = self._parent(session, Piano, actor, payload.piano_id, "piano_id")
        locale = Locale(
            tenant_id=actor.tenant_id,
            filiale_id=piano.filiale_id,
            edificio_id=piano.edificio_id,
            **payload.model_dump(),
        )
        return self._insert(self.locale_policy, actor, locale)

    def list_locali(self, actor: Actor, *, piano_id: str | None = None) -> list[dict[str, Any]]:
        return self._list(self.locale_policy, Locale, LocaleRead, actor, piano_id=piano_id)

    def get_locale(self, actor: Actor, locale_id: str) -> Locale:
        return self._read(self.locale_policy, Locale, actor, locale_id)

    def update_locale(self, actor: Actor, locale_id: str, payload: LocaleUpdate) -> Locale:
        with self._session() as session:
            locale = self._load(session, Locale, actor, locale_id)
            return self._apply_update(session, self.locale_policy, actor, locale, payload.model_dump(exclude_unset=True))

    def delete_locale(self, actor: Actor, locale_id: str) -> None:
        self._delete(self.locale_policy, Locale, actor, locale_id)

    def shape_locale(self, actor: Actor, locale: Locale) -> dict[str, Any]:
        return self.shape(self.locale_policy, LocaleRead, actor, locale)

    # history

    def history(self, actor: Actor, model: type[SQLModel], entity_id: str) -> list[EntityHistory]:
        policies: dict[type[SQLModel], BasePolicy] = {
            Filiale: self.filiale_policy,
            Edificio: self.edificio_policy,
            Piano: self.piano_policy,
            Locale: self.locale_policy,
        }
        return self._history(policies[model], model, actor, entity_id)
