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
    Asset,
    AssetRead,
    Attrezzatura,
    AttrezzaturaRead,
    EntityHistory,
    Fornitore,
    ImpiantoTecnologico,
    ImpiantoTecnologicoRead,
    StrumentoDiMisura,
    StrumentoDiMisuraRead,
    now_utc,
)
from app.infra.audit import audit_recorder, snapshot
from app.policies.asset import AssetPolicy
from app.services.asset_service import AssetService, check_references
from app.services.location_service import RegistryCrud, entity_history, get_scoped

logger = logging.getLogger(__name__)

READ_MODELS: dict[type[SQLModel], type[BaseModel]] = {
    Attrezzatura: AttrezzaturaRead,
    StrumentoDiMisura: StrumentoDiMisuraRead,
    ImpiantoTecnologico: ImpiantoTecnologicoRead,
}
DETAIL_REFERENCES: dict[str, Any] = {"altro_fornitore_id": Fornitore}


class EquipmentService(RegistryCrud):
    """Equipment kinds (tools, measuring instruments, technical plants).

    Each piece of equipment is an asset plus one detail row. The detail id is
    the public id of the equipment; every decision is taken by the asset
    policy against the parent asset.
    """

    def __init__(self, policy: AssetPolicy | None = None, assets: AssetService | None = None) -> None:
        self.policy = policy or AssetPolicy()
        self.assets = assets or AssetService(self.policy)

    def _load_pair(self, session: Session, model: Any, actor: Actor, detail_id: str) -> tuple[Any, Asset]:
        detail = get_scoped(session, model, actor.tenant_id, detail_id)
        asset = None if detail is None else get_scoped(session, Asset, actor.tenant_id, detail.asset_id)
        if detail is None or asset is None:
            raise NotFoundError(f"{model.__name__} not found")
        return detail, asset

    def shape_equipment(
        self,
        actor: Actor,
        model: Any,
        detail: Any,
        asset: Asset,
        ability: Ability | None = None,
    ) -> dict[str, Any]:
        data = READ_MODELS[model].model_validate(detail).model_dump(mode="json")
        body = self.policy.shape(actor, asset, data, ability)
        body["asset"] = self.shape(self.policy, AssetRead, actor, asset, ability)
        return body

    def create(self, actor: Actor, model: Any, payload: BaseModel) -> dict[str, Any]:
        kind = model.__name__
        data = payload.model_dump()
        detail_data = {key: data.pop(key) for key in model.detail_fields}
        with self._session() as session:
            self.assets.prepare(session, actor.tenant_id, data)
            check_references(session, actor.tenant_id, detail_data, DETAIL_REFERENCES)
        asset = Asset(tenant_id=actor.tenant_id, asset_type=model.equipment_type, **data)
        if not self.policy.can_create(actor, asset.model_dump()):
            raise AuthorizationError(f"not allowed to create {kind}")
        detail = model(tenant_id=actor.tenant_id, asset_id=asset.id, **detail_data)
        with self._session() as session:
            session.add(asset)
            session.add(detail)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("Asset code already exists in tenant") from exc
            session.refresh(asset)
            session.refresh(detail)
        for entity_type, entity in (("Asset", asset), (kind, detail)):
            audit_recorder.record(
                tenant_id=actor.tenant_id,
                entity_type=entity_type,
                entity_id=entity.id,
                action="create",
                changed_by=actor.id,
                after=snapshot(entity),
            )
        logger.info("%s %s created on asset %s", kind, detail.id, asset.id)
        return self.shape_equipment(actor, model, detail, asset)

    def list(
        self,
        actor: Actor,
        model: Any,
        *,
        filiale_id: str | None = None,
        **filters: Any,
    ) -> list[dict[str, Any]]:
        with self._session() as session:
            statement = (
                select(model, Asset)
                .join(Asset, col(Asset.id) == col(model.asset_id))
                .where(model.tenant_id == actor.tenant_id)
            )
            if filiale_id is not None:
                statement = statement.where(Asset.filiale_id == filiale_id)
            for name, value in filters.items():
                if value is not None:
                    statement = statement.where(getattr(model, name) == value)
            rows = list(session.exec(statement.order_by(col(Asset.code))).all())
        ability = self.policy.ability_for(actor)
        return [
            self.shape_equipment(actor, model, detail, asset, ability)
            for detail, asset in rows
            if self.policy.can_read(actor, asset, ability)
        ]

    def get(self, actor: Actor, model: Any, detail_id: str) -> dict[str, Any]:
        with self._session() as session:
            detail, asset = self._load_pair(session, model, actor, detail_id)
        if not self.policy.can_read(actor, asset):
            raise AuthorizationError(f"not allowed to read this {model.__name__}")
        return self.shape_equipment(actor, model, detail, asset)

    def update(self, actor: Actor, model: Any, detail_id: str, payload: BaseModel) -> dict[str, Any]:
        kind = model.__name__
        patch = payload.model_dump(exclude_unset=True)
        if "super_tool" in patch and patch["super_tool"] is None:
            raise ValidationError("invalid equipment details", ["super_tool: may not be null"])
        with self._session() as session:
            detail, asset = self._load_pair(session, model, actor, detail_id)
            check_references(session, actor.tenant_id, patch, DETAIL_REFERENCES)
            if not self.policy.can_update(actor, asset, patch):
                raise AuthorizationError(f"not allowed to update this {kind}")
            before = snapshot(detail)
            for key, value in patch.items():
                setattr(detail, key, value)
            detail.updated_at = now_utc()
            session.add(detail)
            session.commit()
            session.refresh(detail)
        audit_recorder.record(
            tenant_id=actor.tenant_id,
            entity_type=kind,
            entity_id=detail.id,
            action="update",
            changed_by=actor.id,
            before=before,
            after=snapshot(detail),
        )
        return self.shape_equipment(actor, model, detail, asset)

    def delete(self, actor: Actor, model: Any, detail_id: str) -> None:
        kind = model.__name__
        with self._session() as session:
            detail, asset = self._load_pair(session, model, actor, detail_id)
            if not self.policy.can_delete(actor, asset):
                raise AuthorizationError(f"not allowed to delete this {kind}")
            removed = (("Asset", asset.id, snapshot(asset)), (kind, detail.id, snapshot(detail)))
            session.delete(detail)
            session.delete(asset)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("Asset is still referenced") from exc
        for entity_type, entity_id, before in removed:
            audit_recorder.record(
                tenant_id=actor.tenant_id,
                entity_type=entity_type,
                entity_id=entity_id,
                action="delete",
                changed_by=actor.id,
                before=before,
            )
        logger.info("%s %s deleted with asset %s", kind, detail_id, asset.id)

    def history(self, actor: Actor, model: Any, detail_id: str) -> list[EntityHistory]:
        """Changes of the detail row and of its asset, oldest first."""
        with self._session() as session:
            detail, asset = self._load_pair(session, model, actor, detail_id)
        if not self.policy.can_read(actor, asset):
            raise AuthorizationError(f"not allowed to read this {model.__name__}")
        entries = [
            *entity_history(actor.tenant_id, "Asset", asset.id),
            *entity_history(actor.tenant_id, model.__name__, detail.id),
        ]
        return sorted(entries, key=lambda entry: entry.ts)
