from __future__ import annotations

from typing import Any

from sqlmodel import Session

from app.domain.actor import Actor
from app.domain.errors import ValidationError
from app.domain.models import (
    Asset,
    AssetCreate,
    AssetRead,
    AssetUpdate,
    Edificio,
    EntityHistory,
    Filiale,
    Fornitore,
    Locale,
    Piano,
    StatoDotazione,
    StatoIntervento,
    TipoPossesso,
)
from app.policies.asset import AssetPolicy
from app.services.location_service import RegistryCrud, get_scoped

LOCATION_KEYS = ("filiale_id", "edificio_id", "piano_id", "locale_id")
LOOKUP_REFERENCES: dict[str, Any] = {
    "stato_dotazione_id": StatoDotazione,
    "tipo_possesso_id": TipoPossesso,
    "fornitore_id": Fornitore,
    "stato_interventi_id": StatoIntervento,
}


def check_references(
    session: Session,
    tenant_id: str,
    values: dict[str, Any],
    references: dict[str, Any] = LOOKUP_REFERENCES,
) -> None:
    """Lookup ids must name an active value of the same tenant."""
    errors: list[str] = []
    for key, model in references.items():
        value = values.get(key)
        if value is None:
            continue
        row = get_scoped(session, model, tenant_id, value)
        if row is None or not row.active:
            errors.append(f"{key}: {model.__name__} not found")
    if errors:
        raise ValidationError("invalid reference", errors)


class AssetService(RegistryCrud):
    def __init__(self, policy: AssetPolicy | None = None) -> None:
        self.policy = policy or AssetPolicy()

    def _resolve_location(self, session: Session, tenant_id: str, values: dict[str, Any]) -> dict[str, Any]:
        """Fill missing ancestors from the deepest location given and check the chain."""
        errors: list[str] = []
        filiale_id = values.get("filiale_id")
        edificio_id = values.get("edificio_id")
        piano_id = values.get("piano_id")
        locale_id = values.get("locale_id")

        if locale_id is not None:
            locale = get_scoped(session, Locale, tenant_id, locale_id)
            if locale is None:
                errors.append("locale_id: Locale not found")
            elif piano_id is None:
                piano_id = locale.piano_id
            elif piano_id != locale.piano_id:
                errors.append("locale_id: Locale is not on the given piano")
        if piano_id is not None:
            piano = get_scoped(session, Piano, tenant_id, piano_id)
            if piano is None:
                errors.append("piano_id: Piano not found")
            elif edificio_id is None:
                edificio_id = piano.edificio_id
            elif edificio_id != piano.edificio_id:
                errors.append("piano_id: Piano is not in the given edificio")
        if edificio_id is not None:
            edificio = get_scoped(session, Edificio, tenant_id, edificio_id)
            if edificio is None:
                errors.append("edificio_id: Edificio not found")
            elif filiale_id is None:
                filiale_id = edificio.filiale_id
            elif edificio.filiale_id != filiale_id:
                errors.append("edificio_id: Edificio is not in the given filiale")
        if filiale_id is None or get_scoped(session, Filiale, tenant_id, filiale_id) is None:
            errors.append("filiale_id: Filiale not found")
        if errors:
            raise ValidationError("inconsistent asset location", errors)
        return {
            "filiale_id": filiale_id,
            "edificio_id": edificio_id,
            "piano_id": piano_id,
            "locale_id": locale_id,
        }

    @staticmethod
    def _requested_location(asset: Asset, patch: dict[str, Any]) -> dict[str, Any]:
        """Merge a location patch into the asset's current chain.

        Levels the patch leaves out keep their current value, except that
        ancestors of the deepest level given are derived again and levels
        below a changed one are cleared.
        """
        requested = {key: patch.get(key, getattr(asset, key)) for key in LOCATION_KEYS}
        named = [key for key in LOCATION_KEYS if key in patch]
        given = [key for key in named if patch[key] is not None]
        if given:
            depth = LOCATION_KEYS.index(given[-1])
            for key in LOCATION_KEYS[:depth]:
                if key not in patch:
                    requested[key] = None
            changed = patch[given[-1]] != getattr(asset, given[-1])
        else:
            depth = LOCATION_KEYS.index(named[0])
            changed = True
        if changed:
            for key in LOCATION_KEYS[depth + 1 :]:
                if key not in patch:
                    requested[key] = None
        return requested

    def prepare(self, session: Session, tenant_id: str, data: dict[str, Any]) -> dict[str, Any]:
        data.update(self._resolve_location(session, tenant_id, data))
        check_references(session, tenant_id, data)
        return data

    def create_asset(self, actor: Actor, payload: AssetCreate) -> Asset:
        data = payload.model_dump()
        with self._session() as session:
            self.prepare(session, actor.tenant_id, data)
        return self._insert(self.policy, actor, Asset(tenant_id=actor.tenant_id, **data))

    def list_assets(
        self,
        actor: Actor,
        *,
        filiale_id: str | None = None,
        locale_id: str | None = None,
        category: str | None = None,
    ) -> list[dict[str, Any]]:
        return self._list(
            self.policy,
            Asset,
            AssetRead,
            actor,
            filiale_id=filiale_id,
            locale_id=locale_id,
            category=category,
        )

    def get_asset(self, actor: Actor, asset_id: str) -> Asset:
        return self._read(self.policy, Asset, actor, asset_id)

    def update_asset(self, actor: Actor, asset_id: str, payload: AssetUpdate) -> Asset:
        patch = payload.model_dump(exclude_unset=True)
        if patch.get("filiale_id", "") is None:
            raise ValidationError("inconsistent asset location", ["filiale_id: may not be null"])
        with self._session() as session:
            asset = self._load(session, Asset, actor, asset_id)
            check_references(session, actor.tenant_id, patch)
            derived = None
            if any(key in patch for key in LOCATION_KEYS):
                derived = self._resolve_location(session, actor.tenant_id, self._requested_location(asset, patch))
                # Every location key that moves is checked like an explicit patch entry.
                for key, value in derived.items():
                    if key in patch or value != getattr(asset, key):
                        patch[key] = value
            return self._apply_update(session, self.policy, actor, asset, patch, derived)

    def delete_asset(self, actor: Actor, asset_id: str) -> None:
        self._delete(self.policy, Asset, actor, asset_id)

    def shape_asset(self, actor: Actor, asset: Asset) -> dict[str, Any]:
        return self.shape(self.policy, AssetRead, actor, asset)

    def history(self, actor: Actor, asset_id: str) -> list[EntityHistory]:
        return self._history(self.policy, Asset, actor, asset_id)
