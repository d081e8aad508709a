from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Response, status

from app.api.deps import CurrentActor, raise_for_service_error
from app.domain.errors import ServiceError
from app.domain.models import AssetCreate, AssetUpdate, EntityHistoryRead
from app.services.asset_service import AssetService

router = APIRouter()


def get_asset_service() -> AssetService:
    return AssetService()


Service = Annotated[AssetService, Depends(get_asset_service)]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_asset(payload: AssetCreate, actor: CurrentActor, service: Service) -> dict[str, Any]:
    try:
        return service.shape_asset(actor, service.create_asset(actor, payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.get("")
def list_assets(
    actor: CurrentActor,
    service: Service,
    filiale_id: str | None = None,
    locale_id: str | None = None,
    category: str | None = None,
) -> list[dict[str, Any]]:
    return service.list_assets(actor, filiale_id=filiale_id, locale_id=locale_id, category=category)


@router.get("/{asset_id}")
def get_asset(asset_id: str, actor: CurrentActor, service: Service) -> dict[str, Any]:
    try:
        return service.shape_asset(actor, service.get_asset(actor, asset_id))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.patch("/{asset_id}")
def update_asset(asset_id: str, payload: AssetUpdate, actor: CurrentActor, service: Service) -> dict[str, Any]:
    try:
        return service.shape_asset(actor, service.update_asset(actor, asset_id, payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.delete("/{asset_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_asset(asset_id: str, actor: CurrentActor, service: Service) -> Response:
    try:
        service.delete_asset(actor, asset_id)
    except ServiceError as exc:
        raise_for_service_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{asset_id}/history", response_model=list[EntityHistoryRead])
def asset_history(asset_id: str, actor: CurrentActor, service: Service) -> list[EntityHistoryRead]:
    try:
        return [EntityHistoryRead.model_validate(item) for item in service.history(actor, asset_id)]
    except ServiceError as exc:
        raise_for_service_error(exc)
