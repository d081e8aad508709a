from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from app.api.deps import CurrentActor, raise_for_service_error
from app.domain.actor import Actor
from app.domain.errors import ServiceError
from app.domain.models import (
    Attrezzatura,
    AttrezzaturaCreate,
    AttrezzaturaUpdate,
    EntityHistoryRead,
    ImpiantoTecnologico,
    ImpiantoTecnologicoCreate,
    ImpiantoTecnologicoUpdate,
    StrumentoDiMisura,
    StrumentoDiMisuraCreate,
    StrumentoDiMisuraUpdate,
)
from app.services.equipment_service import EquipmentService

router = APIRouter()


def get_equipment_service() -> EquipmentService:
    return EquipmentService()


Service = Annotated[EquipmentService, Depends(get_equipment_service)]


def _create(service: EquipmentService, actor: Actor, model: Any, payload: BaseModel) -> dict[str, Any]:
    try:
        return service.create(actor, model, payload)
    except ServiceError as exc:
        raise_for_service_error(exc)


def _get(service: EquipmentService, actor: Actor, model: Any, detail_id: str) -> dict[str, Any]:
    try:
        return service.get(actor, model, detail_id)
    except ServiceError as exc:
        raise_for_service_error(exc)


def _update(
    service: EquipmentService,
    actor: Actor,
    model: Any,
    detail_id: str,
    payload: BaseModel,
) -> dict[str, Any]:
    try:
        return service.update(actor, model, detail_id, payload)
    except ServiceError as exc:
        raise_for_service_error(exc)


def _delete(service: EquipmentService, actor: Actor, model: Any, detail_id: str) -> Response:
    try:
        service.delete(actor, model, detail_id)
    except ServiceError as exc:
        raise_for_service_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _history(service: EquipmentService, actor: Actor, model: Any, detail_id: str) -> list[EntityHistoryRead]:
    try:
        return [EntityHistoryRead.model_validate(item) for item in service.history(actor, model, detail_id)]
    except ServiceError as exc:
        raise_for_service_error(exc)


# attrezzature


@router.post("/attrezzature", status_code=status.HTTP_201_CREATED)
def create_attrezzatura(payload: AttrezzaturaCreate, actor: CurrentActor, service: Service) -> dict[str, Any]:
    return _create(service, actor, Attrezzatura, payload)


@router.get("/attrezzature")
def list_attrezzature(
    actor: CurrentActor,
    service: Service,
    filiale_id: str | None = None,
    categoria: str | None = None,
    super_tool: bool | None = None,
) -> list[dict[str, Any]]:
    return service.list(actor, Attrezzatura, filiale_id=filiale_id, categoria=categoria, super_tool=super_tool)


@router.get("/attrezzature/{detail_id}")
def get_attrezzatura(detail_id: str, actor: CurrentActor, service: Service) -> dict[str, Any]:
    return _get(service, actor, Attrezzatura, detail_id)


@router.patch("/attrezzature/{detail_id}")
def update_attrezzatura(
    detail_id: str,
    payload: AttrezzaturaUpdate,
    actor: CurrentActor,
    service: Service,
) -> dict[str, Any]:
    return _update(service, actor, Attrezzatura, detail_id, payload)


@router.delete("/attrezzature/{detail_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_attrezzatura(detail_id: str, actor: CurrentActor, service: Service) -> Response:
    return _delete(service, actor, Attrezzatura, detail_id)


@router.get("/attrezzature/{detail_id}/history", response_model=list[EntityHistoryRead])
def attrezzatura_history(detail_id: str, actor: CurrentActor, service: Service) -> list[EntityHistoryRead]:
    return _history(service, actor, Attrezzatura, detail_id)


# strumenti di misura


@router.post("/strumenti", status_code=status.HTTP_201_CREATED)
def create_strumento(payload: StrumentoDiMisuraCreate, actor: CurrentActor, service: Service) -> dict[str, Any]:
    return _create(service, actor, StrumentoDiMisura, payload)


@router.get("/strumenti")
def list_strumenti(
    actor: CurrentActor,
    service: Service,
    filiale_id: str | None = None,
    categoria: str | None = None,
) -> list[dict[str, Any]]:
    return service.list(actor, StrumentoDiMisura, filiale_id=filiale_id, categoria=categoria)


@router.get("/strumenti/{detail_id}")
def get_strumento(detail_id: str, actor: CurrentActor, service: Service) -> dict[str, Any]:
    return _get(service, actor, StrumentoDiMisura, detail_id)


@router.patch("/strumenti/{detail_id}")
def update_strumento(
    detail_id: str,
    payload: StrumentoDiMisuraUpdate,
    actor: CurrentActor,
    service: Service,
) -> dict[str, Any]:
    return _update(service, actor, StrumentoDiMisura, detail_id, payload)


@router.delete("/strumenti/{detail_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_strumento(detail_id: str, actor: CurrentActor, service: Service) -> Response:
    return _delete(service, actor, StrumentoDiMisura, detail_id)


@router.get("/strumenti/{detail_id}/history", response_model=list[EntityHistoryRead])
def strumento_history(detail_id: str, actor: CurrentActor, service: Service) -> list[EntityHistoryRead]:
    return _history(service, actor, StrumentoDiMisura, detail_id)


# impianti tecnologici


@router.post("/impianti", status_code=status.HTTP_201_CREATED)
def create_impianto(payload: ImpiantoTecnologicoCreate, actor: CurrentActor, service: Service) -> dict[str, Any]:
    return _create(service, actor, ImpiantoTecnologico, payload)


@router.get("/impianti")
def list_impianti(
    actor: CurrentActor,
    service: Service,
    filiale_id: str | None = None,
    categoria: str | None = None,
    tipo_alimentazione: str | None = None,
) -> list[dict[str, Any]]:
    return service.list(
        actor,
        ImpiantoTecnologico,
        filiale_id=filiale_id,
        categoria=categoria,
        tipo_alimentazione=tipo_alimentazione,
    )


@router.get("/impianti/{detail_id}")
def get_impianto(detail_id: str, actor: CurrentActor, service: Service) -> dict[str, Any]:
    return _get(service, actor, ImpiantoTecnologico, detail_id)


@router.patch("/impianti/{detail_id}")
def update_impianto(
    detail_id: str,
    payload: ImpiantoTecnologicoUpdate,
    actor: CurrentActor,
    service: Service,
) -> dict[str, Any]:
    return _update(service, actor, ImpiantoTecnologico, detail_id, payload)


@router.delete("/impianti/{detail_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_impianto(detail_id: str, actor: CurrentActor, service: Service) -> Response:
    return _delete(service, actor, ImpiantoTecnologico, detail_id)


@router.get("/impianti/{detail_id}/history", response_model=list[EntityHistoryRead])
def impianto_history(detail_id: str, actor: CurrentActor, service: Service) -> list[EntityHistoryRead]:
    return _history(service, actor, ImpiantoTecnologico, detail_id)
