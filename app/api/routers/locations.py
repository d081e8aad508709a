from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Response, status

from app.api.deps import CurrentActor, raise_for_service_error
from app.domain.errors import ServiceError
from app.domain.models import (
    Edificio,
    EdificioCreate,
    EdificioUpdate,
    EntityHistoryRead,
    Filiale,
    FilialeCreate,
    FilialeUpdate,
    Locale,
    LocaleCreate,
    LocaleUpdate,
    Piano,
    PianoCreate,
    PianoUpdate,
)
from app.services.location_service import LocationService

router = APIRouter()


def get_location_service() -> LocationService:
    return LocationService()


Service = Annotated[LocationService, Depends(get_location_service)]
Shaped = dict[str, Any]


def _history(service: LocationService, actor: Any, model: Any, entity_id: str) -> list[EntityHistoryRead]:
    try:
        return [EntityHistoryRead.model_validate(item) for item in service.history(actor, model, entity_id)]
    except ServiceError as exc:
        raise_for_service_error(exc)


# filiali


@router.post("/filiali", status_code=status.HTTP_201_CREATED)
def create_filiale(payload: FilialeCreate, actor: CurrentActor, service: Service) -> Shaped:
    try:
        return service.shape_filiale(actor, service.create_filiale(actor, payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.get("/filiali")
def list_filiali(actor: CurrentActor, service: Service) -> list[Shaped]:
    return service.list_filiali(actor)


@router.get("/filiali/{filiale_id}")
def get_filiale(filiale_id: str, actor: CurrentActor, service: Service) -> Shaped:
    try:
        return service.shape_filiale(actor, service.get_filiale(actor, filiale_id))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.patch("/filiali/{filiale_id}")
def update_filiale(filiale_id: str, payload: FilialeUpdate, actor: CurrentActor, service: Service) -> Shaped:
    try:
        return service.shape_filiale(actor, service.update_filiale(actor, filiale_id, payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.delete("/filiali/{filiale_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_filiale(filiale_id: str, actor: CurrentActor, service: Service) -> Response:
    try:
        service.delete_filiale(actor, filiale_id)
    except ServiceError as exc:
        raise_for_service_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/filiali/{filiale_id}/history", response_model=list[EntityHistoryRead])
def filiale_history(filiale_id: str, actor: CurrentActor, service: Service) -> list[EntityHistoryRead]:
    return _history(service, actor, Filiale, filiale_id)


# edifici


@router.post("/edifici", status_code=status.HTTP_201_CREATED)
def create_edificio(payload: EdificioCreate, actor: CurrentActor, service: Service) -> Shaped:
    try:
        return service.shape_edificio(actor, service.create_edificio(actor, payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.get("/edifici")
def list_edifici(
    actor: CurrentActor,
    service: Service,
    filiale_id: str | None = None,
) -> list[Shaped]:
    return service.list_edifici(actor, filiale_id=filiale_id)


@router.get("/edifici/{edificio_id}")
def get_edificio(edificio_id: str, actor: CurrentActor, service: Service) -> Shaped:
    try:
        return service.shape_edificio(actor, service.get_edificio(actor, edificio_id))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.patch("/edifici/{edificio_id}")
def update_edificio(edificio_id: str, payload: EdificioUpdate, actor: CurrentActor, service: Service) -> Shaped:
    try:
        return service.shape_edificio(actor, service.update_edificio(actor, edificio_id, payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.delete("/edifici/{edificio_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_edificio(edificio_id: str, actor: CurrentActor, service: Service) -> Response:
    try:
        service.delete_edificio(actor, edificio_id)
    except ServiceError as exc:
        raise_for_service_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/edifici/{edificio_id}/history", response_model=list[EntityHistoryRead])
def edificio_history(edificio_id: str, actor: CurrentActor, service: Service) -> list[EntityHistoryRead]:
    return _history(service, actor, Edificio, edificio_id)


# piani


@router.post("/piani", status_code=status.HTTP_201_CREATED)
def create_piano(payload: PianoCreate, actor: CurrentActor, service: Service) -> Shaped:
    try:
        return service.shape_piano(actor, service.create_piano(actor, payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.get("/piani")
def list_piani(
    actor: CurrentActor,
    service: Service,
    edificio_id: str | None = None,
) -> list[Shaped]:
    return service.list_piani(actor, edificio_id=edificio_id)


@router.get("/piani/{piano_id}")
def get_piano(piano_id: str, actor: CurrentActor, service: Service) -> Shaped:
    try:
        return service.shape_piano(actor, service.get_piano(actor, piano_id))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.patch("/piani/{piano_id}")
def update_piano(piano_id: str, payload: PianoUpdate, actor: CurrentActor, service: Service) -> Shaped:
    try:
        return service.shape_piano(actor, service.update_piano(actor, piano_id, payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.delete("/piani/{piano_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_piano(piano_id: str, actor: CurrentActor, service: Service) -> Response:
    try:
        service.delete_piano(actor, piano_id)
    except ServiceError as exc:
        raise_for_service_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/piani/{piano_id}/history", response_model=list[EntityHistoryRead])
def piano_history(piano_id: str, actor: CurrentActor, service: Service) -> list[EntityHistoryRead]:
    return _history(service, actor, Piano, piano_id)


# locali


@router.post("/locali", status_code=status.HTTP_201_CREATED)
def create_locale(payload: LocaleCreate, actor: CurrentActor, service: Service) -> Shaped:
    try:
        return service.shape_locale(actor, service.create_locale(actor, payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.get("/locali")
def list_locali(
    actor: CurrentActor,
    service: Service,
    piano_id: str | None = None,
) -> list[Shaped]:
    return service.list_locali(actor, piano_id=piano_id)


@router.get("/locali/{locale_id}")
def get_locale(locale_id: str, actor: CurrentActor, service: Service) -> Shaped:
    try:
        return service.shape_locale(actor, service.get_locale(actor, locale_id))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.patch("/locali/{locale_id}")
def update_locale(locale_id: str, payload: LocaleUpdate, actor: CurrentActor, service: Service) -> Shaped:
    try:
        return service.shape_locale(actor, service.update_locale(actor, locale_id, payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.delete("/locali/{locale_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_locale(locale_id: str, actor: CurrentActor, service: Service) -> Response:
    try:
        service.delete_locale(actor, locale_id)
    except ServiceError as exc:
        raise_for_service_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/locali/{locale_id}/history", response_model=list[EntityHistoryRead])
def locale_history(locale_id: str, actor: CurrentActor, service: Service) -> list[EntityHistoryRead]:
    return _history(service, actor, Locale, locale_id)
