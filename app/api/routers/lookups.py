from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from app.api.deps import CurrentActor, raise_for_service_error, require_ability
from app.domain.actor import Actor
from app.domain.errors import ServiceError
from app.domain.models import (
    Fornitore,
    FornitoreCreate,
    FornitoreRead,
    FornitoreUpdate,
    LookupRead,
    RuleAction,
    StatoCreate,
    StatoDotazione,
    StatoIntervento,
    StatoUpdate,
    SubjectType,
    TipoPossesso,
    TipoPossessoCreate,
    TipoPossessoUpdate,
)
from app.services.lookup_service import LookupService

router = APIRouter()


def get_lookup_service() -> LookupService:
    return LookupService()


Service = Annotated[LookupService, Depends(get_lookup_service)]
Reader = Annotated[Actor, Depends(require_ability(RuleAction.READ, SubjectType.ASSET))]
Manager = Annotated[Actor, Depends(require_ability(RuleAction.MANAGE, SubjectType.ASSET))]


def _create(service: LookupService, actor: Actor, model: Any, payload: BaseModel) -> Any:
    try:
        return service.create(actor, model, payload)
    except ServiceError as exc:
        raise_for_service_error(exc)


def _update(service: LookupService, actor: Actor, model: Any, lookup_id: str, payload: BaseModel) -> Any:
    try:
        return service.update(actor, model, lookup_id, payload)
    except ServiceError as exc:
        raise_for_service_error(exc)


def _delete(service: LookupService, actor: Actor, model: Any, lookup_id: str) -> Response:
    try:
        service.delete(actor, model, lookup_id)
    except ServiceError as exc:
        raise_for_service_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# stati dotazione


@router.get("/stati-dotazione", response_model=list[LookupRead])
def list_stati_dotazione(actor: Reader, service: Service, active: bool | None = None) -> list[LookupRead]:
    return [LookupRead.model_validate(row) for row in service.list(actor, StatoDotazione, active=active)]


@router.post("/stati-dotazione", response_model=LookupRead, status_code=status.HTTP_201_CREATED)
def create_stato_dotazione(payload: StatoCreate, actor: Manager, service: Service) -> LookupRead:
    return LookupRead.model_validate(_create(service, actor, StatoDotazione, payload))


@router.patch("/stati-dotazione/{lookup_id}", response_model=LookupRead)
def update_stato_dotazione(lookup_id: str, payload: StatoUpdate, actor: Manager, service: Service) -> LookupRead:
    return LookupRead.model_validate(_update(service, actor, StatoDotazione, lookup_id, payload))


@router.delete("/stati-dotazione/{lookup_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_stato_dotazione(lookup_id: str, actor: Manager, service: Service) -> Response:
    return _delete(service, actor, StatoDotazione, lookup_id)


# tipi possesso


@router.get("/tipi-possesso", response_model=list[LookupRead])
def list_tipi_possesso(actor: Reader, service: Service, active: bool | None = None) -> list[LookupRead]:
    return [LookupRead.model_validate(row) for row in service.list(actor, TipoPossesso, active=active)]


@router.post("/tipi-possesso", response_model=LookupRead, status_code=status.HTTP_201_CREATED)
def create_tipo_possesso(payload: TipoPossessoCreate, actor: Manager, service: Service) -> LookupRead:
    return LookupRead.model_validate(_create(service, actor, TipoPossesso, payload))


@router.patch("/tipi-possesso/{lookup_id}", response_model=LookupRead)
def update_tipo_possesso(
    lookup_id: str,
    payload: TipoPossessoUpdate,
    actor: Manager,
    service: Service,
) -> LookupRead:
    return LookupRead.model_validate(_update(service, actor, TipoPossesso, lookup_id, payload))


@router.delete("/tipi-possesso/{lookup_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tipo_possesso(lookup_id: str, actor: Manager, service: Service) -> Response:
    return _delete(service, actor, TipoPossesso, lookup_id)


# stati interventi


@router.get("/stati-interventi", response_model=list[LookupRead])
def list_stati_interventi(actor: Reader, service: Service, active: bool | None = None) -> list[LookupRead]:
    return [LookupRead.model_validate(row) for row in service.list(actor, StatoIntervento, active=active)]


@router.post("/stati-interventi", response_model=LookupRead, status_code=status.HTTP_201_CREATED)
def create_stato_intervento(payload: StatoCreate, actor: Manager, service: Service) -> LookupRead:
    return LookupRead.model_validate(_create(service, actor, StatoIntervento, payload))


@router.patch("/stati-interventi/{lookup_id}", response_model=LookupRead)
def update_stato_intervento(lookup_id: str, payload: StatoUpdate, actor: Manager, service: Service) -> LookupRead:
    return LookupRead.model_validate(_update(service, actor, StatoIntervento, lookup_id, payload))


@router.delete("/stati-interventi/{lookup_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_stato_intervento(lookup_id: str, actor: Manager, service: Service) -> Response:
    return _delete(service, actor, StatoIntervento, lookup_id)


# fornitori


@router.get("/fornitori", response_model=list[FornitoreRead])
def list_fornitori(actor: Reader, service: Service, active: bool | None = None) -> list[FornitoreRead]:
    return [FornitoreRead.model_validate(row) for row in service.list(actor, Fornitore, active=active)]


@router.post("/fornitori", response_model=FornitoreRead, status_code=status.HTTP_201_CREATED)
def create_fornitore(payload: FornitoreCreate, actor: Manager, service: Service) -> FornitoreRead:
    return FornitoreRead.model_validate(_create(service, actor, Fornitore, payload))


@router.patch("/fornitori/{lookup_id}", response_model=FornitoreRead)
def update_fornitore(lookup_id: str, payload: FornitoreUpdate, actor: Manager, service: Service) -> FornitoreRead:
    return FornitoreRead.model_validate(_update(service, actor, Fornitore, lookup_id, payload))


@router.delete("/fornitori/{lookup_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_fornitore(lookup_id: str, actor: Manager, service: Service) -> Response:
    return _delete(service, actor, Fornitore, lookup_id)
