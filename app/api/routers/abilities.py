from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status

from app.api.deps import CurrentActor, raise_for_service_error, require_ability
from app.domain.ability import AbilityRule
from app.domain.errors import ServiceError
from app.domain.models import (
    AbilityCheckRead,
    ActorRuleCreate,
    ActorRuleRead,
    ActorRuleUpdate,
    EffectiveRuleRead,
    RuleAction,
    SubjectType,
)
from app.infra.audit import set_audit_context
from app.services.actor_rule_service import ActorRuleService

router = APIRouter(dependencies=[Depends(require_ability(RuleAction.MANAGE, SubjectType.ACTOR_RULE))])
me_router = APIRouter()


def get_actor_rule_service() -> ActorRuleService:
    return ActorRuleService()


Service = Annotated[ActorRuleService, Depends(get_actor_rule_service)]


def _effective(rule: AbilityRule) -> EffectiveRuleRead:
    return EffectiveRuleRead(
        source=rule.source.name.lower(),
        rule_id=rule.rule_id,
        action=RuleAction(rule.action),
        subject=SubjectType(rule.subject),
        condition=dict(rule.condition) if rule.condition else None,
        fields=sorted(rule.fields) if rule.fields is not None else None,
        inverted=rule.inverted,
        priority=rule.priority,
    )


@router.get("", response_model=list[ActorRuleRead])
def list_actor_rules(user_id: str, actor: CurrentActor, service: Service) -> list[ActorRuleRead]:
    try:
        return [ActorRuleRead.model_validate(item) for item in service.list_rules(actor, user_id)]
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.post("", response_model=ActorRuleRead, status_code=status.HTTP_201_CREATED)
def create_actor_rule(
    user_id: str,
    payload: ActorRuleCreate,
    request: Request,
    actor: CurrentActor,
    service: Service,
) -> ActorRuleRead:
    set_audit_context(
        request,
        action="actor_rule.create",
        resource=f"users/{user_id}/abilities",
        detail={"what": {"action": payload.action.value, "subject": payload.subject.value}},
    )
    try:
        return ActorRuleRead.model_validate(service.create_rule(actor, user_id, payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.get("/{rule_id}", response_model=ActorRuleRead)
def get_actor_rule(user_id: str, rule_id: str, actor: CurrentActor, service: Service) -> ActorRuleRead:
    try:
        return ActorRuleRead.model_validate(service.get_rule(actor, user_id, rule_id))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.patch("/{rule_id}", response_model=ActorRuleRead)
def update_actor_rule(
    user_id: str,
    rule_id: str,
    payload: ActorRuleUpdate,
    request: Request,
    actor: CurrentActor,
    service: Service,
) -> ActorRuleRead:
    set_audit_context(request, action="actor_rule.update", resource=f"users/{user_id}/abilities/{rule_id}")
    try:
        return ActorRuleRead.model_validate(service.update_rule(actor, user_id, rule_id, payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_actor_rule(
    user_id: str,
    rule_id: str,
    request: Request,
    actor: CurrentActor,
    service: Service,
) -> Response:
    set_audit_context(request, action="actor_rule.delete", resource=f"users/{user_id}/abilities/{rule_id}")
    try:
        service.delete_rule(actor, user_id, rule_id)
    except ServiceError as exc:
        raise_for_service_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@me_router.get("/me", response_model=list[EffectiveRuleRead])
def my_abilities(actor: CurrentActor, service: Service) -> list[EffectiveRuleRead]:
    try:
        ability = service.effective_ability(actor)
    except ServiceError as exc:
        raise_for_service_error(exc)
    return [_effective(rule) for rule in ability.rules]


@me_router.get("/check", response_model=AbilityCheckRead)
def check_ability(action: RuleAction, subject: SubjectType, actor: CurrentActor, service: Service) -> AbilityCheckRead:
    return AbilityCheckRead(action=action, subject=subject, allowed=service.check(actor, action, subject))
