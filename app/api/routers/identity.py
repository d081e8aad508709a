from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.api.deps import CurrentActor, get_identity_service, raise_for_service_error, require_ability
from app.domain.errors import ServiceError
from app.domain.models import (
    BootstrapAdminRequest,
    DevLoginRequest,
    RoleCreate,
    RoleRead,
    RoleRuleCreate,
    RoleRuleRead,
    RoleUpdate,
    RuleAction,
    SubjectType,
    TenantCreate,
    TenantRead,
    TenantUpdate,
    TokenResponse,
    UserCreate,
    UserRead,
    UserUpdate,
)
from app.infra.auth import create_access_token
from app.services.identity_service import IdentityService

router = APIRouter()

Service = Annotated[IdentityService, Depends(get_identity_service)]
ManageRules = Depends(require_ability(RuleAction.MANAGE, SubjectType.ACTOR_RULE))


@router.post("/tenants", response_model=TenantRead, status_code=status.HTTP_201_CREATED)
def create_tenant(payload: TenantCreate, service: Service) -> TenantRead:
    try:
        return TenantRead.model_validate(service.create_tenant(payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.get("/tenants", response_model=list[TenantRead])
def list_tenants(actor: CurrentActor, service: Service) -> list[TenantRead]:
    try:
        return [TenantRead.model_validate(service.get_tenant(actor.tenant_id))]
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.get("/tenants/{tenant_id}", response_model=TenantRead)
def get_tenant(tenant_id: str, actor: CurrentActor, service: Service) -> TenantRead:
    if actor.tenant_id != tenant_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="tenant not found")
    try:
        return TenantRead.model_validate(service.get_tenant(tenant_id))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.patch("/tenants/{tenant_id}", response_model=TenantRead)
def update_tenant(tenant_id: str, payload: TenantUpdate, actor: CurrentActor, service: Service) -> TenantRead:
    try:
        return TenantRead.model_validate(service.update_tenant(actor, tenant_id, payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.post("/bootstrap-admin", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def bootstrap_admin(payload: BootstrapAdminRequest, service: Service) -> UserRead:
    try:
        return UserRead.model_validate(service.bootstrap_admin(payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.post("/dev-login", response_model=TokenResponse)
def dev_login(payload: DevLoginRequest, service: Service) -> TokenResponse:
    try:
        user = service.dev_login(payload.tenant_id, payload.username, payload.password)
    except ServiceError as exc:
        raise_for_service_error(exc)
    return TokenResponse(access_token=create_access_token(user_id=user.id, tenant_id=user.tenant_id))


@router.get("/me", response_model=UserRead)
def me(actor: CurrentActor, service: Service) -> UserRead:
    try:
        return UserRead.model_validate(service.get_user(actor, actor.id))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.post("/users", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, actor: CurrentActor, service: Service) -> UserRead:
    try:
        return UserRead.model_validate(service.create_user(actor, payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.get("/users", response_model=list[UserRead])
def list_users(actor: CurrentActor, service: Service) -> list[UserRead]:
    return [UserRead.model_validate(item) for item in service.list_users(actor)]


@router.get("/users/{user_id}", response_model=UserRead)
def get_user(user_id: str, actor: CurrentActor, service: Service) -> UserRead:
    try:
        return UserRead.model_validate(service.get_user(actor, user_id))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.patch("/users/{user_id}", response_model=UserRead)
def update_user(user_id: str, payload: UserUpdate, actor: CurrentActor, service: Service) -> UserRead:
    try:
        return UserRead.model_validate(service.update_user(actor, user_id, payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: str, actor: CurrentActor, service: Service) -> Response:
    try:
        service.delete_user(actor, user_id)
    except ServiceError as exc:
        raise_for_service_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/users/{user_id}/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def bind_user_role(user_id: str, role_id: str, actor: CurrentActor, service: Service) -> Response:
    try:
        service.bind_user_role(actor, user_id, role_id)
    except ServiceError as exc:
        raise_for_service_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/users/{user_id}/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def unbind_user_role(user_id: str, role_id: str, actor: CurrentActor, service: Service) -> Response:
    try:
        service.unbind_user_role(actor, user_id, role_id)
    except ServiceError as exc:
        raise_for_service_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/roles", response_model=RoleRead, status_code=status.HTTP_201_CREATED)
def create_role(payload: RoleCreate, actor: CurrentActor, service: Service) -> RoleRead:
    try:
        return RoleRead.model_validate(service.create_role(actor, payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.get("/roles", response_model=list[RoleRead])
def list_roles(actor: CurrentActor, service: Service) -> list[RoleRead]:
    return [RoleRead.model_validate(item) for item in service.list_roles(actor)]


@router.get("/roles/{role_id}", response_model=RoleRead)
def get_role(role_id: str, actor: CurrentActor, service: Service) -> RoleRead:
    try:
        return RoleRead.model_validate(service.get_role(actor, role_id))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.patch("/roles/{role_id}", response_model=RoleRead)
def update_role(role_id: str, payload: RoleUpdate, actor: CurrentActor, service: Service) -> RoleRead:
    try:
        return RoleRead.model_validate(service.update_role(actor, role_id, payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(role_id: str, actor: CurrentActor, service: Service) -> Response:
    try:
        service.delete_role(actor, role_id)
    except ServiceError as exc:
        raise_for_service_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/roles/{role_id}/rules", response_model=list[RoleRuleRead], dependencies=[ManageRules])
def list_role_rules(role_id: str, actor: CurrentActor, service: Service) -> list[RoleRuleRead]:
    try:
        return [RoleRuleRead.model_validate(item) for item in service.list_role_rules(actor, role_id)]
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.post(
    "/roles/{role_id}/rules",
    response_model=RoleRuleRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[ManageRules],
)
def add_role_rule(role_id: str, payload: RoleRuleCreate, actor: CurrentActor, service: Service) -> RoleRuleRead:
    try:
        return RoleRuleRead.model_validate(service.add_role_rule(actor, role_id, payload))
    except ServiceError as exc:
        raise_for_service_error(exc)


@router.delete(
    "/roles/{role_id}/rules/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[ManageRules],
)
def remove_role_rule(role_id: str, rule_id: str, actor: CurrentActor, service: Service) -> Response:
    try:
        service.remove_role_rule(actor, role_id, rule_id)
    except ServiceError as exc:
        raise_for_service_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
