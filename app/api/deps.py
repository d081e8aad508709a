from __future__ import annotations

from collections.abc import Callable
from typing import Annotated, Any, NoReturn

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from app.domain.ability import AbilityResolver
from app.domain.actor import Actor
from app.domain.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from app.infra.auth import decode_access_token
from app.infra.tenant import set_request_context
from app.services.identity_service import IdentityService
from app.services.rule_store import SqlRuleStore

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/identity/dev-login")


def get_current_claims(
    request: Request,
    token: str = Depends(oauth2_scheme),
) -> dict[str, Any]:
    try:
        claims = decode_access_token(token)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc
    request.state.claims = claims
    set_request_context(claims.get("tenant_id"), claims.get("sub"))
    return claims


def get_identity_service() -> IdentityService:
    return IdentityService()


def get_current_actor(
    claims: Annotated[dict[str, Any], Depends(get_current_claims)],
    service: Annotated[IdentityService, Depends(get_identity_service)],
) -> Actor:
    try:
        actor = service.load_actor(claims["tenant_id"], claims["sub"])
    except AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user") from exc
    if not actor.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User disabled")
    return actor


CurrentActor = Annotated[Actor, Depends(get_current_actor)]


def require_ability(action: str, subject: str) -> Callable[[Actor], Actor]:
    def _checker(actor: CurrentActor) -> Actor:
        resolver = AbilityResolver(SqlRuleStore())
        if not resolver.can(actor, action, subject):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing ability: {action} {subject}",
            )
        return actor

    return _checker


def raise_for_service_error(exc: ServiceError) -> NoReturn:
    if isinstance(exc, ValidationError):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(exc), "errors": exc.messages},
        ) from exc
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, AuthorizationError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, AuthenticationError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    raise exc
