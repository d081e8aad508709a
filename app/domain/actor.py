from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import ClassVar

from app.domain.models import Role, RoleScope, SubjectType, User

_SCOPE_RANK = {
    RoleScope.TENANT: 0,
    RoleScope.AREA: 1,
    RoleScope.BRANCH: 2,
}


@dataclass(frozen=True)
class ActorRole:
    id: str
    name: str
    scope: RoleScope = RoleScope.BRANCH


@dataclass(frozen=True)
class Actor:
    subject_type: ClassVar[SubjectType] = SubjectType.USER

    id: str
    tenant_id: str
    username: str = ""
    is_active: bool = True
    roles: tuple[ActorRole, ...] = ()
    filiale_id: str | None = None
    managed_filiali: frozenset[str] = field(default_factory=frozenset)

    @property
    def role_ids(self) -> list[str]:
        return [role.id for role in self.roles]

    @property
    def role_names(self) -> frozenset[str]:
        return frozenset(role.name for role in self.roles)

    def has_role(self, name: str) -> bool:
        return name in self.role_names

    @property
    def scope(self) -> RoleScope:
        """Most permissive structural scope among the held roles."""
        if not self.roles:
            return RoleScope.BRANCH
        return min((role.scope for role in self.roles), key=_SCOPE_RANK.__getitem__)


def actor_from_user(user: User, roles: Iterable[Role]) -> Actor:
    return Actor(
        id=user.id,
        tenant_id=user.tenant_id,
        username=user.username,
        is_active=user.is_active,
        roles=tuple(ActorRole(id=role.id, name=role.name, scope=role.scope) for role in roles),
        filiale_id=user.filiale_id,
        managed_filiali=frozenset(user.managed_filiali or []),
    )
