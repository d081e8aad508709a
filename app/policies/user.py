from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from app.domain.ability import Ability
from app.domain.actor import Actor
from app.domain.models import SubjectType
from app.domain.permissions import ROLE_ADMIN
from app.policies.base import BasePolicy

logger = logging.getLogger(__name__)


def _target_is_admin(target: Any) -> bool:
    has_role = getattr(target, "has_role", None)
    return bool(has_role(ROLE_ADMIN)) if callable(has_role) else False


class UserPolicy(BasePolicy):
    """Users are checked as actors: the target of the operation is an ``Actor``."""

    subject_type = SubjectType.USER

    def instance_in_scope(self, actor: Actor, instance: Any) -> bool:
        if getattr(instance, "id", None) == actor.id:
            return True
        return super().instance_in_scope(actor, instance)

    def _check_read(self, actor: Actor, instance: Any, ability: Ability | None = None) -> bool:
        if getattr(instance, "id", None) == actor.id and self.same_tenant(actor, instance):
            return True
        return super()._check_read(actor, instance, ability)

    def extra_update_checks(self, actor: Actor, instance: Any, patch: Mapping[str, Any]) -> bool:
        if instance.id != actor.id and _target_is_admin(instance) and not actor.has_role(ROLE_ADMIN):
            return self._deny(actor, "update", "only administrators modify administrators")
        return True

    def extra_delete_checks(self, actor: Actor, instance: Any) -> bool:
        if instance.id == actor.id:
            return self._deny(actor, "delete", "users cannot delete themselves")
        if _target_is_admin(instance) and not actor.has_role(ROLE_ADMIN):
            return self._deny(actor, "delete", "only administrators delete administrators")
        return True

    def can_assign_role(self, actor: Actor | None, target: Actor, role_name: str) -> bool:
        if actor is None:
            return self._deny(actor, "update", "anonymous")
        if not actor.has_role(ROLE_ADMIN):
            if target.id == actor.id:
                return self._deny(actor, "update", "users cannot change their own roles")
            if role_name == ROLE_ADMIN or target.has_role(ROLE_ADMIN):
                return self._deny(actor, "update", "only administrators handle the administrator role")
        return self.can_update(actor, target, {})
