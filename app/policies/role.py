from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from app.domain.actor import Actor
from app.domain.models import SubjectType
from app.domain.permissions import ROLE_ADMIN, SYSTEM_ROLE_NAMES
from app.policies.base import BasePolicy

RULES_PATCH_KEY = "rules"


class RolePolicy(BasePolicy):
    subject_type = SubjectType.ROLE
    branch_attribute = None

    def extra_create_checks(self, actor: Actor, draft: Mapping[str, Any]) -> bool:
        if not actor.has_role(ROLE_ADMIN):
            return self._deny(actor, "create", "role management is reserved to administrators")
        if draft.get("name") in SYSTEM_ROLE_NAMES:
            return self._deny(actor, "create", "system role names are reserved")
        return True

    def extra_update_checks(self, actor: Actor, instance: Any, patch: Mapping[str, Any]) -> bool:
        if not actor.has_role(ROLE_ADMIN):
            return self._deny(actor, "update", "role management is reserved to administrators")
        if instance.name == ROLE_ADMIN and RULES_PATCH_KEY in patch:
            return self._deny(actor, "update", "the administrator role's rules are fixed")
        if instance.is_system and ("name" in patch or "scope" in patch):
            return self._deny(actor, "update", "system roles keep their name and scope")
        return True

    def extra_delete_checks(self, actor: Actor, instance: Any) -> bool:
        if not actor.has_role(ROLE_ADMIN):
            return self._deny(actor, "delete", "role management is reserved to administrators")
        if instance.is_system or instance.name in SYSTEM_ROLE_NAMES:
            return self._deny(actor, "delete", "system roles cannot be deleted")
        return True
