from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from app.domain.actor import Actor
from app.domain.models import RuleAction, SubjectType
from app.policies.base import BasePolicy


class ActorRulePolicy(BasePolicy):
    """Per-actor overrides are administered only by holders of ``manage``."""

    subject_type = SubjectType.ACTOR_RULE
    branch_attribute = None

    def action_for(self, operation: str) -> str:
        return RuleAction.MANAGE

    def extra_create_checks(self, actor: Actor, draft: Mapping[str, Any]) -> bool:
        # The owning user, not the draft body, fixes the tenant of the rule.
        owner_tenant = draft.get("owner_tenant_id")
        if owner_tenant != actor.tenant_id:
            return self._deny(actor, "create", "owner belongs to another tenant")
        return True

    def can_list(self, actor: Actor | None, owner: Any) -> bool:
        if actor is None:
            return self._deny(actor, "list", "anonymous")
        return self._guard("list", actor, lambda: self._check_list(actor, owner))

    def _check_list(self, actor: Actor, owner: Any) -> bool:
        if not self.same_tenant(actor, owner):
            return self._deny(actor, "list", "owner belongs to another tenant")
        if not self._resolver.build(actor).can(RuleAction.MANAGE, self.subject_type):
            return self._deny(actor, "list", "no matching rule")
        return True
