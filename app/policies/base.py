"""Per-resource authorization policies.

A policy combines the ability rules of an actor with invariants the rules can
never override: tenant isolation, hierarchical (branch / area) scoping and
business field allow-lists. Every public ``can_*`` method returns a bool and
turns unexpected errors into a logged deny.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, ClassVar

from app.domain import field_scope
from app.domain.ability import Ability, AbilityResolver
from app.domain.actor import Actor
from app.domain.conditions import MISSING, resource_attribute
from app.domain.errors import RuleStoreError
from app.domain.models import RoleScope, RuleAction, SubjectType
from app.domain.permissions import POLICY_FIELD_LIMITS, primary_role_name
from app.services.rule_store import SqlRuleStore

logger = logging.getLogger(__name__)


def default_resolver() -> AbilityResolver:
    return AbilityResolver(SqlRuleStore())


class BasePolicy:
    subject_type: ClassVar[SubjectType]
    # Attribute naming the branch a resource lives in; None disables scoping.
    branch_attribute: ClassVar[str | None] = "filiale_id"
    scope_reads: ClassVar[bool] = True

    def __init__(self, resolver: AbilityResolver | None = None) -> None:
        self._resolver = resolver or default_resolver()

    def can_create(self, actor: Actor | None, draft: Mapping[str, Any]) -> bool:
        if actor is None:
            return self._deny(actor, RuleAction.CREATE, "anonymous")
        return self._guard(RuleAction.CREATE, actor, lambda: self._check_create(actor, draft))

    def can_read(self, actor: Actor | None, instance: Any, ability: Ability | None = None) -> bool:
        if actor is None:
            return self._deny(actor, RuleAction.READ, "anonymous")
        return self._guard(RuleAction.READ, actor, lambda: self._check_read(actor, instance, ability))

    def can_update(self, actor: Actor | None, instance: Any, patch: Mapping[str, Any]) -> bool:
        if actor is None:
            return self._deny(actor, RuleAction.UPDATE, "anonymous")
        return self._guard(RuleAction.UPDATE, actor, lambda: self._check_update(actor, instance, patch))

    def can_delete(self, actor: Actor | None, instance: Any) -> bool:
        if actor is None:
            return self._deny(actor, RuleAction.DELETE, "anonymous")
        return self._guard(RuleAction.DELETE, actor, lambda: self._check_delete(actor, instance))

    def ability_for(self, actor: Actor | None) -> Ability:
        """Resolve once for a batch of decisions; an unavailable store denies everything."""
        try:
            return self._resolver.build(actor)
        except RuleStoreError:
            logger.exception("rule store unavailable, denying %s batch", self.subject_type)
            return Ability((), actor=actor)

    def readable_fields(
        self,
        actor: Actor | None,
        instance: Any,
        ability: Ability | None = None,
    ) -> frozenset[str] | None:
        if ability is None:
            ability = self._resolver.build(actor)
        return field_scope.permitted_fields(ability, self.action_for(RuleAction.READ), instance)

    def shape(
        self,
        actor: Actor | None,
        instance: Any,
        data: Mapping[str, Any],
        ability: Ability | None = None,
    ) -> dict[str, Any]:
        try:
            allowed = self.readable_fields(actor, instance, ability)
        except Exception:
            logger.exception("read field scope failed for %s", self.subject_type)
            allowed = frozenset()
        return field_scope.shape(allowed, data)

    def action_for(self, operation: str) -> str:
        return operation

    def field_limit(self, actor: Actor) -> frozenset[str] | None:
        return POLICY_FIELD_LIMITS.get((self.subject_type, primary_role_name(actor.role_names) or ""))

    def in_scope(self, actor: Actor, branch_id: Any) -> bool:
        if self.branch_attribute is None:
            return True
        scope = actor.scope
        if scope == RoleScope.TENANT:
            return True
        if branch_id is None:
            return False
        if scope == RoleScope.AREA:
            return branch_id in actor.managed_filiali
        return actor.filiale_id is not None and branch_id == actor.filiale_id

    def instance_in_scope(self, actor: Actor, instance: Any) -> bool:
        return self.in_scope(actor, self._branch_of(instance))

    @staticmethod
    def same_tenant(actor: Actor, resource: Any) -> bool:
        tenant_id = resource_attribute(resource, "tenant_id")
        return isinstance(tenant_id, str) and tenant_id == actor.tenant_id

    def extra_create_checks(self, actor: Actor, draft: Mapping[str, Any]) -> bool:
        return True

    def extra_read_checks(self, actor: Actor, instance: Any) -> bool:
        return True

    def extra_update_checks(self, actor: Actor, instance: Any, patch: Mapping[str, Any]) -> bool:
        return True

    def extra_delete_checks(self, actor: Actor, instance: Any) -> bool:
        return True

    def _guard(self, operation: str, actor: Actor, check: Callable[[], bool]) -> bool:
        try:
            return bool(check())
        except Exception:
            logger.exception("%s.%s failed for actor %s, denying", type(self).__name__, operation, actor.id)
            return False

    def _deny(self, actor: Actor | None, operation: str, reason: str) -> bool:
        logger.warning(
            "deny %s %s for actor %s: %s",
            operation,
            self.subject_type,
            actor.id if actor is not None else None,
            reason,
        )
        return False

    def _branch_of(self, resource: Any) -> Any:
        if self.branch_attribute is None:
            return None
        value = resource_attribute(resource, self.branch_attribute)
        return None if value is MISSING else value

    def _scoped_access(
        self,
        actor: Actor,
        instance: Any,
        operation: str,
        ability: Ability | None = None,
    ) -> Ability | None:
        if not self.same_tenant(actor, instance):
            self._deny(actor, operation, "resource belongs to another tenant")
            return None
        needs_scope = operation != RuleAction.READ or self.scope_reads
        if needs_scope and not self.instance_in_scope(actor, instance):
            self._deny(actor, operation, "outside the actor's branches")
            return None
        if ability is None:
            ability = self._resolver.build(actor)
        if not ability.can(self.action_for(operation), instance):
            self._deny(actor, operation, "no matching rule")
            return None
        return ability

    def _check_create(self, actor: Actor, draft: Mapping[str, Any]) -> bool:
        ability = self._resolver.build(actor)
        if not ability.can(self.action_for(RuleAction.CREATE), self.subject_type):
            return self._deny(actor, RuleAction.CREATE, "no matching rule")
        draft_tenant = draft.get("tenant_id")
        if draft_tenant is not None and draft_tenant != actor.tenant_id:
            return self._deny(actor, RuleAction.CREATE, "draft belongs to another tenant")
        if not self.in_scope(actor, self._branch_of(draft)):
            return self._deny(actor, RuleAction.CREATE, "outside the actor's branches")
        return self.extra_create_checks(actor, draft)

    def _check_read(self, actor: Actor, instance: Any, ability: Ability | None = None) -> bool:
        if self._scoped_access(actor, instance, RuleAction.READ, ability) is None:
            return False
        return self.extra_read_checks(actor, instance)

    def _check_update(self, actor: Actor, instance: Any, patch: Mapping[str, Any]) -> bool:
        ability = self._scoped_access(actor, instance, RuleAction.UPDATE)
        if ability is None:
            return False
        if self.branch_attribute is not None and self.branch_attribute in patch:
            if not self.in_scope(actor, patch[self.branch_attribute]):
                return self._deny(actor, RuleAction.UPDATE, "target branch outside the actor's branches")
        allowed = field_scope.permitted_fields(ability, self.action_for(RuleAction.UPDATE), instance)
        allowed = field_scope.narrow(allowed, self.field_limit(actor))
        if not field_scope.patch_admitted(allowed, patch):
            rejected = field_scope.rejected_fields(allowed, patch)
            return self._deny(actor, RuleAction.UPDATE, f"fields not allowed: {', '.join(rejected)}")
        return self.extra_update_checks(actor, instance, patch)

    def _check_delete(self, actor: Actor, instance: Any) -> bool:
        if self._scoped_access(actor, instance, RuleAction.DELETE) is None:
            return False
        return self.extra_delete_checks(actor, instance)
