from __future__ import annotations

import logging
from typing import Any

from sqlmodel import Session

from app.domain.ability import Ability, AbilityResolver, as_utc
from app.domain.actor import Actor
from app.domain.conditions import validate_condition
from app.domain.errors import AuthorizationError, NotFoundError, ValidationError
from app.domain.models import ActorRule, ActorRuleCreate, ActorRuleUpdate, User, now_utc
from app.infra.db import get_engine
from app.policies.actor_rule import ActorRulePolicy
from app.services.rule_store import SqlRuleStore

logger = logging.getLogger(__name__)

REQUIRED_RULE_FIELDS = ("action", "subject", "inverted", "priority")


def _validate(condition: Any, fields: list[str] | None, expires_at: Any) -> dict[str, Any]:
    errors = validate_condition(condition)
    if fields is not None and not all(isinstance(item, str) and item for item in fields):
        errors.append("fields must be non-empty attribute names")
    normalized: dict[str, Any] = {}
    if expires_at is not None:
        expires_at = as_utc(expires_at)
        if expires_at <= now_utc():
            errors.append("expires_at must be in the future")
        normalized["expires_at"] = expires_at
    if errors:
        raise ValidationError("invalid actor rule", errors)
    return normalized


class ActorRuleService:
    def __init__(self, store: SqlRuleStore | None = None, policy: ActorRulePolicy | None = None) -> None:
        self._store = store or SqlRuleStore()
        self._resolver = AbilityResolver(self._store)
        self._policy = policy or ActorRulePolicy(self._resolver)

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_owner(self, actor: Actor, user_id: str) -> User:
        with self._session() as session:
            owner = session.get(User, user_id)
        if owner is None or owner.tenant_id != actor.tenant_id:
            raise NotFoundError("user not found")
        return owner

    def _get_owned_rule(self, actor: Actor, user_id: str, rule_id: str) -> ActorRule:
        self._get_owner(actor, user_id)
        rule = self._store.get_actor_rule(rule_id)
        if rule.user_id != user_id or rule.tenant_id != actor.tenant_id:
            raise NotFoundError("actor rule not found")
        return rule

    def list_rules(self, actor: Actor, user_id: str) -> list[ActorRule]:
        owner = self._get_owner(actor, user_id)
        if not self._policy.can_list(actor, owner):
            raise AuthorizationError("not allowed to read actor rules")
        return self._store.list_actor_rules(actor.tenant_id, user_id)

    def get_rule(self, actor: Actor, user_id: str, rule_id: str) -> ActorRule:
        rule = self._get_owned_rule(actor, user_id, rule_id)
        if not self._policy.can_read(actor, rule):
            raise AuthorizationError("not allowed to read this actor rule")
        return rule

    def create_rule(self, actor: Actor, user_id: str, payload: ActorRuleCreate) -> ActorRule:
        owner = self._get_owner(actor, user_id)
        data = payload.model_dump()
        data.update(_validate(payload.condition, payload.fields, payload.expires_at))
        draft = {**data, "tenant_id": owner.tenant_id, "owner_tenant_id": owner.tenant_id}
        if not self._policy.can_create(actor, draft):
            raise AuthorizationError("not allowed to create actor rules")
        rule = self._store.create_actor_rule(user_id, {**data, "created_by": actor.id})
        logger.info(
            "actor %s granted %s%s on %s to user %s (rule %s)",
            actor.id,
            "not " if rule.inverted else "",
            rule.action,
            rule.subject,
            user_id,
            rule.id,
        )
        return rule

    def update_rule(self, actor: Actor, user_id: str, rule_id: str, payload: ActorRuleUpdate) -> ActorRule:
        rule = self._get_owned_rule(actor, user_id, rule_id)
        patch = {
            key: value
            for key, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or key not in REQUIRED_RULE_FIELDS
        }
        if "expires_at" in patch or "condition" in patch or "fields" in patch:
            patch.update(_validate(patch.get("condition"), patch.get("fields"), patch.get("expires_at")))
        if not self._policy.can_update(actor, rule, patch):
            raise AuthorizationError("not allowed to update this actor rule")
        updated = self._store.update_actor_rule(rule_id, {**patch, "updated_by": actor.id})
        logger.info("actor %s updated actor rule %s of user %s", actor.id, rule_id, user_id)
        return updated

    def delete_rule(self, actor: Actor, user_id: str, rule_id: str) -> None:
        rule = self._get_owned_rule(actor, user_id, rule_id)
        if not self._policy.can_delete(actor, rule):
            raise AuthorizationError("not allowed to delete this actor rule")
        self._store.tombstone_actor_rule(rule_id)
        logger.info("actor %s tombstoned actor rule %s of user %s", actor.id, rule_id, user_id)

    # introspection

    def effective_ability(self, actor: Actor) -> Ability:
        return self._resolver.build(actor)

    def check(self, actor: Actor, action: str, subject: str) -> bool:
        return self._resolver.can(actor, action, subject)
