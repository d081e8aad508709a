"""Ability resolution: merges role rules and per-actor overrides into one
ordered rule set and answers ``can(action, subject)`` against it.

Ordering is by priority (highest first); at equal priority actor overrides
come before role rules. The first rule matching an action/subject pair wins,
an inverted rule denies and no match at all denies.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import IntEnum
from typing import Any, Protocol

from app.domain import conditions
from app.domain.actor import Actor
from app.domain.errors import RuleStoreError
from app.domain.models import ActorRule, RoleRule, RuleAction, SubjectType, now_utc
from app.domain.permissions import GUEST_RULES

logger = logging.getLogger(__name__)

ROLE_RULE_PRIORITY = 1
DEFAULT_ACTOR_RULE_PRIORITY = 10


class RuleSource(IntEnum):
    # Lower sorts first at equal priority.
    ACTOR = 0
    ROLE = 1
    BUILTIN = 2


class RuleStore(Protocol):
    def fetch_role_rules(self, role_ids: Sequence[str]) -> list[RoleRule]: ...

    def fetch_actor_rules(self, actor_id: str, as_of: datetime) -> list[ActorRule]: ...

    def create_actor_rule(self, actor_id: str, rule: Mapping[str, Any]) -> ActorRule: ...

    def update_actor_rule(self, rule_id: str, patch: Mapping[str, Any]) -> ActorRule: ...

    def tombstone_actor_rule(self, rule_id: str) -> None: ...


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass(frozen=True)
class AbilityRule:
    action: str
    subject: str
    condition: Mapping[str, Any] | None = None
    fields: frozenset[str] | None = None
    inverted: bool = False
    priority: int = ROLE_RULE_PRIORITY
    source: RuleSource = RuleSource.ROLE
    rule_id: str | None = None

    @property
    def identity(self) -> tuple[str, str, str, bool]:
        condition_key = json.dumps(self.condition, sort_keys=True, default=str) if self.condition else ""
        return (self.action, self.subject, condition_key, self.inverted)

    def applies_to(self, action: str, subject_type: str) -> bool:
        if self.subject != subject_type and self.subject != SubjectType.ALL:
            return False
        return self.action == action or self.action == RuleAction.MANAGE

    def matches_resource(self, resource: Any) -> bool:
        if resource is None:
            # Subject-type checks skip conditional denies, a conditional deny
            # only ever removes specific instances.
            return not (self.inverted and self.condition)
        return conditions.matches(self.condition, resource)


def _fields(raw: Iterable[str] | None) -> frozenset[str] | None:
    if raw is None:
        return None
    return frozenset(raw)


def rule_from_role_rule(row: RoleRule) -> AbilityRule:
    return AbilityRule(
        action=str(row.action),
        subject=str(row.subject),
        condition=row.condition or None,
        fields=_fields(row.fields),
        inverted=bool(row.inverted),
        priority=ROLE_RULE_PRIORITY,
        source=RuleSource.ROLE,
        rule_id=row.id,
    )


def rule_from_actor_rule(row: ActorRule) -> AbilityRule:
    return AbilityRule(
        action=str(row.action),
        subject=str(row.subject),
        condition=row.condition or None,
        fields=_fields(row.fields),
        inverted=bool(row.inverted),
        priority=row.priority if row.priority is not None else DEFAULT_ACTOR_RULE_PRIORITY,
        source=RuleSource.ACTOR,
        rule_id=row.id,
    )


def subject_type_of(subject: Any) -> str:
    if isinstance(subject, str):
        return subject
    tag = getattr(type(subject), "subject_type", None)
    if tag is None and isinstance(subject, Mapping):
        tag = subject.get("subject_type")
    if tag is None:
        raise TypeError(f"{type(subject).__name__} does not declare a subject type")
    return str(tag)


def sort_rules(rules: Iterable[AbilityRule]) -> tuple[AbilityRule, ...]:
    return tuple(sorted(rules, key=lambda rule: (-rule.priority, rule.source)))


class Ability:
    def __init__(self, rules: Iterable[AbilityRule], actor: Actor | None = None) -> None:
        self.actor = actor
        self.rules = sort_rules(rules)

    def rules_for(self, action: str, subject: Any) -> list[AbilityRule]:
        subject_type = subject_type_of(subject)
        resource = None if isinstance(subject, str) else subject
        return [
            rule
            for rule in self.rules
            if rule.applies_to(action, subject_type) and rule.matches_resource(resource)
        ]

    def relevant_rule_for(self, action: str, subject: Any) -> AbilityRule | None:
        matching = self.rules_for(action, subject)
        return matching[0] if matching else None

    def can(self, action: str, subject: Any) -> bool:
        rule = self.relevant_rule_for(action, subject)
        return rule is not None and not rule.inverted

    def cannot(self, action: str, subject: Any) -> bool:
        return not self.can(action, subject)


def guest_ability() -> Ability:
    return Ability(
        AbilityRule(
            action=str(item["action"]),
            subject=str(item["subject"]),
            source=RuleSource.BUILTIN,
        )
        for item in GUEST_RULES
    )


class AbilityResolver:
    def __init__(self, store: RuleStore, clock: Callable[[], datetime] = now_utc) -> None:
        self._store = store
        self._clock = clock

    def _role_rules(self, actor: Actor) -> list[AbilityRule]:
        if not actor.roles:
            return []
        seen: set[tuple[str, str, str, bool]] = set()
        rules: list[AbilityRule] = []
        for row in self._store.fetch_role_rules(actor.role_ids):
            rule = rule_from_role_rule(row)
            if rule.identity in seen:
                continue
            seen.add(rule.identity)
            rules.append(rule)
        return rules

    def _actor_rules(self, actor: Actor, as_of: datetime) -> list[AbilityRule]:
        rules: list[AbilityRule] = []
        for row in self._store.fetch_actor_rules(actor.id, as_of):
            if row.deleted_at is not None:
                continue
            if row.expires_at is not None and as_utc(row.expires_at) <= as_of:
                continue
            if row.tenant_id != actor.tenant_id:
                logger.warning("ignoring actor rule %s: tenant mismatch for actor %s", row.id, actor.id)
                continue
            rules.append(rule_from_actor_rule(row))
        return rules

    def build(self, actor: Actor | None) -> Ability:
        if actor is None or not actor.is_active:
            return guest_ability()
        as_of = as_utc(self._clock())
        role_rules = self._role_rules(actor)
        actor_rules = self._actor_rules(actor, as_of)
        logger.debug(
            "built ability for actor %s: %d role rules, %d actor rules",
            actor.id,
            len(role_rules),
            len(actor_rules),
        )
        return Ability([*actor_rules, *role_rules], actor=actor)

    def can(self, actor: Actor | None, action: str, subject: Any) -> bool:
        try:
            ability = self.build(actor)
        except RuleStoreError:
            logger.exception("rule store unavailable, denying %s on %s", action, subject)
            return False
        return ability.can(action, subject)

    def cannot(self, actor: Actor | None, action: str, subject: Any) -> bool:
        return not self.can(actor, action, subject)
