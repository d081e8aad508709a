from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from app.domain.ability import AbilityResolver, AbilityRule, RuleSource, guest_ability, sort_rules
from app.domain.actor import Actor, ActorRole
from app.domain.errors import RuleStoreError
from app.domain.models import ActorRule, Asset, RoleRule, RoleScope, RuleAction, SubjectType

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class InMemoryRuleStore:
    def __init__(self, role_rules: list[RoleRule] | None = None, actor_rules: list[ActorRule] | None = None) -> None:
        self.role_rules = list(role_rules or [])
        self.actor_rules = list(actor_rules or [])
        self.fetches = 0

    def fetch_role_rules(self, role_ids: Sequence[str]) -> list[RoleRule]:
        self.fetches += 1
        return [row for row in self.role_rules if row.role_id in role_ids]

    def fetch_actor_rules(self, actor_id: str, as_of: datetime) -> list[ActorRule]:
        # Returns everything, so the resolver's own expiry filter is exercised.
        return [row for row in self.actor_rules if row.user_id == actor_id]

    def create_actor_rule(self, actor_id: str, rule: Mapping[str, Any]) -> ActorRule:
        row = ActorRule(user_id=actor_id, tenant_id="t-1", **rule)
        self.actor_rules.append(row)
        return row

    def update_actor_rule(self, rule_id: str, patch: Mapping[str, Any]) -> ActorRule:
        raise NotImplementedError

    def tombstone_actor_rule(self, rule_id: str) -> None:
        raise NotImplementedError


class BrokenRuleStore(InMemoryRuleStore):
    def fetch_role_rules(self, role_ids: Sequence[str]) -> list[RoleRule]:
        raise RuleStoreError("database unavailable")


def _actor(*role_ids: str, is_active: bool = True) -> Actor:
    return Actor(
        id="u-1",
        tenant_id="t-1",
        is_active=is_active,
        roles=tuple(ActorRole(id=role_id, name=role_id, scope=RoleScope.TENANT) for role_id in role_ids),
    )


def _role_rule(action: RuleAction, subject: SubjectType, **extra: Any) -> RoleRule:
    return RoleRule(tenant_id="t-1", role_id=extra.pop("role_id", "r-1"), action=action, subject=subject, **extra)


def _actor_rule(action: RuleAction, subject: SubjectType, **extra: Any) -> ActorRule:
    return ActorRule(tenant_id=extra.pop("tenant_id", "t-1"), user_id="u-1", action=action, subject=subject, **extra)


def _asset(filiale_id: str = "f-1") -> Asset:
    return Asset(tenant_id="t-1", filiale_id=filiale_id, code="A-1", name="pump")


def _resolver(store: InMemoryRuleStore) -> AbilityResolver:
    return AbilityResolver(store, clock=lambda: NOW)


def test_no_matching_rule_denies() -> None:
    resolver = _resolver(InMemoryRuleStore([_role_rule(RuleAction.READ, SubjectType.FILIALE)]))
    actor = _actor("r-1")

    assert not resolver.can(actor, RuleAction.READ, _asset())
    assert not resolver.can(actor, RuleAction.DELETE, SubjectType.ASSET)
    assert resolver.cannot(actor, RuleAction.UPDATE, SubjectType.FILIALE)


def test_higher_priority_actor_deny_overrides_role_allow() -> None:
    store = InMemoryRuleStore(
        [_role_rule(RuleAction.READ, SubjectType.ASSET)],
        [_actor_rule(RuleAction.READ, SubjectType.ASSET, inverted=True, priority=50)],
    )

    assert not _resolver(store).can(_actor("r-1"), RuleAction.READ, _asset())


def test_expired_actor_rule_has_no_effect() -> None:
    expired = _actor_rule(
        RuleAction.READ,
        SubjectType.ASSET,
        inverted=True,
        priority=90,
        expires_at=NOW - timedelta(minutes=1),
    )
    with_expired = InMemoryRuleStore([_role_rule(RuleAction.READ, SubjectType.ASSET)], [expired])
    without = InMemoryRuleStore([_role_rule(RuleAction.READ, SubjectType.ASSET)])
    actor = _actor("r-1")

    for action in RuleAction:
        for subject in (_asset(), SubjectType.ASSET, SubjectType.FILIALE):
            assert _resolver(with_expired).can(actor, action, subject) == _resolver(without).can(actor, action, subject)


def test_naive_expiry_is_read_as_utc() -> None:
    live = _actor_rule(
        RuleAction.DELETE,
        SubjectType.ASSET,
        expires_at=(NOW + timedelta(hours=1)).replace(tzinfo=None),
    )
    assert _resolver(InMemoryRuleStore(actor_rules=[live])).can(_actor(), RuleAction.DELETE, _asset())


def test_manage_implies_every_action() -> None:
    resolver = _resolver(InMemoryRuleStore([_role_rule(RuleAction.MANAGE, SubjectType.ASSET)]))
    actor = _actor("r-1")

    assert resolver.can(actor, RuleAction.DELETE, _asset())
    assert resolver.can(actor, RuleAction.CREATE, SubjectType.ASSET)
    assert not resolver.can(actor, RuleAction.READ, SubjectType.FILIALE)


def test_subject_all_matches_every_subject_type() -> None:
    resolver = _resolver(InMemoryRuleStore([_role_rule(RuleAction.READ, SubjectType.ALL)]))

    assert resolver.can(_actor("r-1"), RuleAction.READ, SubjectType.ROLE)
    assert not resolver.can(_actor("r-1"), RuleAction.UPDATE, SubjectType.ROLE)


def test_equal_priority_actor_rule_wins_over_role_rule() -> None:
    store = InMemoryRuleStore(
        [_role_rule(RuleAction.UPDATE, SubjectType.ASSET)],
        [_actor_rule(RuleAction.UPDATE, SubjectType.ASSET, inverted=True, priority=1)],
    )
    ability = _resolver(store).build(_actor("r-1"))

    assert ability.rules[0].source == RuleSource.ACTOR
    assert not ability.can(RuleAction.UPDATE, _asset())


def test_higher_priority_actor_allow_overrides_role_deny() -> None:
    store = InMemoryRuleStore(
        [_role_rule(RuleAction.DELETE, SubjectType.ASSET, inverted=True)],
        [_actor_rule(RuleAction.DELETE, SubjectType.ASSET, priority=5)],
    )

    assert _resolver(store).can(_actor("r-1"), RuleAction.DELETE, _asset())


def test_conditions_narrow_rules_to_instances() -> None:
    store = InMemoryRuleStore(
        [_role_rule(RuleAction.READ, SubjectType.ASSET)],
        [
            _actor_rule(
                RuleAction.READ,
                SubjectType.ASSET,
                inverted=True,
                priority=20,
                condition={"filiale_id": "f-2"},
            )
        ],
    )
    resolver = _resolver(store)
    actor = _actor("r-1")

    assert resolver.can(actor, RuleAction.READ, _asset("f-1"))
    assert not resolver.can(actor, RuleAction.READ, _asset("f-2"))
    # A conditional deny cannot decide a type-level question.
    assert resolver.can(actor, RuleAction.READ, SubjectType.ASSET)


def test_role_rules_are_deduplicated_across_roles() -> None:
    store = InMemoryRuleStore(
        [
            _role_rule(RuleAction.READ, SubjectType.ASSET, role_id="r-1"),
            _role_rule(RuleAction.READ, SubjectType.ASSET, role_id="r-2"),
            _role_rule(RuleAction.READ, SubjectType.ASSET, role_id="r-2", condition={"filiale_id": "f-1"}),
        ]
    )
    ability = _resolver(store).build(_actor("r-1", "r-2"))

    assert len(ability.rules) == 2


def test_actor_rules_of_another_tenant_are_ignored() -> None:
    foreign = _actor_rule(RuleAction.MANAGE, SubjectType.ALL, tenant_id="t-2", priority=100)
    ability = _resolver(InMemoryRuleStore(actor_rules=[foreign])).build(_actor())

    assert ability.rules == ()


def test_tombstoned_actor_rules_are_ignored() -> None:
    gone = _actor_rule(RuleAction.READ, SubjectType.ASSET, deleted_at=NOW - timedelta(days=1))

    assert not _resolver(InMemoryRuleStore(actor_rules=[gone])).can(_actor(), RuleAction.READ, _asset())


@pytest.mark.parametrize("actor", [None, _actor("r-1", is_active=False)])
def test_missing_or_inactive_actor_gets_guest_rules(actor: Actor | None) -> None:
    resolver = _resolver(InMemoryRuleStore([_role_rule(RuleAction.MANAGE, SubjectType.ALL)]))

    assert resolver.can(actor, RuleAction.READ, SubjectType.PUBLIC_CONTENT)
    assert not resolver.can(actor, RuleAction.READ, SubjectType.ASSET)
    assert guest_ability().can(RuleAction.READ, SubjectType.PUBLIC_CONTENT)


def test_build_is_idempotent() -> None:
    store = InMemoryRuleStore(
        [
            _role_rule(RuleAction.READ, SubjectType.ASSET),
            _role_rule(RuleAction.UPDATE, SubjectType.ASSET, condition={"filiale_id": "f-1"}),
        ],
        [_actor_rule(RuleAction.DELETE, SubjectType.ASSET, priority=30, inverted=True)],
    )
    resolver = _resolver(store)
    actor = _actor("r-1")
    first = resolver.build(actor)
    second = resolver.build(actor)

    assert first.rules == second.rules
    for action in RuleAction:
        for subject in (_asset("f-1"), _asset("f-2"), SubjectType.ASSET):
            assert first.can(action, subject) == second.can(action, subject)
    assert store.fetches == 2


def test_store_failure_denies() -> None:
    resolver = _resolver(BrokenRuleStore([_role_rule(RuleAction.MANAGE, SubjectType.ALL)]))

    assert not resolver.can(_actor("r-1"), RuleAction.READ, SubjectType.ASSET)
    with pytest.raises(RuleStoreError):
        resolver.build(_actor("r-1"))


def test_sort_is_stable_within_priority_and_source() -> None:
    first = AbilityRule(action="read", subject="Asset", rule_id="a")
    second = AbilityRule(action="read", subject="Asset", rule_id="b")
    boosted = AbilityRule(action="read", subject="Asset", priority=5, source=RuleSource.ACTOR, rule_id="c")

    assert [rule.rule_id for rule in sort_rules([first, second, boosted])] == ["c", "a", "b"]


def test_untagged_subject_is_rejected() -> None:
    ability = _resolver(InMemoryRuleStore([_role_rule(RuleAction.READ, SubjectType.ALL)])).build(_actor("r-1"))

    with pytest.raises(TypeError):
        ability.can(RuleAction.READ, object())
