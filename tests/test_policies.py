from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

import pytest

from app.domain.ability import AbilityResolver
from app.domain.actor import Actor, ActorRole
from app.domain.errors import RuleStoreError
from app.domain.models import ActorRule, Asset, Filiale, Role, RoleRule, RoleScope, RuleAction, SubjectType
from app.domain.permissions import (
    ROLE_ADMIN,
    ROLE_AREA_MANAGER,
    ROLE_BRANCH_MANAGER,
    ROLE_TEMPLATES,
    ROLE_WAREHOUSE,
)
from app.policies.actor_rule import ActorRulePolicy
from app.policies.asset import AssetPolicy
from app.policies.locations import FilialePolicy
from app.policies.role import RolePolicy
from app.policies.user import UserPolicy


class StaticRuleStore:
    """Role rules keyed by role id, actor rules keyed by user id."""

    def __init__(
        self,
        role_rules: Mapping[str, list[dict[str, Any]]] | None = None,
        actor_rules: Mapping[str, list[dict[str, Any]]] | None = None,
    ) -> None:
        self.role_rules = dict(role_rules or {})
        self.actor_rules = dict(actor_rules or {})

    def fetch_role_rules(self, role_ids: Sequence[str]) -> list[RoleRule]:
        return [
            RoleRule(tenant_id="t-1", role_id=role_id, **rule)
            for role_id in role_ids
            for rule in self.role_rules.get(role_id, [])
        ]

    def fetch_actor_rules(self, actor_id: str, as_of: datetime) -> list[ActorRule]:
        return [ActorRule(tenant_id="t-1", user_id=actor_id, **rule) for rule in self.actor_rules.get(actor_id, [])]

    def create_actor_rule(self, actor_id: str, rule: Mapping[str, Any]) -> ActorRule:
        raise NotImplementedError

    def update_actor_rule(self, rule_id: str, patch: Mapping[str, Any]) -> ActorRule:
        raise NotImplementedError

    def tombstone_actor_rule(self, rule_id: str) -> None:
        raise NotImplementedError


class FailingRuleStore(StaticRuleStore):
    def fetch_role_rules(self, role_ids: Sequence[str]) -> list[RoleRule]:
        raise RuleStoreError("database unavailable")


def _template_rules() -> dict[str, list[dict[str, Any]]]:
    return {template["name"]: list(template["rules"]) for template in ROLE_TEMPLATES}


def _template_scope(name: str) -> RoleScope:
    return next(template["scope"] for template in ROLE_TEMPLATES if template["name"] == name)


def _actor(
    *role_names: str,
    actor_id: str = "u-1",
    tenant_id: str = "t-1",
    filiale_id: str | None = "f-1",
    managed: frozenset[str] = frozenset(),
    scope: RoleScope | None = None,
) -> Actor:
    return Actor(
        id=actor_id,
        tenant_id=tenant_id,
        roles=tuple(
            ActorRole(id=name, name=name, scope=scope or _template_scope(name)) for name in role_names
        ),
        filiale_id=filiale_id,
        managed_filiali=managed,
    )


def _asset(filiale_id: str = "f-1", tenant_id: str = "t-1") -> Asset:
    return Asset(id=f"a-{filiale_id}", tenant_id=tenant_id, filiale_id=filiale_id, code="A-1", name="pump")


def _resolver(store: StaticRuleStore | None = None) -> AbilityResolver:
    return AbilityResolver(store or StaticRuleStore(_template_rules()))


def test_tenant_isolation_beats_any_rule() -> None:
    store = StaticRuleStore(
        {"custom": [{"action": RuleAction.MANAGE, "subject": SubjectType.ALL}]},
        {"u-1": [{"action": RuleAction.MANAGE, "subject": SubjectType.ALL, "priority": 100}]},
    )
    policy = AssetPolicy(_resolver(store))
    actor = _actor("custom", scope=RoleScope.TENANT)
    foreign = _asset(tenant_id="t-2")

    assert not policy.can_read(actor, foreign)
    assert not policy.can_update(actor, foreign, {"notes": "x"})
    assert not policy.can_delete(actor, foreign)
    assert not policy.can_create(actor, {"tenant_id": "t-2", "filiale_id": "f-1"})
    assert policy.can_read(actor, _asset())


def test_branch_scoped_actor_sees_only_home_branch() -> None:
    store = StaticRuleStore({"custom": [{"action": RuleAction.READ, "subject": SubjectType.ASSET}]})
    policy = AssetPolicy(_resolver(store))
    actor = _actor("custom", filiale_id="f-1", scope=RoleScope.BRANCH)

    assert policy.can_read(actor, _asset("f-1"))
    assert not policy.can_read(actor, _asset("f-2"))


def test_actor_without_home_branch_sees_nothing_scoped() -> None:
    store = StaticRuleStore({"custom": [{"action": RuleAction.READ, "subject": SubjectType.ASSET}]})
    actor = _actor("custom", filiale_id=None, scope=RoleScope.BRANCH)

    assert not AssetPolicy(_resolver(store)).can_read(actor, _asset("f-1"))


def test_field_restricted_update_is_admitted_or_rejected_whole() -> None:
    store = StaticRuleStore(
        {"viewer": [{"action": RuleAction.READ, "subject": SubjectType.ASSET}]},
        {"u-1": [{"action": RuleAction.UPDATE, "subject": SubjectType.ASSET, "fields": ["scatola", "scaffale"]}]},
    )
    policy = AssetPolicy(_resolver(store))
    actor = _actor("viewer", scope=RoleScope.TENANT)

    assert policy.can_update(actor, _asset(), {"scatola": "A1"})
    assert not policy.can_update(actor, _asset(), {"scatola": "A1", "description": "x"})


def test_warehouse_limited_to_storage_fields() -> None:
    policy = AssetPolicy(_resolver())
    actor = _actor(ROLE_WAREHOUSE)

    assert policy.can_update(actor, _asset(), {"scatola": "B-2", "scaffale": "S-4", "notes": "moved"})
    assert not policy.can_update(actor, _asset(), {"name": "renamed"})
    assert not policy.can_update(actor, _asset("f-2"), {"scatola": "B-2"})
    assert not policy.can_delete(actor, _asset())
    assert policy.shape(actor, _asset(), {"id": "a-f-1", "code": "A-1"}) == {"id": "a-f-1", "code": "A-1"}


def test_warehouse_limit_applies_even_with_broader_override() -> None:
    store = StaticRuleStore(
        _template_rules(),
        {"u-1": [{"action": RuleAction.UPDATE, "subject": SubjectType.ASSET, "priority": 60}]},
    )
    policy = AssetPolicy(_resolver(store))

    assert not policy.can_update(_actor(ROLE_WAREHOUSE), _asset(), {"code": "A-2"})


def test_area_manager_scope_follows_managed_branches() -> None:
    policy = AssetPolicy(_resolver())
    actor = _actor(ROLE_AREA_MANAGER, filiale_id=None, managed=frozenset({"f-1", "f-2"}))

    assert policy.can_read(actor, _asset("f-2"))
    assert not policy.can_read(actor, _asset("f-3"))
    assert policy.can_update(actor, _asset("f-1"), {"filiale_id": "f-2"})
    assert not policy.can_update(actor, _asset("f-1"), {"filiale_id": "f-3"})


def test_branch_manager_field_limits_on_filiale() -> None:
    policy = FilialePolicy(_resolver())
    actor = _actor(ROLE_BRANCH_MANAGER, filiale_id="f-1")
    own = Filiale(id="f-1", tenant_id="t-1", code="F1", name="Milano")
    other = Filiale(id="f-2", tenant_id="t-1", code="F2", name="Roma")

    assert policy.can_read(actor, other)
    assert policy.can_update(actor, own, {"telefono": "02 123"})
    assert not policy.can_update(actor, own, {"name": "Milano Centro"})
    assert not policy.can_update(actor, other, {"telefono": "06 123"})
    assert not policy.can_create(actor, {"tenant_id": "t-1", "code": "F3", "name": "Torino"})


def test_admin_can_create_branches() -> None:
    policy = FilialePolicy(_resolver())

    assert policy.can_create(_actor(ROLE_ADMIN), {"tenant_id": "t-1", "code": "F3", "name": "Torino"})


def test_policy_errors_turn_into_a_logged_deny(caplog: pytest.LogCaptureFixture) -> None:
    policy = AssetPolicy(_resolver(FailingRuleStore(_template_rules())))

    with caplog.at_level(logging.ERROR):
        assert not policy.can_read(_actor(ROLE_ADMIN), _asset())
    assert any(record.levelno == logging.ERROR for record in caplog.records)


def test_anonymous_actor_is_denied() -> None:
    policy = AssetPolicy(_resolver())

    assert not policy.can_read(None, _asset())
    assert not policy.can_create(None, {"tenant_id": "t-1", "filiale_id": "f-1"})


def test_user_policy_self_and_admin_rules() -> None:
    policy = UserPolicy(_resolver())
    manager = _actor(ROLE_BRANCH_MANAGER, actor_id="u-1", filiale_id="f-1")
    colleague = _actor(ROLE_WAREHOUSE, actor_id="u-2", filiale_id="f-1")
    admin = _actor(ROLE_ADMIN, actor_id="u-3", filiale_id="f-1")
    warehouse = _actor(ROLE_WAREHOUSE, actor_id="u-4", filiale_id="f-2")

    assert policy.can_read(warehouse, warehouse)
    assert not policy.can_read(warehouse, colleague)
    assert policy.can_update(manager, colleague, {"is_active": False})
    assert not policy.can_update(manager, admin, {"is_active": False})
    assert not policy.can_delete(admin, admin)
    assert policy.can_delete(admin, colleague)
    assert not policy.can_assign_role(manager, colleague, ROLE_ADMIN)
    assert not policy.can_assign_role(manager, manager, ROLE_WAREHOUSE)
    assert policy.can_assign_role(manager, colleague, ROLE_WAREHOUSE)
    assert policy.can_assign_role(admin, colleague, ROLE_ADMIN)


def test_user_creation_follows_rules_and_branch_scope() -> None:
    store = StaticRuleStore(
        {
            **_template_rules(),
            "Recruiter": [{"action": RuleAction.CREATE, "subject": SubjectType.USER}],
        }
    )
    policy = UserPolicy(_resolver(store))
    recruiter = _actor("Recruiter", scope=RoleScope.BRANCH)
    draft = {"tenant_id": "t-1", "filiale_id": "f-1", "username": "carla"}

    assert policy.can_create(recruiter, draft)
    assert not policy.can_create(recruiter, {**draft, "filiale_id": "f-2"})
    assert not policy.can_create(_actor(ROLE_BRANCH_MANAGER), draft)
    assert policy.can_create(_actor(ROLE_ADMIN), {**draft, "filiale_id": "f-2"})


def test_role_policy_protects_system_roles() -> None:
    policy = RolePolicy(_resolver())
    admin = _actor(ROLE_ADMIN)
    system = Role(id="r-1", tenant_id="t-1", name=ROLE_WAREHOUSE, scope=RoleScope.BRANCH, is_system=True)
    admin_role = Role(id="r-2", tenant_id="t-1", name=ROLE_ADMIN, scope=RoleScope.TENANT, is_system=True)
    custom = Role(id="r-3", tenant_id="t-1", name="Auditor", scope=RoleScope.BRANCH)

    assert policy.can_create(admin, {"tenant_id": "t-1", "name": "Auditor"})
    assert not policy.can_create(admin, {"tenant_id": "t-1", "name": ROLE_WAREHOUSE})
    assert not policy.can_delete(admin, system)
    assert policy.can_delete(admin, custom)
    assert policy.can_update(admin, system, {"description": "shelves"})
    assert not policy.can_update(admin, system, {"name": "Store"})
    assert not policy.can_update(admin, admin_role, {"rules": []})
    assert not policy.can_create(_actor(ROLE_BRANCH_MANAGER), {"tenant_id": "t-1", "name": "Auditor"})


def test_actor_rule_policy_requires_manage() -> None:
    policy = ActorRulePolicy(_resolver())
    rule = ActorRule(id="ar-1", tenant_id="t-1", user_id="u-9", action=RuleAction.READ, subject=SubjectType.ASSET)
    draft = {"tenant_id": "t-1", "owner_tenant_id": "t-1", "action": "read", "subject": "Asset"}

    assert policy.can_create(_actor(ROLE_ADMIN), draft)
    assert policy.can_update(_actor(ROLE_ADMIN), rule, {"priority": 40})
    assert not policy.can_create(_actor(ROLE_ADMIN), {**draft, "owner_tenant_id": "t-2"})
    assert not policy.can_create(_actor(ROLE_BRANCH_MANAGER), draft)
    assert not policy.can_delete(_actor(ROLE_BRANCH_MANAGER), rule)
