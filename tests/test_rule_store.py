from __future__ import annotations

from collections.abc import Generator
from datetime import timedelta
from pathlib import Path

import pytest
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from app.domain.ability import AbilityResolver
from app.domain.actor import Actor
from app.domain.errors import DuplicateRuleError, NotFoundError
from app.domain.models import Asset, RuleAction, SubjectType, Tenant, User, now_utc
from app.infra import db
from app.services.rule_store import SqlRuleStore


@pytest.fixture()
def store_engine(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[Engine, None, None]:
    test_engine = create_engine(
        f"sqlite:///{tmp_path / 'rule_store_test.db'}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    with Session(test_engine) as session:
        session.add(Tenant(id="t-1", name="tenant-1"))
        session.commit()
        session.add(User(id="u-1", tenant_id="t-1", username="mario", password_hash="x"))
        session.commit()
    yield test_engine
    test_engine.dispose()


def _rule(**overrides: object) -> dict[str, object]:
    rule: dict[str, object] = {"action": RuleAction.UPDATE, "subject": SubjectType.ASSET, "created_by": "admin"}
    rule.update(overrides)
    return rule


def test_create_fills_tenant_and_defaults(store_engine: Engine) -> None:
    store = SqlRuleStore()
    row = store.create_actor_rule("u-1", _rule(fields=["scatola"]))

    assert row.tenant_id == "t-1"
    assert row.priority == 10
    assert row.created_by == "admin"
    assert store.fetch_actor_rules("u-1", now_utc())[0].fields == ["scatola"]


def test_create_for_unknown_user_fails(store_engine: Engine) -> None:
    with pytest.raises(NotFoundError):
        SqlRuleStore().create_actor_rule("nobody", _rule())


def test_duplicate_live_tuple_is_rejected(store_engine: Engine) -> None:
    store = SqlRuleStore()
    store.create_actor_rule("u-1", _rule())

    with pytest.raises(DuplicateRuleError):
        store.create_actor_rule("u-1", _rule(priority=40))
    # An inverted rule on the same pair is a different tuple.
    store.create_actor_rule("u-1", _rule(inverted=True))


def test_tombstone_frees_the_tuple_and_hides_the_rule(store_engine: Engine) -> None:
    store = SqlRuleStore()
    first = store.create_actor_rule("u-1", _rule())
    store.tombstone_actor_rule(first.id)

    assert store.fetch_actor_rules("u-1", now_utc()) == []
    with pytest.raises(NotFoundError):
        store.get_actor_rule(first.id)
    with pytest.raises(NotFoundError):
        store.tombstone_actor_rule(first.id)

    second = store.create_actor_rule("u-1", _rule())
    assert second.id != first.id


def test_expired_rules_are_retained_but_not_fetched(store_engine: Engine) -> None:
    store = SqlRuleStore()
    store.create_actor_rule("u-1", _rule(expires_at=now_utc() + timedelta(minutes=5)))

    assert len(store.fetch_actor_rules("u-1", now_utc())) == 1
    assert store.fetch_actor_rules("u-1", now_utc() + timedelta(minutes=10)) == []
    assert len(store.list_actor_rules("t-1", "u-1")) == 1


def test_fetch_orders_by_priority(store_engine: Engine) -> None:
    store = SqlRuleStore()
    store.create_actor_rule("u-1", _rule(priority=5))
    store.create_actor_rule("u-1", _rule(action=RuleAction.DELETE, priority=70))

    rows = store.fetch_actor_rules("u-1", now_utc())
    assert [row.priority for row in rows] == [70, 5]


def test_update_rejects_collisions_and_unknown_fields(store_engine: Engine) -> None:
    store = SqlRuleStore()
    store.create_actor_rule("u-1", _rule())
    other = store.create_actor_rule("u-1", _rule(action=RuleAction.DELETE))

    with pytest.raises(DuplicateRuleError):
        store.update_actor_rule(other.id, {"action": RuleAction.UPDATE})

    updated = store.update_actor_rule(other.id, {"priority": 80, "user_id": "u-2", "updated_by": "admin"})
    assert updated.priority == 80
    assert updated.user_id == "u-1"
    assert updated.updated_by == "admin"

    with pytest.raises(NotFoundError):
        store.update_actor_rule("missing", {"priority": 2})


def test_resolver_reads_fresh_rules_from_store(store_engine: Engine) -> None:
    store = SqlRuleStore()
    resolver = AbilityResolver(store)
    actor = Actor(id="u-1", tenant_id="t-1")
    asset = Asset(tenant_id="t-1", filiale_id="f-1", code="A-1", name="pump")

    assert not resolver.can(actor, RuleAction.UPDATE, asset)
    row = store.create_actor_rule("u-1", _rule())
    assert resolver.can(actor, RuleAction.UPDATE, asset)
    store.tombstone_actor_rule(row.id)
    assert not resolver.can(actor, RuleAction.UPDATE, asset)
