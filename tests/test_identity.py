from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import Session, SQLModel, create_engine, select

from app import main as app_main
from app.domain.models import EntityHistory, Role, RoleRule, UserRole
from app.domain.permissions import ROLE_ADMIN, ROLE_TEMPLATES, ROLE_WAREHOUSE
from app.infra import audit, db


@pytest.fixture()
def identity_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "identity_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setattr(audit, "engine", test_engine)
    client = TestClient(app_main.app)
    yield client
    client.close()


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _create_tenant(client: TestClient, name: str) -> str:
    response = client.post("/api/identity/tenants", json={"name": name})
    assert response.status_code == 201
    return response.json()["id"]


def _bootstrap_admin(client: TestClient, tenant_id: str, username: str, password: str) -> str:
    response = client.post(
        "/api/identity/bootstrap-admin",
        json={"tenant_id": tenant_id, "username": username, "password": password},
    )
    assert response.status_code == 201
    return response.json()["id"]


def _login(client: TestClient, tenant_id: str, username: str, password: str) -> str:
    response = client.post(
        "/api/identity/dev-login",
        json={"tenant_id": tenant_id, "username": username, "password": password},
    )
    assert response.status_code == 200
    return response.json()["access_token"]


def _role_id(client: TestClient, token: str, name: str) -> str:
    response = client.get("/api/identity/roles", headers=_auth_header(token))
    assert response.status_code == 200
    return next(item["id"] for item in response.json() if item["name"] == name)


def _create_user(
    client: TestClient,
    token: str,
    username: str,
    *,
    filiale_id: str | None = None,
    role: str | None = None,
) -> str:
    response = client.post(
        "/api/identity/users",
        json={"username": username, "password": f"{username}-pass", "filiale_id": filiale_id},
        headers=_auth_header(token),
    )
    assert response.status_code == 201
    user_id = response.json()["id"]
    if role is not None:
        bind_resp = client.post(
            f"/api/identity/users/{user_id}/roles/{_role_id(client, token, role)}",
            headers=_auth_header(token),
        )
        assert bind_resp.status_code == 204
    return user_id


def _admin_session(client: TestClient, name: str) -> tuple[str, str, str]:
    tenant_id = _create_tenant(client, name)
    admin_id = _bootstrap_admin(client, tenant_id, "admin", "admin-pass")
    return tenant_id, admin_id, _login(client, tenant_id, "admin", "admin-pass")


def test_bootstrap_seeds_system_roles(identity_client: TestClient) -> None:
    tenant_id, admin_id, token = _admin_session(identity_client, "tenant-seed")

    roles_resp = identity_client.get("/api/identity/roles", headers=_auth_header(token))
    assert roles_resp.status_code == 200
    roles = roles_resp.json()
    assert {item["name"] for item in roles} == {template["name"] for template in ROLE_TEMPLATES}
    assert all(item["is_system"] for item in roles)

    with Session(db.get_engine()) as session:
        links = list(session.exec(select(UserRole).where(UserRole.user_id == admin_id)).all())
        admin_role = session.exec(select(Role).where(Role.tenant_id == tenant_id).where(Role.name == ROLE_ADMIN)).one()
        rule_count = len(list(session.exec(select(RoleRule).where(RoleRule.tenant_id == tenant_id)).all()))
    assert [link.role_id for link in links] == [admin_role.id]
    assert rule_count == sum(len(template["rules"]) for template in ROLE_TEMPLATES)

    again = identity_client.post(
        "/api/identity/bootstrap-admin",
        json={"tenant_id": tenant_id, "username": "second", "password": "x"},
    )
    assert again.status_code == 409

    unknown = identity_client.post(
        "/api/identity/bootstrap-admin",
        json={"tenant_id": "missing-tenant", "username": "admin", "password": "x"},
    )
    assert unknown.status_code == 404


def test_login_and_token_checks(identity_client: TestClient) -> None:
    tenant_id, admin_id, token = _admin_session(identity_client, "tenant-login")

    me_resp = identity_client.get("/api/identity/me", headers=_auth_header(token))
    assert me_resp.status_code == 200
    assert me_resp.json()["id"] == admin_id

    wrong = identity_client.post(
        "/api/identity/dev-login",
        json={"tenant_id": tenant_id, "username": "admin", "password": "nope"},
    )
    assert wrong.status_code == 401

    assert identity_client.get("/api/identity/me").status_code == 401
    assert identity_client.get("/api/identity/me", headers=_auth_header("not-a-jwt")).status_code == 401

    duplicate_tenant = identity_client.post("/api/identity/tenants", json={"name": "tenant-login"})
    assert duplicate_tenant.status_code == 409


def test_identity_tenant_isolation(identity_client: TestClient) -> None:
    _, _, token_a = _admin_session(identity_client, "tenant-a")
    tenant_b, _, token_b = _admin_session(identity_client, "tenant-b")

    alice_id = _create_user(identity_client, token_a, "alice")

    cross_tenant_resp = identity_client.get(
        f"/api/identity/users/{alice_id}",
        headers=_auth_header(token_b),
    )
    assert cross_tenant_resp.status_code == 404

    users_b = identity_client.get("/api/identity/users", headers=_auth_header(token_b))
    assert [item["username"] for item in users_b.json()] == ["admin"]

    foreign_tenant = identity_client.patch(
        f"/api/identity/tenants/{tenant_b}",
        json={"name": "renamed"},
        headers=_auth_header(token_a),
    )
    assert foreign_tenant.status_code == 404


def test_warehouse_user_reads_self_only(identity_client: TestClient) -> None:
    tenant_id, _, admin_token = _admin_session(identity_client, "tenant-self")
    bob_id = _create_user(identity_client, admin_token, "bob", filiale_id="f-1", role=ROLE_WAREHOUSE)
    carol_id = _create_user(identity_client, admin_token, "carol", filiale_id="f-1", role=ROLE_WAREHOUSE)
    bob_token = _login(identity_client, tenant_id, "bob", "bob-pass")

    me_resp = identity_client.get("/api/identity/me", headers=_auth_header(bob_token))
    assert me_resp.status_code == 200
    assert me_resp.json()["username"] == "bob"

    listing = identity_client.get("/api/identity/users", headers=_auth_header(bob_token))
    assert [item["id"] for item in listing.json()] == [bob_id]

    other = identity_client.get(f"/api/identity/users/{carol_id}", headers=_auth_header(bob_token))
    assert other.status_code == 403

    create_resp = identity_client.post(
        "/api/identity/users",
        json={"username": "mallory", "password": "x"},
        headers=_auth_header(bob_token),
    )
    assert create_resp.status_code == 403

    rename = identity_client.patch(
        f"/api/identity/tenants/{tenant_id}",
        json={"name": "mine"},
        headers=_auth_header(bob_token),
    )
    assert rename.status_code == 403


def test_disabled_user_is_locked_out(identity_client: TestClient) -> None:
    tenant_id, _, admin_token = _admin_session(identity_client, "tenant-disable")
    alice_id = _create_user(identity_client, admin_token, "alice", role=ROLE_WAREHOUSE)
    alice_token = _login(identity_client, tenant_id, "alice", "alice-pass")

    disable = identity_client.patch(
        f"/api/identity/users/{alice_id}",
        json={"is_active": False},
        headers=_auth_header(admin_token),
    )
    assert disable.status_code == 200
    assert disable.json()["is_active"] is False

    assert identity_client.get("/api/identity/me", headers=_auth_header(alice_token)).status_code == 401
    relogin = identity_client.post(
        "/api/identity/dev-login",
        json={"tenant_id": tenant_id, "username": "alice", "password": "alice-pass"},
    )
    assert relogin.status_code == 401

    with Session(db.get_engine()) as session:
        history = list(
            session.exec(
                select(EntityHistory)
                .where(EntityHistory.entity_type == "User")
                .where(EntityHistory.entity_id == alice_id)
            ).all()
        )
    assert [entry.action for entry in sorted(history, key=lambda item: item.ts)] == ["create", "update"]


def test_user_delete_and_role_binding(identity_client: TestClient) -> None:
    _, admin_id, admin_token = _admin_session(identity_client, "tenant-delete")
    alice_id = _create_user(identity_client, admin_token, "alice")
    warehouse_role = _role_id(identity_client, admin_token, ROLE_WAREHOUSE)

    bind = identity_client.post(
        f"/api/identity/users/{alice_id}/roles/{warehouse_role}",
        headers=_auth_header(admin_token),
    )
    assert bind.status_code == 204
    rebind = identity_client.post(
        f"/api/identity/users/{alice_id}/roles/{warehouse_role}",
        headers=_auth_header(admin_token),
    )
    assert rebind.status_code == 409

    unbind = identity_client.delete(
        f"/api/identity/users/{alice_id}/roles/{warehouse_role}",
        headers=_auth_header(admin_token),
    )
    assert unbind.status_code == 204
    missing_binding = identity_client.delete(
        f"/api/identity/users/{alice_id}/roles/{warehouse_role}",
        headers=_auth_header(admin_token),
    )
    assert missing_binding.status_code == 404

    self_delete = identity_client.delete(f"/api/identity/users/{admin_id}", headers=_auth_header(admin_token))
    assert self_delete.status_code == 403

    delete_resp = identity_client.delete(f"/api/identity/users/{alice_id}", headers=_auth_header(admin_token))
    assert delete_resp.status_code == 204
    gone = identity_client.get(f"/api/identity/users/{alice_id}", headers=_auth_header(admin_token))
    assert gone.status_code == 404


def test_custom_roles_and_rules(identity_client: TestClient) -> None:
    tenant_id, _, admin_token = _admin_session(identity_client, "tenant-roles")

    create_resp = identity_client.post(
        "/api/identity/roles",
        json={"name": "Auditor", "description": "reads assets"},
        headers=_auth_header(admin_token),
    )
    assert create_resp.status_code == 201
    auditor = create_resp.json()
    assert auditor["scope"] == "BRANCH"
    assert auditor["is_system"] is False

    duplicate = identity_client.post(
        "/api/identity/roles",
        json={"name": "Auditor"},
        headers=_auth_header(admin_token),
    )
    assert duplicate.status_code == 409

    reserved = identity_client.post(
        "/api/identity/roles",
        json={"name": ROLE_WAREHOUSE},
        headers=_auth_header(admin_token),
    )
    assert reserved.status_code == 403

    rule_resp = identity_client.post(
        f"/api/identity/roles/{auditor['id']}/rules",
        json={"action": "read", "subject": "Asset", "condition": {"category": "vehicle"}},
        headers=_auth_header(admin_token),
    )
    assert rule_resp.status_code == 201
    rule_id = rule_resp.json()["id"]

    bad_rule = identity_client.post(
        f"/api/identity/roles/{auditor['id']}/rules",
        json={"action": "read", "subject": "Asset", "condition": {"category": {"op": "regex", "value": ".*"}}},
        headers=_auth_header(admin_token),
    )
    assert bad_rule.status_code == 422
    assert bad_rule.json()["detail"]["errors"]

    rules = identity_client.get(f"/api/identity/roles/{auditor['id']}/rules", headers=_auth_header(admin_token))
    assert [item["id"] for item in rules.json()] == [rule_id]

    remove = identity_client.delete(
        f"/api/identity/roles/{auditor['id']}/rules/{rule_id}",
        headers=_auth_header(admin_token),
    )
    assert remove.status_code == 204

    admin_role = _role_id(identity_client, admin_token, ROLE_ADMIN)
    fixed = identity_client.post(
        f"/api/identity/roles/{admin_role}/rules",
        json={"action": "delete", "subject": "Asset", "inverted": True},
        headers=_auth_header(admin_token),
    )
    assert fixed.status_code == 403

    warehouse_role = _role_id(identity_client, admin_token, ROLE_WAREHOUSE)
    rename_system = identity_client.patch(
        f"/api/identity/roles/{warehouse_role}",
        json={"name": "Store"},
        headers=_auth_header(admin_token),
    )
    assert rename_system.status_code == 403
    describe_system = identity_client.patch(
        f"/api/identity/roles/{warehouse_role}",
        json={"description": "boxes and shelves"},
        headers=_auth_header(admin_token),
    )
    assert describe_system.status_code == 200

    assert identity_client.delete(
        f"/api/identity/roles/{warehouse_role}", headers=_auth_header(admin_token)
    ).status_code == 403
    assert identity_client.delete(
        f"/api/identity/roles/{auditor['id']}", headers=_auth_header(admin_token)
    ).status_code == 204

    _create_user(identity_client, admin_token, "bob", filiale_id="f-1", role=ROLE_WAREHOUSE)
    bob_token = _login(identity_client, tenant_id, "bob", "bob-pass")
    forbidden = identity_client.post(
        f"/api/identity/roles/{warehouse_role}/rules",
        json={"action": "delete", "subject": "Asset"},
        headers=_auth_header(bob_token),
    )
    assert forbidden.status_code == 403
    assert forbidden.json()["detail"] == "Missing ability: manage ActorRule"
    listing = identity_client.get(f"/api/identity/roles/{warehouse_role}/rules", headers=_auth_header(bob_token))
    assert listing.status_code == 403


def test_role_rule_endpoints_honour_actor_rule_denies(identity_client: TestClient) -> None:
    _, admin_id, admin_token = _admin_session(identity_client, "tenant-self-deny")
    role = identity_client.post(
        "/api/identity/roles",
        json={"name": "Auditor"},
        headers=_auth_header(admin_token),
    ).json()
    kept = identity_client.post(
        f"/api/identity/roles/{role['id']}/rules",
        json={"action": "read", "subject": "Filiale"},
        headers=_auth_header(admin_token),
    )
    assert kept.status_code == 201

    self_deny = identity_client.post(
        f"/api/users/{admin_id}/abilities",
        json={"action": "manage", "subject": "ActorRule", "inverted": True, "priority": 50},
        headers=_auth_header(admin_token),
    )
    assert self_deny.status_code == 201

    added = identity_client.post(
        f"/api/identity/roles/{role['id']}/rules",
        json={"action": "read", "subject": "Asset"},
        headers=_auth_header(admin_token),
    )
    assert added.status_code == 403
    assert added.json()["detail"] == "Missing ability: manage ActorRule"
    removed = identity_client.delete(
        f"/api/identity/roles/{role['id']}/rules/{kept.json()['id']}",
        headers=_auth_header(admin_token),
    )
    assert removed.status_code == 403
    listed = identity_client.get(f"/api/identity/roles/{role['id']}/rules", headers=_auth_header(admin_token))
    assert listed.status_code == 403

    with Session(db.get_engine()) as session:
        rules = list(session.exec(select(RoleRule).where(RoleRule.role_id == role["id"])).all())
    assert [rule.id for rule in rules] == [kept.json()["id"]]


def test_role_changes_are_recorded_in_history(identity_client: TestClient) -> None:
    tenant_id, admin_id, admin_token = _admin_session(identity_client, "tenant-role-history")
    role = identity_client.post(
        "/api/identity/roles",
        json={"name": "Auditor"},
        headers=_auth_header(admin_token),
    ).json()
    renamed = identity_client.patch(
        f"/api/identity/roles/{role['id']}",
        json={"description": "reads everything"},
        headers=_auth_header(admin_token),
    )
    assert renamed.status_code == 200
    rule = identity_client.post(
        f"/api/identity/roles/{role['id']}/rules",
        json={"action": "read", "subject": "Asset"},
        headers=_auth_header(admin_token),
    ).json()
    assert identity_client.delete(
        f"/api/identity/roles/{role['id']}/rules/{rule['id']}", headers=_auth_header(admin_token)
    ).status_code == 204
    assert identity_client.delete(
        f"/api/identity/roles/{role['id']}", headers=_auth_header(admin_token)
    ).status_code == 204

    with Session(db.get_engine()) as session:
        role_rows = list(
            session.exec(
                select(EntityHistory)
                .where(EntityHistory.tenant_id == tenant_id)
                .where(EntityHistory.entity_type == "Role")
                .where(EntityHistory.entity_id == role["id"])
                .order_by(EntityHistory.ts)
            ).all()
        )
        rule_rows = list(
            session.exec(
                select(EntityHistory)
                .where(EntityHistory.entity_type == "RoleRule")
                .where(EntityHistory.entity_id == rule["id"])
                .order_by(EntityHistory.ts)
            ).all()
        )
    assert [row.action for row in role_rows] == ["create", "update", "delete"]
    assert role_rows[1].before["description"] is None
    assert role_rows[1].after["description"] == "reads everything"
    assert all(row.changed_by == admin_id for row in role_rows)
    assert [row.action for row in rule_rows] == ["create", "delete"]
    assert rule_rows[0].after["role_id"] == role["id"]
    assert rule_rows[1].before["subject"] == "Asset"
