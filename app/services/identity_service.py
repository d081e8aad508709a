from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from app.domain.actor import Actor, actor_from_user
from app.domain.conditions import validate_condition
from app.domain.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.domain.models import (
    BootstrapAdminRequest,
    Role,
    RoleCreate,
    RoleRule,
    RoleRuleCreate,
    RoleUpdate,
    Tenant,
    TenantCreate,
    TenantUpdate,
    User,
    UserCreate,
    UserRole,
    UserUpdate,
    now_utc,
)
from app.domain.permissions import ROLE_ADMIN, ROLE_TEMPLATES
from app.infra.audit import audit_recorder, snapshot
from app.infra.auth import hash_password
from app.infra.db import get_engine
from app.policies.role import RULES_PATCH_KEY, RolePolicy
from app.policies.user import UserPolicy

logger = logging.getLogger(__name__)


class IdentityService:
    def __init__(self, user_policy: UserPolicy | None = None, role_policy: RolePolicy | None = None) -> None:
        self._user_policy = user_policy or UserPolicy()
        self._role_policy = role_policy or RolePolicy()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_scoped_user(self, session: Session, tenant_id: str, user_id: str) -> User | None:
        statement = select(User).where(User.tenant_id == tenant_id).where(User.id == user_id)
        return session.exec(statement).first()

    def _get_scoped_role(self, session: Session, tenant_id: str, role_id: str) -> Role | None:
        statement = select(Role).where(Role.tenant_id == tenant_id).where(Role.id == role_id)
        return session.exec(statement).first()

    def _roles_of(self, session: Session, tenant_id: str, user_id: str) -> list[Role]:
        statement = (
            select(Role)
            .join(UserRole, col(UserRole.role_id) == col(Role.id))
            .where(UserRole.tenant_id == tenant_id)
            .where(UserRole.user_id == user_id)
            .where(Role.tenant_id == tenant_id)
            .order_by(col(Role.name))
        )
        return list(session.exec(statement).all())

    def _actor_for(self, session: Session, user: User) -> Actor:
        return actor_from_user(user, self._roles_of(session, user.tenant_id, user.id))

    def _validate_rule(self, payload: RoleRuleCreate) -> None:
        errors = validate_condition(payload.condition)
        if payload.fields is not None and not all(isinstance(item, str) and item for item in payload.fields):
            errors.append("fields must be non-empty attribute names")
        if errors:
            raise ValidationError("invalid rule", errors)

    # actors

    def load_actor(self, tenant_id: str, user_id: str) -> Actor:
        with self._session() as session:
            user = self._get_scoped_user(session, tenant_id, user_id)
            if user is None:
                raise AuthenticationError("unknown user")
            return self._actor_for(session, user)

    def dev_login(self, tenant_id: str, username: str, password: str) -> User:
        with self._session() as session:
            statement = select(User).where(User.tenant_id == tenant_id).where(User.username == username)
            user = session.exec(statement).first()
            if user is None:
                raise AuthenticationError("invalid credentials")
            if not user.is_active:
                raise AuthenticationError("user disabled")
            if user.password_hash != hash_password(password):
                raise AuthenticationError("invalid credentials")
            return user

    # tenants

    def create_tenant(self, payload: TenantCreate) -> Tenant:
        with self._session() as session:
            tenant = Tenant(name=payload.name)
            session.add(tenant)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("tenant name already exists") from exc
            session.refresh(tenant)
            return tenant

    def get_tenant(self, tenant_id: str) -> Tenant:
        with self._session() as session:
            tenant = session.get(Tenant, tenant_id)
            if tenant is None:
                raise NotFoundError("tenant not found")
            return tenant

    def update_tenant(self, actor: Actor, tenant_id: str, payload: TenantUpdate) -> Tenant:
        if tenant_id != actor.tenant_id:
            raise NotFoundError("tenant not found")
        if not actor.has_role(ROLE_ADMIN):
            raise AuthorizationError("tenant settings are reserved to administrators")
        with self._session() as session:
            tenant = session.get(Tenant, tenant_id)
            if tenant is None:
                raise NotFoundError("tenant not found")
            tenant.name = payload.name
            session.add(tenant)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("tenant name already exists") from exc
            session.refresh(tenant)
            return tenant

    def bootstrap_admin(self, payload: BootstrapAdminRequest) -> User:
        with self._session() as session:
            tenant = session.get(Tenant, payload.tenant_id)
            if tenant is None:
                raise NotFoundError("tenant not found")
            tenant_users = session.exec(select(User).where(User.tenant_id == payload.tenant_id)).first()
            if tenant_users is not None:
                raise ConflictError("tenant already initialized")

            roles_by_name: dict[str, Role] = {}
            for template in ROLE_TEMPLATES:
                role = Role(
                    tenant_id=payload.tenant_id,
                    name=template["name"],
                    description=template["description"],
                    scope=template["scope"],
                    is_system=True,
                )
                session.add(role)
                roles_by_name[role.name] = role
            session.commit()

            for template in ROLE_TEMPLATES:
                role = roles_by_name[template["name"]]
                for rule in template["rules"]:
                    session.add(
                        RoleRule(
                            tenant_id=payload.tenant_id,
                            role_id=role.id,
                            action=rule["action"],
                            subject=rule["subject"],
                            condition=rule.get("condition"),
                            fields=rule.get("fields"),
                            inverted=rule.get("inverted", False),
                        )
                    )

            admin_user = User(
                tenant_id=payload.tenant_id,
                username=payload.username,
                password_hash=hash_password(payload.password),
                is_active=True,
            )
            session.add(admin_user)
            session.commit()
            session.refresh(admin_user)

            session.add(
                UserRole(
                    tenant_id=payload.tenant_id,
                    user_id=admin_user.id,
                    role_id=roles_by_name[ROLE_ADMIN].id,
                )
            )
            session.commit()
            logger.info("tenant %s bootstrapped with administrator %s", payload.tenant_id, admin_user.id)
            return admin_user

    # users

    def create_user(self, actor: Actor, payload: UserCreate) -> User:
        draft = {**payload.model_dump(exclude={"password"}), "tenant_id": actor.tenant_id}
        if not self._user_policy.can_create(actor, draft):
            raise AuthorizationError("not allowed to create users")
        with self._session() as session:
            user = User(
                tenant_id=actor.tenant_id,
                username=payload.username,
                password_hash=hash_password(payload.password),
                is_active=payload.is_active,
                filiale_id=payload.filiale_id,
                managed_filiali=sorted(set(payload.managed_filiali)),
            )
            session.add(user)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("username already exists in tenant") from exc
            session.refresh(user)
        audit_recorder.record(
            tenant_id=actor.tenant_id,
            entity_type="User",
            entity_id=user.id,
            action="create",
            changed_by=actor.id,
            after=snapshot(user),
        )
        return user

    def _get_target(self, session: Session, actor: Actor, user_id: str) -> tuple[User, Actor]:
        user = self._get_scoped_user(session, actor.tenant_id, user_id)
        if user is None:
            raise NotFoundError("user not found")
        return user, self._actor_for(session, user)

    def list_users(self, actor: Actor) -> list[User]:
        with self._session() as session:
            users = list(session.exec(select(User).where(User.tenant_id == actor.tenant_id)).all())
            ability = self._user_policy.ability_for(actor)
            return [
                user
                for user in users
                if self._user_policy.can_read(actor, self._actor_for(session, user), ability)
            ]

    def get_user(self, actor: Actor, user_id: str) -> User:
        with self._session() as session:
            user, target = self._get_target(session, actor, user_id)
        if not self._user_policy.can_read(actor, target):
            raise AuthorizationError("not allowed to read this user")
        return user

    def update_user(self, actor: Actor, user_id: str, payload: UserUpdate) -> User:
        patch = payload.model_dump(exclude_unset=True)
        with self._session() as session:
            user, target = self._get_target(session, actor, user_id)
            if not self._user_policy.can_update(actor, target, patch):
                raise AuthorizationError("not allowed to update this user")
            before = snapshot(user)
            if "password" in patch:
                user.password_hash = hash_password(patch.pop("password"))
            if "managed_filiali" in patch:
                patch["managed_filiali"] = sorted(set(patch["managed_filiali"] or []))
            for key, value in patch.items():
                setattr(user, key, value)
            user.updated_at = now_utc()
            session.add(user)
            session.commit()
            session.refresh(user)
        audit_recorder.record(
            tenant_id=actor.tenant_id,
            entity_type="User",
            entity_id=user.id,
            action="update",
            changed_by=actor.id,
            before=before,
            after=snapshot(user),
        )
        return user

    def delete_user(self, actor: Actor, user_id: str) -> None:
        with self._session() as session:
            user, target = self._get_target(session, actor, user_id)
            if not self._user_policy.can_delete(actor, target):
                raise AuthorizationError("not allowed to delete this user")
            before = snapshot(user)
            session.delete(user)
            session.commit()
        audit_recorder.record(
            tenant_id=actor.tenant_id,
            entity_type="User",
            entity_id=user_id,
            action="delete",
            changed_by=actor.id,
            before=before,
        )

    def bind_user_role(self, actor: Actor, user_id: str, role_id: str) -> None:
        with self._session() as session:
            _, target = self._get_target(session, actor, user_id)
            role = self._get_scoped_role(session, actor.tenant_id, role_id)
            if role is None:
                raise NotFoundError("role not found")
            if not self._user_policy.can_assign_role(actor, target, role.name):
                raise AuthorizationError("not allowed to assign this role")
            session.add(UserRole(tenant_id=actor.tenant_id, user_id=user_id, role_id=role_id))
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("role already bound to user") from exc
        logger.info("role %s bound to user %s by %s", role_id, user_id, actor.id)

    def unbind_user_role(self, actor: Actor, user_id: str, role_id: str) -> None:
        with self._session() as session:
            _, target = self._get_target(session, actor, user_id)
            link = session.get(UserRole, (actor.tenant_id, user_id, role_id))
            if link is None:
                raise NotFoundError("role binding not found")
            role = self._get_scoped_role(session, actor.tenant_id, role_id)
            if role is None or not self._user_policy.can_assign_role(actor, target, role.name):
                raise AuthorizationError("not allowed to remove this role")
            session.delete(link)
            session.commit()
        logger.info("role %s unbound from user %s by %s", role_id, user_id, actor.id)

    # roles

    def create_role(self, actor: Actor, payload: RoleCreate) -> Role:
        draft = {**payload.model_dump(), "tenant_id": actor.tenant_id}
        if not self._role_policy.can_create(actor, draft):
            raise AuthorizationError("not allowed to create roles")
        with self._session() as session:
            role = Role(
                tenant_id=actor.tenant_id,
                name=payload.name,
                description=payload.description,
                scope=payload.scope,
            )
            session.add(role)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("role name already exists in tenant") from exc
            session.refresh(role)
        audit_recorder.record(
            tenant_id=actor.tenant_id,
            entity_type="Role",
            entity_id=role.id,
            action="create",
            changed_by=actor.id,
            after=snapshot(role),
        )
        return role

    def list_roles(self, actor: Actor) -> list[Role]:
        with self._session() as session:
            roles = list(session.exec(select(Role).where(Role.tenant_id == actor.tenant_id)).all())
        ability = self._role_policy.ability_for(actor)
        return [role for role in roles if self._role_policy.can_read(actor, role, ability)]

    def _get_role(self, session: Session, actor: Actor, role_id: str) -> Role:
        role = self._get_scoped_role(session, actor.tenant_id, role_id)
        if role is None:
            raise NotFoundError("role not found")
        return role

    def get_role(self, actor: Actor, role_id: str) -> Role:
        with self._session() as session:
            role = self._get_role(session, actor, role_id)
        if not self._role_policy.can_read(actor, role):
            raise AuthorizationError("not allowed to read this role")
        return role

    def update_role(self, actor: Actor, role_id: str, payload: RoleUpdate) -> Role:
        patch = payload.model_dump(exclude_unset=True)
        with self._session() as session:
            role = self._get_role(session, actor, role_id)
            if not self._role_policy.can_update(actor, role, patch):
                raise AuthorizationError("not allowed to update this role")
            before = snapshot(role)
            for key, value in patch.items():
                setattr(role, key, value)
            session.add(role)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("role name already exists in tenant") from exc
            session.refresh(role)
        audit_recorder.record(
            tenant_id=actor.tenant_id,
            entity_type="Role",
            entity_id=role.id,
            action="update",
            changed_by=actor.id,
            before=before,
            after=snapshot(role),
        )
        return role

    def delete_role(self, actor: Actor, role_id: str) -> None:
        with self._session() as session:
            role = self._get_role(session, actor, role_id)
            if not self._role_policy.can_delete(actor, role):
                raise AuthorizationError("not allowed to delete this role")
            before = snapshot(role)
            for link in session.exec(select(UserRole).where(UserRole.role_id == role_id)).all():
                session.delete(link)
            for rule in session.exec(select(RoleRule).where(RoleRule.role_id == role_id)).all():
                session.delete(rule)
            session.delete(role)
            session.commit()
        audit_recorder.record(
            tenant_id=actor.tenant_id,
            entity_type="Role",
            entity_id=role_id,
            action="delete",
            changed_by=actor.id,
            before=before,
        )
        logger.info("role %s deleted by %s", role_id, actor.id)

    # role rules

    def list_role_rules(self, actor: Actor, role_id: str) -> list[RoleRule]:
        with self._session() as session:
            role = self._get_role(session, actor, role_id)
            if not self._role_policy.can_read(actor, role):
                raise AuthorizationError("not allowed to read this role")
            statement = select(RoleRule).where(RoleRule.role_id == role_id).order_by(col(RoleRule.created_at))
            return list(session.exec(statement).all())

    def add_role_rule(self, actor: Actor, role_id: str, payload: RoleRuleCreate) -> RoleRule:
        self._validate_rule(payload)
        with self._session() as session:
            role = self._get_role(session, actor, role_id)
            if not self._role_policy.can_update(actor, role, {RULES_PATCH_KEY: [payload.model_dump()]}):
                raise AuthorizationError("not allowed to change the rules of this role")
            rule = RoleRule(tenant_id=actor.tenant_id, role_id=role_id, **payload.model_dump())
            session.add(rule)
            session.commit()
            session.refresh(rule)
        audit_recorder.record(
            tenant_id=actor.tenant_id,
            entity_type="RoleRule",
            entity_id=rule.id,
            action="create",
            changed_by=actor.id,
            after=snapshot(rule),
        )
        logger.info("rule %s added to role %s by %s", rule.id, role_id, actor.id)
        return rule

    def remove_role_rule(self, actor: Actor, role_id: str, rule_id: str) -> None:
        with self._session() as session:
            role = self._get_role(session, actor, role_id)
            if not self._role_policy.can_update(actor, role, {RULES_PATCH_KEY: []}):
                raise AuthorizationError("not allowed to change the rules of this role")
            rule = session.exec(
                select(RoleRule).where(RoleRule.role_id == role_id).where(RoleRule.id == rule_id)
            ).first()
            if rule is None:
                raise NotFoundError("role rule not found")
            before = snapshot(rule)
            session.delete(rule)
            session.commit()
        audit_recorder.record(
            tenant_id=actor.tenant_id,
            entity_type="RoleRule",
            entity_id=rule_id,
            action="delete",
            changed_by=actor.id,
            before=before,
        )
        logger.info("rule %s removed from role %s by %s", rule_id, role_id, actor.id)
