from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from app.domain.errors import DuplicateRuleError, NotFoundError, RuleStoreError
from app.domain.models import ActorRule, RoleRule, User, now_utc
from app.infra.db import get_engine

logger = logging.getLogger(__name__)

ACTOR_RULE_MUTABLE_FIELDS = (
    "action",
    "subject",
    "condition",
    "fields",
    "inverted",
    "priority",
    "reason",
    "expires_at",
    "updated_by",
)


class SqlRuleStore:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def fetch_role_rules(self, role_ids: Sequence[str]) -> list[RoleRule]:
        if not role_ids:
            return []
        try:
            with self._session() as session:
                statement = (
                    select(RoleRule)
                    .where(col(RoleRule.role_id).in_(list(role_ids)))
                    .order_by(col(RoleRule.created_at))
                )
                return list(session.exec(statement).all())
        except SQLAlchemyError as exc:
            raise RuleStoreError("role rules unavailable") from exc

    def fetch_actor_rules(self, actor_id: str, as_of: datetime) -> list[ActorRule]:
        try:
            with self._session() as session:
                statement = (
                    select(ActorRule)
                    .where(ActorRule.user_id == actor_id)
                    .where(col(ActorRule.deleted_at).is_(None))
                    .where(or_(col(ActorRule.expires_at).is_(None), col(ActorRule.expires_at) > as_of))
                    .order_by(col(ActorRule.priority).desc(), col(ActorRule.created_at).desc())
                )
                return list(session.exec(statement).all())
        except SQLAlchemyError as exc:
            raise RuleStoreError("actor rules unavailable") from exc

    def list_actor_rules(self, tenant_id: str, actor_id: str) -> list[ActorRule]:
        with self._session() as session:
            statement = (
                select(ActorRule)
                .where(ActorRule.tenant_id == tenant_id)
                .where(ActorRule.user_id == actor_id)
                .where(col(ActorRule.deleted_at).is_(None))
                .order_by(col(ActorRule.priority).desc(), col(ActorRule.created_at).desc())
            )
            return list(session.exec(statement).all())

    def get_actor_rule(self, rule_id: str) -> ActorRule:
        with self._session() as session:
            return self._get_live_rule(session, rule_id)

    def _get_live_rule(self, session: Session, rule_id: str) -> ActorRule:
        rule = session.exec(
            select(ActorRule).where(ActorRule.id == rule_id).where(col(ActorRule.deleted_at).is_(None))
        ).first()
        if rule is None:
            raise NotFoundError("actor rule not found")
        return rule

    def _live_duplicate(
        self,
        session: Session,
        *,
        actor_id: str,
        action: Any,
        subject: Any,
        inverted: bool,
        exclude_id: str | None = None,
    ) -> ActorRule | None:
        statement = (
            select(ActorRule)
            .where(ActorRule.user_id == actor_id)
            .where(ActorRule.action == action)
            .where(ActorRule.subject == subject)
            .where(ActorRule.inverted == inverted)
            .where(col(ActorRule.deleted_at).is_(None))
        )
        if exclude_id is not None:
            statement = statement.where(ActorRule.id != exclude_id)
        return session.exec(statement).first()

    def create_actor_rule(self, actor_id: str, rule: Mapping[str, Any]) -> ActorRule:
        with self._session() as session:
            owner = session.get(User, actor_id)
            if owner is None:
                raise NotFoundError("user not found")
            inverted = bool(rule.get("inverted", False))
            # Check-then-write; a concurrent duplicate still trips the partial unique index.
            if self._live_duplicate(
                session,
                actor_id=actor_id,
                action=rule["action"],
                subject=rule["subject"],
                inverted=inverted,
            ):
                raise DuplicateRuleError("an actor rule with this action and subject already exists")
            row = ActorRule(
                tenant_id=owner.tenant_id,
                user_id=actor_id,
                action=rule["action"],
                subject=rule["subject"],
                condition=rule.get("condition"),
                fields=rule.get("fields"),
                inverted=inverted,
                priority=rule.get("priority") or 10,
                reason=rule.get("reason"),
                expires_at=rule.get("expires_at"),
                created_by=rule.get("created_by"),
                updated_by=rule.get("created_by"),
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateRuleError("an actor rule with this action and subject already exists") from exc
            session.refresh(row)
            logger.info("actor rule %s created for user %s", row.id, actor_id)
            return row

    def update_actor_rule(self, rule_id: str, patch: Mapping[str, Any]) -> ActorRule:
        with self._session() as session:
            row = self._get_live_rule(session, rule_id)
            changes = {key: value for key, value in patch.items() if key in ACTOR_RULE_MUTABLE_FIELDS}
            if {"action", "subject", "inverted"} & set(changes) and self._live_duplicate(
                session,
                actor_id=row.user_id,
                action=changes.get("action", row.action),
                subject=changes.get("subject", row.subject),
                inverted=bool(changes.get("inverted", row.inverted)),
                exclude_id=row.id,
            ):
                raise DuplicateRuleError("an actor rule with this action and subject already exists")
            for key, value in changes.items():
                setattr(row, key, value)
            row.updated_at = now_utc()
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateRuleError("an actor rule with this action and subject already exists") from exc
            session.refresh(row)
            logger.info("actor rule %s updated", row.id)
            return row

    def tombstone_actor_rule(self, rule_id: str) -> None:
        with self._session() as session:
            row = self._get_live_rule(session, rule_id)
            row.deleted_at = now_utc()
            session.add(row)
            session.commit()
            logger.info("actor rule %s tombstoned", rule_id)
