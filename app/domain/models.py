from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, ClassVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from sqlalchemy import JSON, CheckConstraint, Column, ForeignKeyConstraint, Index, UniqueConstraint, text
from sqlmodel import Field, SQLModel


def now_utc() -> datetime:
    return datetime.now(UTC)


class RuleAction(StrEnum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE = "manage"


class SubjectType(StrEnum):
    FILIALE = "Filiale"
    EDIFICIO = "Edificio"
    PIANO = "Piano"
    LOCALE = "Locale"
    ASSET = "Asset"
    USER = "User"
    ROLE = "Role"
    ACTOR_RULE = "ActorRule"
    PUBLIC_CONTENT = "PublicContent"
    ALL = "all"


class RoleScope(StrEnum):
    TENANT = "TENANT"
    AREA = "AREA"
    BRANCH = "BRANCH"


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(index=True)
    actor_id: str | None = Field(default=None, index=True)
    action: str
    resource: str
    method: str
    status_code: int
    ts: datetime = Field(default_factory=now_utc, index=True)
    detail: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class EntityHistory(SQLModel, table=True):
    __tablename__ = "entity_history"
    __table_args__ = (Index("ix_entity_history_entity", "tenant_id", "entity_type", "entity_id"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(index=True)
    entity_type: str
    entity_id: str
    action: str
    changed_by: str | None = Field(default=None, index=True)
    before: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    after: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    ts: datetime = Field(default_factory=now_utc, index=True)


class Tenant(SQLModel, table=True):
    __tablename__ = "tenants"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str = Field(index=True, unique=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class User(SQLModel, table=True):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("tenant_id", "username", name="uq_users_tenant_username"),
        UniqueConstraint("tenant_id", "id", name="uq_users_tenant_id_id"),
    )

    subject_type: ClassVar[SubjectType] = SubjectType.USER

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    username: str = Field(index=True)
    password_hash: str
    is_active: bool = Field(default=True)
    filiale_id: str | None = Field(default=None, index=True)
    managed_filiali: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class Role(SQLModel, table=True):
    __tablename__ = "roles"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_roles_tenant_name"),
        UniqueConstraint("tenant_id", "id", name="uq_roles_tenant_id_id"),
    )

    subject_type: ClassVar[SubjectType] = SubjectType.ROLE

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    name: str = Field(index=True)
    description: str | None = None
    scope: RoleScope = Field(default=RoleScope.BRANCH)
    is_system: bool = Field(default=False)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class UserRole(SQLModel, table=True):
    __tablename__ = "user_roles"
    __table_args__ = (
        ForeignKeyConstraint(
            ["tenant_id", "user_id"],
            ["users.tenant_id", "users.id"],
            ondelete="CASCADE",
        ),
        ForeignKeyConstraint(
            ["tenant_id", "role_id"],
            ["roles.tenant_id", "roles.id"],
            ondelete="CASCADE",
        ),
        Index("ix_user_roles_tenant_user", "tenant_id", "user_id"),
        Index("ix_user_roles_tenant_role", "tenant_id", "role_id"),
    )

    tenant_id: str = Field(primary_key=True)
    user_id: str = Field(primary_key=True)
    role_id: str = Field(primary_key=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class RoleRule(SQLModel, table=True):
    __tablename__ = "role_rules"
    __table_args__ = (
        ForeignKeyConstraint(
            ["tenant_id", "role_id"],
            ["roles.tenant_id", "roles.id"],
            ondelete="CASCADE",
        ),
        Index("ix_role_rules_action_subject", "action", "subject"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(index=True)
    role_id: str = Field(index=True)
    action: RuleAction
    subject: SubjectType
    condition: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    fields: list[str] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    inverted: bool = Field(default=False)
    reason: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)


class ActorRule(SQLModel, table=True):
    __tablename__ = "actor_rules"
    __table_args__ = (
        ForeignKeyConstraint(
            ["tenant_id", "user_id"],
            ["users.tenant_id", "users.id"],
            ondelete="CASCADE",
        ),
        Index("ix_actor_rules_action_subject", "action", "subject"),
        Index(
            "uq_actor_rules_live_tuple",
            "user_id",
            "action",
            "subject",
            "inverted",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
        CheckConstraint("priority BETWEEN 1 AND 100", name="ck_actor_rules_priority_range"),
    )

    subject_type: ClassVar[SubjectType] = SubjectType.ACTOR_RULE

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(index=True)
    user_id: str = Field(index=True)
    action: RuleAction
    subject: SubjectType
    condition: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    fields: list[str] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    inverted: bool = Field(default=False)
    priority: int = Field(default=10)
    reason: str | None = None
    expires_at: datetime | None = Field(default=None, index=True)
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)
    deleted_at: datetime | None = Field(default=None, index=True)


class Filiale(SQLModel, table=True):
    __tablename__ = "filiali"
    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_filiali_tenant_code"),
        UniqueConstraint("tenant_id", "id", name="uq_filiali_tenant_id_id"),
    )

    subject_type: ClassVar[SubjectType] = SubjectType.FILIALE

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    code: str = Field(index=True)
    name: str
    address: str | None = None
    city: str | None = None
    telefono: str | None = None
    email: str | None = None
    fax: str | None = None
    notes: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class Edificio(SQLModel, table=True):
    __tablename__ = "edifici"
    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_edifici_tenant_code"),
        ForeignKeyConstraint(
            ["tenant_id", "filiale_id"],
            ["filiali.tenant_id", "filiali.id"],
            ondelete="RESTRICT",
        ),
    )

    subject_type: ClassVar[SubjectType] = SubjectType.EDIFICIO

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    filiale_id: str = Field(index=True)
    code: str = Field(index=True)
    name: str
    description: str | None = None
    notes: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class Piano(SQLModel, table=True):
    __tablename__ = "piani"
    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_piani_tenant_code"),
        Index("ix_piani_tenant_edificio", "tenant_id", "edificio_id"),
    )

    subject_type: ClassVar[SubjectType] = SubjectType.PIANO

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    filiale_id: str = Field(foreign_key="filiali.id", index=True)
    edificio_id: str = Field(foreign_key="edifici.id")
    code: str = Field(index=True)
    name: str
    level: int = 0
    description: str | None = None
    notes: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class Locale(SQLModel, table=True):
    __tablename__ = "locali"
    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_locali_tenant_code"),
        Index("ix_locali_tenant_piano", "tenant_id", "piano_id"),
    )

    subject_type: ClassVar[SubjectType] = SubjectType.LOCALE

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    filiale_id: str = Field(foreign_key="filiali.id", index=True)
    edificio_id: str = Field(foreign_key="edifici.id")
    piano_id: str = Field(foreign_key="piani.id")
    code: str = Field(index=True)
    name: str
    usage: str | None = None
    area_mq: float | None = None
    description: str | None = None
    notes: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class EquipmentType(StrEnum):
    ATTREZZATURA = "attrezzatura"
    STRUMENTO_MISURA = "strumento_misura"
    IMPIANTO = "impianto"


class StatoDotazione(SQLModel, table=True):
    __tablename__ = "stati_dotazione"
    __table_args__ = (UniqueConstraint("tenant_id", "code", name="uq_stati_dotazione_tenant_code"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    code: str
    description: str
    color: str | None = None
    active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class TipoPossesso(SQLModel, table=True):
    __tablename__ = "tipi_possesso"
    __table_args__ = (UniqueConstraint("tenant_id", "code", name="uq_tipi_possesso_tenant_code"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    code: str
    description: str
    active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class StatoIntervento(SQLModel, table=True):
    __tablename__ = "stati_interventi"
    __table_args__ = (UniqueConstraint("tenant_id", "code", name="uq_stati_interventi_tenant_code"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    code: str
    description: str
    color: str | None = None
    active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class Fornitore(SQLModel, table=True):
    __tablename__ = "fornitori"
    __table_args__ = (UniqueConstraint("tenant_id", "code", name="uq_fornitori_tenant_code"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    code: str
    description: str
    ragione_sociale: str | None = None
    partita_iva: str | None = None
    codice_fiscale: str | None = None
    indirizzo: str | None = None
    cap: str | None = None
    citta: str | None = None
    provincia: str | None = None
    telefono: str | None = None
    email: str | None = None
    pec: str | None = None
    sito_web: str | None = None
    notes: str | None = None
    active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class Asset(SQLModel, table=True):
    __tablename__ = "assets"
    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_assets_tenant_code"),
        Index("ix_assets_tenant_filiale", "tenant_id", "filiale_id"),
    )

    subject_type: ClassVar[SubjectType] = SubjectType.ASSET

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    filiale_id: str = Field(foreign_key="filiali.id", index=True)
    edificio_id: str | None = Field(default=None, foreign_key="edifici.id")
    piano_id: str | None = Field(default=None, foreign_key="piani.id")
    locale_id: str | None = Field(default=None, foreign_key="locali.id")
    code: str = Field(index=True)
    name: str
    asset_type: EquipmentType | None = Field(default=None, index=True)
    category: str | None = None
    serial_number: str | None = None
    description: str | None = None
    scatola: str | None = None
    scaffale: str | None = None
    notes: str | None = None
    stato_dotazione_id: str | None = Field(default=None, foreign_key="stati_dotazione.id")
    tipo_possesso_id: str | None = Field(default=None, foreign_key="tipi_possesso.id")
    fornitore_id: str | None = Field(default=None, foreign_key="fornitori.id")
    stato_interventi_id: str | None = Field(default=None, foreign_key="stati_interventi.id")
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class Attrezzatura(SQLModel, table=True):
    """Tool details of an asset; authorization follows the parent asset."""

    __tablename__ = "attrezzature"

    equipment_type: ClassVar[EquipmentType] = EquipmentType.ATTREZZATURA
    detail_fields: ClassVar[tuple[str, ...]] = ("altro_fornitore_id", "super_tool", "categoria", "descrizione")

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    asset_id: str = Field(foreign_key="assets.id", unique=True)
    altro_fornitore_id: str | None = Field(default=None, foreign_key="fornitori.id")
    super_tool: bool = Field(default=False)
    categoria: str | None = Field(default=None, index=True)
    descrizione: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class StrumentoDiMisura(SQLModel, table=True):
    __tablename__ = "strumenti_di_misura"

    equipment_type: ClassVar[EquipmentType] = EquipmentType.STRUMENTO_MISURA
    detail_fields: ClassVar[tuple[str, ...]] = ("categoria", "descrizione")

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    asset_id: str = Field(foreign_key="assets.id", unique=True)
    categoria: str | None = Field(default=None, index=True)
    descrizione: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class ImpiantoTecnologico(SQLModel, table=True):
    __tablename__ = "impianti_tecnologici"

    equipment_type: ClassVar[EquipmentType] = EquipmentType.IMPIANTO
    detail_fields: ClassVar[tuple[str, ...]] = ("tipo_alimentazione", "categoria", "descrizione")

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    asset_id: str = Field(foreign_key="assets.id", unique=True)
    tipo_alimentazione: str | None = None
    categoria: str | None = Field(default=None, index=True)
    descrizione: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class TenantCreate(BaseModel):
    name: str


class TenantUpdate(BaseModel):
    name: str


class TenantRead(ORMReadModel):
    id: str
    name: str
    created_at: datetime


class UserCreate(BaseModel):
    username: str
    password: str
    is_active: bool = True
    filiale_id: str | None = None
    managed_filiali: list[str] = PydanticField(default_factory=list)


class UserUpdate(BaseModel):
    password: str | None = None
    is_active: bool | None = None
    filiale_id: str | None = None
    managed_filiali: list[str] | None = None


class UserRead(ORMReadModel):
    id: str
    tenant_id: str
    username: str
    is_active: bool
    filiale_id: str | None = None
    managed_filiali: list[str] = PydanticField(default_factory=list)
    created_at: datetime


class RoleCreate(BaseModel):
    name: str
    description: str | None = None
    scope: RoleScope = RoleScope.BRANCH


class RoleUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    scope: RoleScope | None = None


class RoleRead(ORMReadModel):
    id: str
    tenant_id: str
    name: str
    description: str | None = None
    scope: RoleScope
    is_system: bool
    created_at: datetime


class RoleRuleCreate(BaseModel):
    action: RuleAction
    subject: SubjectType
    condition: dict[str, Any] | None = None
    fields: list[str] | None = None
    inverted: bool = False
    reason: str | None = None


class RoleRuleRead(ORMReadModel):
    id: str
    role_id: str
    action: RuleAction
    subject: SubjectType
    condition: dict[str, Any] | None = None
    fields: list[str] | None = None
    inverted: bool
    reason: str | None = None
    created_at: datetime


class ActorRuleCreate(BaseModel):
    action: RuleAction
    subject: SubjectType
    condition: dict[str, Any] | None = None
    fields: list[str] | None = None
    inverted: bool = False
    priority: int = PydanticField(default=10, ge=1, le=100)
    reason: str | None = None
    expires_at: datetime | None = None


class ActorRuleUpdate(BaseModel):
    action: RuleAction | None = None
    subject: SubjectType | None = None
    condition: dict[str, Any] | None = None
    fields: list[str] | None = None
    inverted: bool | None = None
    priority: int | None = PydanticField(default=None, ge=1, le=100)
    reason: str | None = None
    expires_at: datetime | None = None


class ActorRuleRead(ORMReadModel):
    id: str
    tenant_id: str
    user_id: str
    action: RuleAction
    subject: SubjectType
    condition: dict[str, Any] | None = None
    fields: list[str] | None = None
    inverted: bool
    priority: int
    reason: str | None = None
    expires_at: datetime | None = None
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime
    updated_at: datetime


class EffectiveRuleRead(BaseModel):
    source: str
    rule_id: str | None = None
    action: RuleAction
    subject: SubjectType
    condition: dict[str, Any] | None = None
    fields: list[str] | None = None
    inverted: bool
    priority: int


class AbilityCheckRead(BaseModel):
    action: RuleAction
    subject: SubjectType
    allowed: bool


class FilialeCreate(BaseModel):
    code: str
    name: str
    address: str | None = None
    city: str | None = None
    telefono: str | None = None
    email: str | None = None
    fax: str | None = None
    notes: str | None = None


class FilialeUpdate(BaseModel):
    code: str | None = None
    name: str | None = None
    address: str | None = None
    city: str | None = None
    telefono: str | None = None
    email: str | None = None
    fax: str | None = None
    notes: str | None = None


class FilialeRead(ORMReadModel):
    id: str
    tenant_id: str
    code: str
    name: str
    address: str | None = None
    city: str | None = None
    telefono: str | None = None
    email: str | None = None
    fax: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class EdificioCreate(BaseModel):
    filiale_id: str
    code: str
    name: str
    description: str | None = None
    notes: str | None = None


class EdificioUpdate(BaseModel):
    code: str | None = None
    name: str | None = None
    description: str | None = None
    notes: str | None = None


class EdificioRead(ORMReadModel):
    id: str
    tenant_id: str
    filiale_id: str
    code: str
    name: str
    description: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class PianoCreate(BaseModel):
    edificio_id: str
    code: str
    name: str
    level: int = 0
    description: str | None = None
    notes: str | None = None


class PianoUpdate(BaseModel):
    code: str | None = None
    name: str | None = None
    level: int | None = None
    description: str | None = None
    notes: str | None = None


class PianoRead(ORMReadModel):
    id: str
    tenant_id: str
    filiale_id: str
    edificio_id: str
    code: str
    name: str
    level: int
    description: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class LocaleCreate(BaseModel):
    piano_id: str
    code: str
    name: str
    usage: str | None = None
    area_mq: float | None = PydanticField(default=None, ge=0)
    description: str | None = None
    notes: str | None = None


class LocaleUpdate(BaseModel):
    code: str | None = None
    name: str | None = None
    usage: str | None = None
    area_mq: float | None = PydanticField(default=None, ge=0)
    description: str | None = None
    notes: str | None = None


class LocaleRead(ORMReadModel):
    id: str
    tenant_id: str
    filiale_id: str
    edificio_id: str
    piano_id: str
    code: str
    name: str
    usage: str | None = None
    area_mq: float | None = None
    description: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class AssetCreate(BaseModel):
    filiale_id: str
    edificio_id: str | None = None
    piano_id: str | None = None
    locale_id: str | None = None
    code: str
    name: str
    category: str | None = None
    serial_number: str | None = None
    description: str | None = None
    scatola: str | None = None
    scaffale: str | None = None
    notes: str | None = None
    stato_dotazione_id: str | None = None
    tipo_possesso_id: str | None = None
    fornitore_id: str | None = None
    stato_interventi_id: str | None = None


class AssetUpdate(BaseModel):
    filiale_id: str | None = None
    edificio_id: str | None = None
    piano_id: str | None = None
    locale_id: str | None = None
    code: str | None = None
    name: str | None = None
    category: str | None = None
    serial_number: str | None = None
    description: str | None = None
    scatola: str | None = None
    scaffale: str | None = None
    notes: str | None = None
    stato_dotazione_id: str | None = None
    tipo_possesso_id: str | None = None
    fornitore_id: str | None = None
    stato_interventi_id: str | None = None


class AssetRead(ORMReadModel):
    id: str
    tenant_id: str
    filiale_id: str
    edificio_id: str | None = None
    piano_id: str | None = None
    locale_id: str | None = None
    code: str
    name: str
    asset_type: EquipmentType | None = None
    category: str | None = None
    serial_number: str | None = None
    description: str | None = None
    scatola: str | None = None
    scaffale: str | None = None
    notes: str | None = None
    stato_dotazione_id: str | None = None
    tipo_possesso_id: str | None = None
    fornitore_id: str | None = None
    stato_interventi_id: str | None = None
    created_at: datetime
    updated_at: datetime


class AttrezzaturaCreate(AssetCreate):
    altro_fornitore_id: str | None = None
    super_tool: bool = False
    categoria: str | None = None
    descrizione: str | None = PydanticField(default=None, max_length=255)


class AttrezzaturaUpdate(BaseModel):
    altro_fornitore_id: str | None = None
    super_tool: bool | None = None
    categoria: str | None = None
    descrizione: str | None = PydanticField(default=None, max_length=255)


class AttrezzaturaRead(ORMReadModel):
    id: str
    tenant_id: str
    asset_id: str
    altro_fornitore_id: str | None = None
    super_tool: bool
    categoria: str | None = None
    descrizione: str | None = None
    created_at: datetime
    updated_at: datetime


class StrumentoDiMisuraCreate(AssetCreate):
    categoria: str | None = None
    descrizione: str | None = PydanticField(default=None, max_length=255)


class StrumentoDiMisuraUpdate(BaseModel):
    categoria: str | None = None
    descrizione: str | None = PydanticField(default=None, max_length=255)


class StrumentoDiMisuraRead(ORMReadModel):
    id: str
    tenant_id: str
    asset_id: str
    categoria: str | None = None
    descrizione: str | None = None
    created_at: datetime
    updated_at: datetime


class ImpiantoTecnologicoCreate(AssetCreate):
    tipo_alimentazione: str | None = None
    categoria: str | None = None
    descrizione: str | None = PydanticField(default=None, max_length=255)


class ImpiantoTecnologicoUpdate(BaseModel):
    tipo_alimentazione: str | None = None
    categoria: str | None = None
    descrizione: str | None = PydanticField(default=None, max_length=255)


class ImpiantoTecnologicoRead(ORMReadModel):
    id: str
    tenant_id: str
    asset_id: str
    tipo_alimentazione: str | None = None
    categoria: str | None = None
    descrizione: str | None = None
    created_at: datetime
    updated_at: datetime


class StatoCreate(BaseModel):
    """Body for the colored status lookups (stati dotazione, stati interventi)."""

    code: str = PydanticField(min_length=1)
    description: str = PydanticField(min_length=1)
    color: str | None = None
    active: bool = True


class StatoUpdate(BaseModel):
    code: str | None = PydanticField(default=None, min_length=1)
    description: str | None = PydanticField(default=None, min_length=1)
    color: str | None = None
    active: bool | None = None


class TipoPossessoCreate(BaseModel):
    code: str = PydanticField(min_length=1)
    description: str = PydanticField(min_length=1)
    active: bool = True


class TipoPossessoUpdate(BaseModel):
    code: str | None = PydanticField(default=None, min_length=1)
    description: str | None = PydanticField(default=None, min_length=1)
    active: bool | None = None


class LookupRead(ORMReadModel):
    id: str
    tenant_id: str
    code: str
    description: str
    color: str | None = None
    active: bool
    created_at: datetime
    updated_at: datetime


class FornitoreCreate(BaseModel):
    code: str = PydanticField(min_length=1)
    description: str = PydanticField(min_length=1)
    ragione_sociale: str | None = None
    partita_iva: str | None = None
    codice_fiscale: str | None = None
    indirizzo: str | None = None
    cap: str | None = None
    citta: str | None = None
    provincia: str | None = None
    telefono: str | None = None
    email: str | None = PydanticField(default=None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    pec: str | None = PydanticField(default=None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    sito_web: str | None = None
    notes: str | None = None
    active: bool = True


class FornitoreUpdate(BaseModel):
    code: str | None = PydanticField(default=None, min_length=1)
    description: str | None = PydanticField(default=None, min_length=1)
    ragione_sociale: str | None = None
    partita_iva: str | None = None
    codice_fiscale: str | None = None
    indirizzo: str | None = None
    cap: str | None = None
    citta: str | None = None
    provincia: str | None = None
    telefono: str | None = None
    email: str | None = PydanticField(default=None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    pec: str | None = PydanticField(default=None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    sito_web: str | None = None
    notes: str | None = None
    active: bool | None = None


class FornitoreRead(ORMReadModel):
    id: str
    tenant_id: str
    code: str
    description: str
    ragione_sociale: str | None = None
    partita_iva: str | None = None
    codice_fiscale: str | None = None
    indirizzo: str | None = None
    cap: str | None = None
    citta: str | None = None
    provincia: str | None = None
    telefono: str | None = None
    email: str | None = None
    pec: str | None = None
    sito_web: str | None = None
    notes: str | None = None
    active: bool
    created_at: datetime
    updated_at: datetime


class EntityHistoryRead(ORMReadModel):
    id: str
    entity_type: str
    entity_id: str
    action: str
    changed_by: str | None = None
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    ts: datetime


class DevLoginRequest(BaseModel):
    tenant_id: str
    username: str
    password: str


class BootstrapAdminRequest(BaseModel):
    tenant_id: str
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
