"""equipment kinds and asset lookups

Revision ID: 202610190002
Revises: 202610190001
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "202610190002"
down_revision = "202610190001"
branch_labels = None
depends_on = None

ASSET_REFERENCES = (
    ("stato_dotazione_id", "stati_dotazione"),
    ("tipo_possesso_id", "tipi_possesso"),
    ("fornitore_id", "fornitori"),
    ("stato_interventi_id", "stati_interventi"),
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _lookup_table(name: str, *columns: sa.Column) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        *columns,
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "code", name=f"uq_{name}_tenant_code"),
    )
    op.create_index(f"ix_{name}_tenant_id", name, ["tenant_id"])
    op.create_index(f"ix_{name}_created_at", name, ["created_at"])


def _detail_table(name: str, *columns: sa.Column, constraints: tuple = ()) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("asset_id", sa.String(), nullable=False),
        *columns,
        sa.Column("categoria", sa.String(), nullable=True),
        sa.Column("descrizione", sa.String(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(["asset_id"], ["assets.id"]),
        *constraints,
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("asset_id"),
    )
    op.create_index(f"ix_{name}_tenant_id", name, ["tenant_id"])
    op.create_index(f"ix_{name}_categoria", name, ["categoria"])
    op.create_index(f"ix_{name}_created_at", name, ["created_at"])


def upgrade() -> None:
    _lookup_table("stati_dotazione", sa.Column("color", sa.String(), nullable=True))
    _lookup_table("tipi_possesso")
    _lookup_table("stati_interventi", sa.Column("color", sa.String(), nullable=True))
    _lookup_table(
        "fornitori",
        *(
            sa.Column(column, sa.String(), nullable=True)
            for column in (
                "ragione_sociale",
                "partita_iva",
                "codice_fiscale",
                "indirizzo",
                "cap",
                "citta",
                "provincia",
                "telefono",
                "email",
                "pec",
                "sito_web",
                "notes",
            )
        ),
    )

    with op.batch_alter_table("assets") as batch_op:
        batch_op.add_column(sa.Column("asset_type", sa.String(length=20), nullable=True))
        for column, table in ASSET_REFERENCES:
            batch_op.add_column(sa.Column(column, sa.String(), nullable=True))
            batch_op.create_foreign_key(f"fk_assets_{column}", table, [column], ["id"])
        batch_op.create_index("ix_assets_asset_type", ["asset_type"])

    _detail_table(
        "attrezzature",
        sa.Column("altro_fornitore_id", sa.String(), nullable=True),
        sa.Column("super_tool", sa.Boolean(), nullable=False, server_default=sa.false()),
        constraints=(sa.ForeignKeyConstraint(["altro_fornitore_id"], ["fornitori.id"]),),
    )
    _detail_table("strumenti_di_misura")
    _detail_table("impianti_tecnologici", sa.Column("tipo_alimentazione", sa.String(), nullable=True))


def downgrade() -> None:
    for table in ("impianti_tecnologici", "strumenti_di_misura", "attrezzature"):
        op.drop_table(table)
    with op.batch_alter_table("assets") as batch_op:
        batch_op.drop_index("ix_assets_asset_type")
        for column, _table in reversed(ASSET_REFERENCES):
            batch_op.drop_constraint(f"fk_assets_{column}", type_="foreignkey")
            batch_op.drop_column(column)
        batch_op.drop_column("asset_type")
    for table in ("fornitori", "stati_interventi", "tipi_possesso", "stati_dotazione"):
        op.drop_table(table)
