"""kanban_core_tables

Creates the electronic kanban schema:
  - accounts, products, statuses  — reference data
  - status_chains                 — named status progressions
  - status_chain_entries          — ordered, role-tagged steps of a chain
  - kanban_chains                 — customer/supplier/product agreements
  - kanbans                       — physical cards
  - kanban_histories              — status transitions per card

Tables created conditionally (IF NOT EXISTS semantics) so the revision can
run against a development database already populated by db.create_all().

Revision ID: 7c1e4a9b2d10
Revises:
Create Date: 2026-10-19 09:12:44.118305
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '7c1e4a9b2d10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Reference data ────────────────────────────────────────────────────
    if "accounts" not in existing:
        op.create_table(
            "accounts",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("vat_number", sa.String(length=40), nullable=True),
            sa.Column("address", sa.String(length=300), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )

    if "products" not in existing:
        op.create_table(
            "products",
            sa.Column("product_id", sa.String(length=64), nullable=False,
                      comment="Catalogue code, e.g. P-1001"),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.PrimaryKeyConstraint("product_id"),
        )

    if "statuses" not in existing:
        op.create_table(
            "statuses",
            sa.Column("status_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("color", sa.String(length=30), nullable=True),
            sa.PrimaryKeyConstraint("status_id"),
        )

    # ── Status chains ─────────────────────────────────────────────────────
    if "status_chains" not in existing:
        op.create_table(
            "status_chains",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=150), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )

    if "status_chain_entries" not in existing:
        op.create_table(
            "status_chain_entries",
            sa.Column("status_chain_id", sa.Integer(), nullable=False),
            sa.Column("status_id", sa.Integer(), nullable=False),
            sa.Column("order", sa.Integer(), nullable=False),
            sa.Column("actor_role", sa.Integer(), nullable=False,
                      comment="1=supplier, 2=customer"),
            sa.ForeignKeyConstraint(["status_chain_id"], ["status_chains.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["status_id"], ["statuses.status_id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("status_chain_id", "status_id"),
            sa.UniqueConstraint("status_chain_id", "order", name="uq_status_chain_entry_order"),
            sa.CheckConstraint('"order" > 0', name="ck_status_chain_entry_order_positive"),
        )

    # ── Kanban chains & cards ─────────────────────────────────────────────
    if "kanban_chains" not in existing:
        op.create_table(
            "kanban_chains",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("customer_id", sa.Integer(), nullable=False),
            sa.Column("supplier_id", sa.Integer(), nullable=False),
            sa.Column("product_id", sa.String(length=64), nullable=False),
            sa.Column("status_chain_id", sa.Integer(), nullable=False),
            sa.Column("lead_time_days", sa.Integer(), nullable=False),
            sa.Column("quantity", sa.Float(), nullable=False),
            sa.Column("container_type", sa.String(length=100), nullable=True),
            sa.Column("active_card_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["customer_id"], ["accounts.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["supplier_id"], ["accounts.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["product_id"], ["products.product_id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["status_chain_id"], ["status_chains.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint("active_card_count >= 0", name="ck_kanban_chain_active_count"),
        )
        for col in ("customer_id", "supplier_id", "product_id", "status_chain_id"):
            op.create_index(f"ix_kanban_chains_{col}", "kanban_chains", [col])

    if "kanbans" not in existing:
        op.create_table(
            "kanbans",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("kanban_chain_id", sa.Integer(), nullable=False),
            sa.Column("current_status_id", sa.Integer(), nullable=False),
            sa.Column("lead_time_days", sa.Integer(), nullable=False),
            sa.Column("container_type", sa.String(length=100), nullable=True),
            sa.Column("quantity", sa.Float(), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
            sa.Column("retired_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["kanban_chain_id"], ["kanban_chains.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["current_status_id"], ["statuses.status_id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_kanbans_chain_active", "kanbans", ["kanban_chain_id", "is_active"])
        op.create_index("ix_kanbans_current_status_id", "kanbans", ["current_status_id"])

    if "kanban_histories" not in existing:
        op.create_table(
            "kanban_histories",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("kanban_id", sa.Integer(), nullable=False),
            sa.Column("previous_status_id", sa.Integer(), nullable=True),
            sa.Column("next_status_id", sa.Integer(), nullable=False),
            sa.Column("actor_role", sa.Integer(), nullable=True,
                      comment="Role that moved the card; null for admin moves"),
            sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["kanban_id"], ["kanbans.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["previous_status_id"], ["statuses.status_id"]),
            sa.ForeignKeyConstraint(["next_status_id"], ["statuses.status_id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_kanban_histories_kanban_id", "kanban_histories", ["kanban_id"])


def downgrade():
    op.drop_table("kanban_histories")
    op.drop_table("kanbans")
    op.drop_table("kanban_chains")
    op.drop_table("status_chain_entries")
    op.drop_table("status_chains")
    op.drop_table("statuses")
    op.drop_table("products")
    op.drop_table("accounts")
