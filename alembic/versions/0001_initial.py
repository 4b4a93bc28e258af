"""initial: payments, rental_orders, audit_logs

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18

"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "payments",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default=""),
        sa.Column("mode", sa.String(length=40), nullable=True),
        sa.Column("scheme", sa.String(length=40), nullable=True),
        sa.Column("amount_halalas", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="SAR"),
        sa.Column("metadata_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "rental_orders",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending_payment"),
        sa.Column("merchant_no", sa.String(length=64), nullable=False),
        sa.Column("site_no", sa.String(length=64), nullable=True),
        sa.Column("device_no", sa.String(length=64), nullable=False),
        sa.Column("cart_no", sa.String(length=64), nullable=True),
        sa.Column("cart_index", sa.Integer(), nullable=True),
        sa.Column("return_device_no", sa.String(length=64), nullable=True),
        sa.Column("amount_halalas", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("electricity", sa.Float(), nullable=True),
        sa.Column("payment_id", sa.String(length=64), sa.ForeignKey("payments.id"), nullable=True),
        sa.Column("unlock_requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("unlock_confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("returned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("payment_id", name="uq_rental_orders_payment_id"),
    )
    op.create_index("ix_rental_orders_status", "rental_orders", ["status"])
    op.create_index("ix_rental_orders_merchant_no", "rental_orders", ["merchant_no"])
    op.create_index("ix_rental_orders_device_no", "rental_orders", ["device_no"])
    op.create_index("ix_rental_orders_cart_no", "rental_orders", ["cart_no"])
    op.create_index("ix_rental_orders_created_at", "rental_orders", ["created_at"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("actor", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("entity_type", sa.String(length=40), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("details_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_logs_actor", "audit_logs", ["actor"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"])
    op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"])

def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("rental_orders")
    op.drop_table("payments")
