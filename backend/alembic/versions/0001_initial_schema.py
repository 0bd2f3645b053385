"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates all tables for the events rental marketplace:
suppliers, offerings, event_briefs, proposals, proposal_lines,
order_groups, orders, order_items, order_status_changes,
payments, payment_reconciliations.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EVENT_TYPES = ("mariage", "bapteme", "anniversaire", "fete_entreprise", "communion", "fiancailles", "autre")
ORDER_STATUSES = ("pending", "confirmed", "in_progress", "completed", "cancelled")


def upgrade() -> None:
    # --- suppliers ---
    op.create_table(
        "suppliers",
        sa.Column("supplier_id", sa.String(36), primary_key=True),
        sa.Column("display_name", sa.String(150), nullable=False),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- offerings ---
    op.create_table(
        "offerings",
        sa.Column("offering_id", sa.String(36), primary_key=True),
        sa.Column("supplier_id", sa.String(36), sa.ForeignKey("suppliers.supplier_id"), nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("price_per_day", sa.Integer, nullable=False),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("quantity_available", sa.Integer, nullable=False, server_default="1"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- event_briefs ---
    op.create_table(
        "event_briefs",
        sa.Column("brief_id", sa.String(36), primary_key=True),
        sa.Column("client_id", sa.String(36), nullable=False, index=True),
        sa.Column("event_type", sa.Enum(*EVENT_TYPES, name="eventtype"), nullable=False),
        sa.Column("event_name", sa.String(255), nullable=True),
        sa.Column("budget_min", sa.Integer, nullable=False, server_default="0"),
        sa.Column("budget_max", sa.Integer, nullable=False),
        sa.Column("guest_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("event_date", sa.Date, nullable=True),
        sa.Column("event_location", sa.String(255), nullable=True),
        sa.Column("services_needed", sa.JSON, nullable=False),
        sa.Column("additional_notes", sa.Text, nullable=True),
        sa.Column("applied_recommendation", sa.JSON, nullable=True),
        sa.Column("status", sa.Enum("draft", "pending", name="briefstatus"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- proposals ---
    op.create_table(
        "proposals",
        sa.Column("proposal_id", sa.String(36), primary_key=True),
        sa.Column("brief_id", sa.String(36), sa.ForeignKey("event_briefs.brief_id"), nullable=False),
        sa.Column("client_id", sa.String(36), nullable=False, index=True),
        sa.Column("status", sa.Enum("open", "confirmed", name="proposalstatus"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- proposal_lines ---
    op.create_table(
        "proposal_lines",
        sa.Column("line_id", sa.String(36), primary_key=True),
        sa.Column("proposal_id", sa.String(36), sa.ForeignKey("proposals.proposal_id"), nullable=False),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
        sa.Column("needed_category", sa.String(100), nullable=False),
        sa.Column("offering_id", sa.String(36), sa.ForeignKey("offerings.offering_id"), nullable=False),
        sa.Column("offering_name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("supplier_id", sa.String(36), nullable=False),
        sa.Column("price_per_day", sa.Integer, nullable=False),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("available_quantity", sa.Integer, nullable=False, server_default="1"),
        sa.Column("quantity", sa.Integer, nullable=False, server_default="1"),
        sa.Column("rental_days", sa.Integer, nullable=False, server_default="1"),
    )

    # --- order_groups ---
    op.create_table(
        "order_groups",
        sa.Column("group_id", sa.String(36), primary_key=True),
        sa.Column("client_id", sa.String(36), nullable=False, index=True),
        sa.Column("proposal_id", sa.String(36), sa.ForeignKey("proposals.proposal_id"), nullable=False),
        sa.Column("idempotency_token", sa.String(255), nullable=False, unique=True),
        sa.Column("status", sa.Enum("creating", "booked", "failed", name="groupstatus"), nullable=False),
        sa.Column("subtotal", sa.Integer, nullable=False, server_default="0"),
        sa.Column("service_fee", sa.Integer, nullable=False, server_default="0"),
        sa.Column("payable_amount", sa.Integer, nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="XOF"),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- orders ---
    op.create_table(
        "orders",
        sa.Column("order_id", sa.String(36), primary_key=True),
        sa.Column("client_id", sa.String(36), nullable=False, index=True),
        sa.Column("supplier_id", sa.String(36), sa.ForeignKey("suppliers.supplier_id"), nullable=False, index=True),
        sa.Column("group_id", sa.String(36), sa.ForeignKey("order_groups.group_id"), nullable=True, index=True),
        sa.Column("status", sa.Enum(*ORDER_STATUSES, name="orderstatus"), nullable=False),
        sa.Column("total_amount", sa.Integer, nullable=False, server_default="0"),
        sa.Column("deposit_paid", sa.Integer, nullable=True),
        sa.Column("event_type", sa.String(50), nullable=True),
        sa.Column("event_date", sa.Date, nullable=True),
        sa.Column("event_location", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- order_items ---
    op.create_table(
        "order_items",
        sa.Column("item_id", sa.String(36), primary_key=True),
        sa.Column("order_id", sa.String(36), sa.ForeignKey("orders.order_id"), nullable=False),
        sa.Column("offering_id", sa.String(36), sa.ForeignKey("offerings.offering_id"), nullable=False),
        sa.Column("offering_name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False, server_default="1"),
        sa.Column("rental_days", sa.Integer, nullable=False, server_default="1"),
        sa.Column("price_per_day", sa.Integer, nullable=False),
        sa.Column("subtotal", sa.Integer, nullable=False),
    )

    # --- order_status_changes ---
    op.create_table(
        "order_status_changes",
        sa.Column("change_id", sa.String(36), primary_key=True),
        sa.Column("order_id", sa.String(36), sa.ForeignKey("orders.order_id"), nullable=False, index=True),
        sa.Column("actor_id", sa.String(36), nullable=True),
        sa.Column("event", sa.String(50), nullable=False),
        sa.Column("from_status", sa.String(20), nullable=False),
        sa.Column("to_status", sa.String(20), nullable=False),
        sa.Column("payment_reference", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- payments ---
    op.create_table(
        "payments",
        sa.Column("reference", sa.String(255), primary_key=True),
        sa.Column("group_id", sa.String(36), sa.ForeignKey("order_groups.group_id"), nullable=False, index=True),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("authorization_url", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- payment_reconciliations ---
    op.create_table(
        "payment_reconciliations",
        sa.Column("reference", sa.String(255), primary_key=True),
        sa.Column("group_id", sa.String(36), nullable=True, index=True),
        sa.Column("state", sa.Enum("processing", "done", name="reconciliationstate"), nullable=False),
        sa.Column("outcome", sa.Enum("confirmed", "partial", "failed", name="reconciliationoutcome"), nullable=True),
        sa.Column("verified_amount", sa.Integer, nullable=True),
        sa.Column("orders_updated", sa.Integer, nullable=False, server_default="0"),
        sa.Column("unconfirmed_orders", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("payment_reconciliations")
    op.drop_table("payments")
    op.drop_table("order_status_changes")
    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_table("order_groups")
    op.drop_table("proposal_lines")
    op.drop_table("proposals")
    op.drop_table("event_briefs")
    op.drop_table("offerings")
    op.drop_table("suppliers")
    for enum_name in (
        "reconciliationoutcome", "reconciliationstate", "orderstatus",
        "groupstatus", "proposalstatus", "briefstatus", "eventtype",
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
