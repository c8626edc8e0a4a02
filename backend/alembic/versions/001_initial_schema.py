"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("is_active", sa.Boolean(), default=True, nullable=False),
        *_timestamps(),
    )

    # Profiles table (role source for the access gate)
    op.create_table(
        "profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), unique=True, nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("role", sa.String(20), nullable=False),
        *_timestamps(),
    )

    # Hotels table
    op.create_table(
        "hotels",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), unique=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("contact", sa.String(50), nullable=False),
        sa.Column("street", sa.String(255), nullable=False),
        sa.Column("city", sa.String(100), nullable=False, index=True),
        sa.Column("landmark", sa.String(255), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("rating", sa.Float(), nullable=True),
        sa.Column("total_food_saved", sa.Integer(), server_default="0", nullable=False),
        *_timestamps(),
    )

    # Delivery agents table
    op.create_table(
        "delivery_agents",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), unique=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("contact", sa.String(50), nullable=False),
        sa.Column("area", sa.String(100), nullable=False, index=True),
        sa.Column("zone", sa.String(100), nullable=False),
        sa.Column("unique_id", sa.String(50), unique=True, nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default="1", nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("rating", sa.Float(), nullable=True),
        sa.Column("total_deliveries", sa.Integer(), server_default="0", nullable=False),
        *_timestamps(),
    )

    # Food reports table
    op.create_table(
        "food_reports",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("hotel_id", sa.Integer(), sa.ForeignKey("hotels.id"), nullable=False, index=True),
        sa.Column(
            "assigned_agent_id", sa.Integer(), sa.ForeignKey("delivery_agents.id"), nullable=True, index=True
        ),
        sa.Column("food_type", sa.String(20), nullable=False),
        sa.Column("food_name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("pickup_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expiry_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="new", index=True),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="ck_food_reports_quantity_positive"),
    )

    # Beneficiaries table
    op.create_table(
        "beggars",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("street", sa.String(255), nullable=False),
        sa.Column("city", sa.String(100), nullable=False, index=True),
        sa.Column("landmark", sa.String(255), nullable=True),
        sa.Column("contact", sa.String(50), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("preferred_food_time", sa.String(50), nullable=True),
        *_timestamps(),
    )

    # Distribution records table
    op.create_table(
        "distribution_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("food_report_id", sa.Integer(), sa.ForeignKey("food_reports.id"), nullable=False, index=True),
        sa.Column("agent_id", sa.Integer(), sa.ForeignKey("delivery_agents.id"), nullable=False),
        sa.Column("beggar_id", sa.Integer(), sa.ForeignKey("beggars.id"), nullable=False),
        sa.Column("quantity_distributed", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("distribution_timestamp", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("quantity_distributed > 0", name="ck_distribution_quantity_positive"),
    )

    # Notifications table
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("tag", sa.String(100), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("require_interaction", sa.Boolean(), default=False, nullable=False),
        sa.Column("read", sa.Boolean(), default=False, nullable=False, index=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Push subscriptions table
    op.create_table(
        "push_subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("endpoint", sa.String(1000), unique=True, nullable=False),
        sa.Column("p256dh", sa.String(255), nullable=True),
        sa.Column("auth", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("push_subscriptions")
    op.drop_table("notifications")
    op.drop_table("distribution_records")
    op.drop_table("beggars")
    op.drop_table("food_reports")
    op.drop_table("delivery_agents")
    op.drop_table("hotels")
    op.drop_table("profiles")
    op.drop_table("users")
