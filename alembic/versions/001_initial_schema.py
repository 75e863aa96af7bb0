"""Initial schema: users, tours, tour_images, bookings with indexes and constraints.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("avatar_url", sa.String(1000), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'participant'")),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('participant', 'organizer', 'admin')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "tours",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("organizer_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("organizer_name", sa.String(255), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("itinerary", sa.Text(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column("max_participants", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'draft'")),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("difficulty", sa.String(20), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("max_participants >= 1", name="check_tour_max_participants_positive"),
        sa.CheckConstraint("price >= 0", name="check_tour_price_non_negative"),
        sa.CheckConstraint("end_date >= start_date", name="check_tour_dates_ordered"),
        sa.CheckConstraint("status IN ('draft', 'published', 'archived')", name="check_tour_status"),
        sa.CheckConstraint(
            "difficulty IS NULL OR difficulty IN ('easy', 'moderate', 'challenging', 'intense')",
            name="check_tour_difficulty",
        ),
    )
    op.create_index("ix_tours_id", "tours", ["id"])
    op.create_index("ix_tours_organizer_id", "tours", ["organizer_id"])
    # Listing: WHERE status = 'published' AND start_date >= ? ORDER BY ...
    op.create_index("ix_tours_status_start_date", "tours", ["status", "start_date"])
    op.create_index("ix_tours_country", "tours", ["country"])

    op.create_table(
        "tour_images",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tour_id", sa.Integer(), sa.ForeignKey("tours.id", ondelete="CASCADE"), nullable=False),
        sa.Column("image_url", sa.String(1000), nullable=False),
        sa.Column("alt_text", sa.String(255), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
    )
    op.create_index("ix_tour_images_tour_id", "tour_images", ["tour_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tour_id", sa.Integer(), sa.ForeignKey("tours.id", ondelete="CASCADE"), nullable=False),
        sa.Column("participant_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'unpaid'")),
        *_timestamps(),
        # Covers cancelled rows too: a second booking re-activates the old row
        sa.UniqueConstraint("tour_id", "participant_id", name="uq_tour_participant_booking"),
        sa.CheckConstraint("status IN ('pending', 'confirmed', 'cancelled')", name="check_booking_status"),
        sa.CheckConstraint(
            "payment_status IN ('unpaid', 'partial', 'paid')", name="check_booking_payment_status"
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_tour_id", "bookings", ["tour_id"])
    op.create_index("ix_bookings_participant_id", "bookings", ["participant_id"])
    # Capacity count: WHERE tour_id = ? AND status != 'cancelled'
    op.create_index("ix_bookings_tour_status", "bookings", ["tour_id", "status"])


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("tour_images")
    op.drop_table("tours")
    op.drop_table("users")
