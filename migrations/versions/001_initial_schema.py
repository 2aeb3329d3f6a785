"""Initial schema: users, vehicles, drivers and reservations.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("first_name", sa.String(80), nullable=False),
        sa.Column("last_name", sa.String(80), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── vehicles ──────────────────────────────────────────────────────
    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "vehicle_type",
            sa.Enum("SEDAN", "SUV", "VAN", "LUXURY", name="vehicletype"),
            default="SEDAN",
        ),
        sa.Column("brand", sa.String(60), nullable=False),
        sa.Column("model", sa.String(60), nullable=False),
        sa.Column("license_plate", sa.String(20), unique=True, nullable=False),
        sa.Column("capacity", sa.Integer, default=4, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("first_name", sa.String(80), nullable=False),
        sa.Column("last_name", sa.String(80), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("license_number", sa.String(40), unique=True, nullable=False),
        sa.Column("is_available", sa.Boolean, default=True, nullable=False),
        sa.Column(
            "vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=True
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_drivers_available", "drivers", ["is_available"])

    # ── reservations ──────────────────────────────────────────────────
    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column(
            "service_type",
            sa.Enum(
                "AIRPORT", "CITY", "INTERCITY", "HOURLY", "EVENT",
                name="servicetype",
            ),
            nullable=False,
        ),
        sa.Column("pickup_location", sa.String(255), nullable=False),
        sa.Column("destination", sa.String(255), nullable=False),
        sa.Column("passengers", sa.Integer, default=1, nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING",
                "CONFIRMED",
                "ASSIGNED",
                "IN_PROGRESS",
                "COMPLETED",
                "CANCELLED",
                name="reservationstatus",
            ),
            default="PENDING",
            nullable=False,
        ),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=True
        ),
        sa.Column(
            "vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=True
        ),
        sa.Column("special_requests", sa.Text, nullable=True),
        sa.Column("total_price", sa.Float, nullable=True),
        sa.Column("idempotency_key", sa.String(64), unique=True, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_reservations_status_scheduled",
        "reservations",
        ["status", "scheduled_at"],
    )
    op.create_index("idx_reservations_user", "reservations", ["user_id"])
    op.create_index("idx_reservations_driver", "reservations", ["driver_id"])
    op.create_index(
        "idx_reservations_idempotency", "reservations", ["idempotency_key"]
    )


def downgrade() -> None:
    op.drop_table("reservations")
    op.drop_table("drivers")
    op.drop_table("vehicles")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS reservationstatus")
    op.execute("DROP TYPE IF EXISTS servicetype")
    op.execute("DROP TYPE IF EXISTS vehicletype")
