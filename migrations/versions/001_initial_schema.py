"""Initial schema: wallets, drivers, rides, ratings and the event log.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(20, 8)


def upgrade() -> None:
    # ── accounts ──────────────────────────────────────────────────────
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("balance", MONEY, nullable=False, server_default="0"),
        sa.Column("is_frozen", sa.Boolean, nullable=False, server_default=sa.false()),
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
        sa.Column("account", sa.String(64), unique=True, nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("total_rating_sum", sa.Integer, nullable=False, server_default="0"),
        sa.Column("rating_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("registered_at", sa.BigInteger, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("rider", sa.String(64), nullable=False),
        sa.Column("driver", sa.String(64), nullable=True),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column(
            "state",
            sa.Enum(
                "REQUESTED",
                "ACCEPTED",
                "FUNDED",
                "STARTED",
                "COMPLETED_BY_DRIVER",
                "FINALIZED",
                "CANCELLED",
                "REFUNDED",
                name="ridestate",
            ),
            nullable=False,
            server_default="REQUESTED",
        ),
        sa.Column("pickup_lat", sa.String(64), nullable=False, server_default=""),
        sa.Column("pickup_lng", sa.String(64), nullable=False, server_default=""),
        sa.Column("pickup_label", sa.String(255), nullable=False, server_default=""),
        sa.Column("destination_lat", sa.String(64), nullable=False, server_default=""),
        sa.Column("destination_lng", sa.String(64), nullable=False, server_default=""),
        sa.Column(
            "destination_label", sa.String(255), nullable=False, server_default=""
        ),
        sa.Column("requested_at", sa.BigInteger, nullable=False),
        sa.Column("accepted_at", sa.BigInteger, nullable=True),
        sa.Column("funded_at", sa.BigInteger, nullable=True),
        sa.Column("started_at", sa.BigInteger, nullable=True),
        sa.Column("completed_at", sa.BigInteger, nullable=True),
        sa.Column("finalized_at", sa.BigInteger, nullable=True),
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
    op.create_index("idx_rides_rider", "rides", ["rider"])
    op.create_index("idx_rides_driver", "rides", ["driver"])
    op.create_index("idx_rides_state", "rides", ["state"])

    # ── ride_ratings ──────────────────────────────────────────────────
    op.create_table(
        "ride_ratings",
        sa.Column(
            "ride_id", sa.Integer, sa.ForeignKey("rides.id"), primary_key=True
        ),
        sa.Column(
            "rider_rated_driver", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "driver_rated_rider", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        sa.Column("rider_rating", sa.SmallInteger, nullable=True),
        sa.Column("driver_rating", sa.SmallInteger, nullable=True),
    )

    # ── ride_events ───────────────────────────────────────────────────
    op.create_table(
        "ride_events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(40), nullable=False),
        sa.Column("ride_id", sa.Integer, sa.ForeignKey("rides.id"), nullable=True),
        sa.Column("account", sa.String(64), nullable=False),
        sa.Column("payload", sa.JSON, nullable=False),
        sa.Column("occurred_at", sa.BigInteger, nullable=False),
    )
    op.create_index("idx_ride_events_ride", "ride_events", ["ride_id"])
    op.create_index("idx_ride_events_name", "ride_events", ["name"])


def downgrade() -> None:
    op.drop_table("ride_events")
    op.drop_table("ride_ratings")
    op.drop_table("rides")
    op.drop_table("drivers")
    op.drop_table("accounts")
    op.execute("DROP TYPE IF EXISTS ridestate")
