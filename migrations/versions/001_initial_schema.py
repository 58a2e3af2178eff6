"""Initial schema: actors, ride requests, published trips and their manifest.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_RIDE = sa.text("status IN ('PENDING', 'ACCEPTED', 'ARRIVED', 'ONGOING')")
LIVE_BOOKING = sa.text("booking_status != 'CANCELLED'")

DOCUMENT_TYPES = (
    "LICENSE_FRONT",
    "LICENSE_BACK",
    "REGISTRATION",
    "INSURANCE",
    "AADHAR_FRONT",
    "AADHAR_BACK",
    "PAN_CARD",
    "PERMIT",
    "FITNESS",
    "RC",
    "PROFILE_IMAGE",
)


def upgrade() -> None:
    # ── actors ────────────────────────────────────────────────────────
    op.create_table(
        "actors",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False, server_default=""),
        sa.Column(
            "role",
            sa.Enum("PASSENGER", "DRIVER", "ADMIN", name="role"),
            nullable=False,
        ),
        sa.Column("wallet_balance", sa.Float, nullable=False, server_default="0"),
        sa.Column("earnings_total", sa.Float, nullable=False, server_default="0"),
        sa.Column("rating_average", sa.Float, nullable=False, server_default="0"),
        sa.Column("rating_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── ride_requests ─────────────────────────────────────────────────
    op.create_table(
        "ride_requests",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "passenger_id", sa.Integer, sa.ForeignKey("actors.id"), nullable=False
        ),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("actors.id"), nullable=True),
        sa.Column("pickup_address", sa.String(255), nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("dropoff_address", sa.String(255), nullable=False),
        sa.Column("dropoff_lng", sa.Float, nullable=False),
        sa.Column("dropoff_lat", sa.Float, nullable=False),
        sa.Column(
            "trip_kind",
            sa.Enum("CITY", "OUTSTATION", "POOL", "RENTAL", name="tripkind"),
            nullable=False,
        ),
        sa.Column(
            "vehicle_class",
            sa.Enum("CAR", "BIKE", "AUTO", name="vehicleclass"),
            nullable=False,
        ),
        sa.Column("seats", sa.Integer, nullable=False, server_default="1"),
        sa.Column("distance_km", sa.Float, nullable=False, server_default="0"),
        sa.Column("duration_mins", sa.Float, nullable=False, server_default="0"),
        sa.Column("estimated_fare", sa.Float, nullable=False, server_default="0"),
        sa.Column("offered_fare", sa.Float, nullable=False, server_default="0"),
        sa.Column("final_fare", sa.Float, nullable=False, server_default="0"),
        sa.Column(
            "payment_method",
            sa.Enum("CASH", "WALLET", name="paymentmethod"),
            nullable=False,
        ),
        sa.Column(
            "payment_settled", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING",
                "ACCEPTED",
                "ARRIVED",
                "ONGOING",
                "COMPLETED",
                "CANCELLED",
                name="ridestatus",
            ),
            nullable=False,
        ),
        sa.Column(
            "cancelled_by",
            sa.Enum("PASSENGER", "DRIVER", "SYSTEM", name="cancelledby"),
            nullable=True,
        ),
        sa.Column("cancellation_reason", sa.String(255), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("arrived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("passenger_rating", sa.Integer, nullable=True),
        sa.Column("passenger_rating_comment", sa.String(500), nullable=True),
        sa.Column("passenger_rated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("driver_rating", sa.Integer, nullable=True),
        sa.Column("driver_rating_comment", sa.String(500), nullable=True),
        sa.Column("driver_rated_at", sa.DateTime(timezone=True), nullable=True),
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
        sa.CheckConstraint("final_fare >= 0", name="ck_ride_requests_final_fare"),
    )
    op.create_index(
        "uq_ride_requests_active_passenger",
        "ride_requests",
        ["passenger_id"],
        unique=True,
        postgresql_where=ACTIVE_RIDE,
    )
    op.create_index(
        "uq_ride_requests_active_driver",
        "ride_requests",
        ["driver_id"],
        unique=True,
        postgresql_where=ACTIVE_RIDE,
    )
    op.create_index("idx_ride_requests_status", "ride_requests", ["status"])
    op.create_index("idx_ride_requests_passenger", "ride_requests", ["passenger_id"])
    op.create_index("idx_ride_requests_driver", "ride_requests", ["driver_id"])

    # ── published_trips ───────────────────────────────────────────────
    op.create_table(
        "published_trips",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "host_driver_id", sa.Integer, sa.ForeignKey("actors.id"), nullable=False
        ),
        sa.Column(
            "trip_type",
            sa.Enum("LOCAL", "OUTSTATION", "INTERCITY", name="triptype"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(
                "SCHEDULED", "ONGOING", "COMPLETED", "CANCELLED", name="tripstatus"
            ),
            nullable=False,
        ),
        sa.Column("origin_name", sa.String(255), nullable=False),
        sa.Column("origin_lng", sa.Float, nullable=False, server_default="0"),
        sa.Column("origin_lat", sa.Float, nullable=False, server_default="0"),
        sa.Column("destination_name", sa.String(255), nullable=False),
        sa.Column("destination_lng", sa.Float, nullable=False, server_default="0"),
        sa.Column("destination_lat", sa.Float, nullable=False, server_default="0"),
        sa.Column("scheduled_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("vehicle", sa.String(60), server_default="Sedan"),
        sa.Column("total_seats", sa.Integer, nullable=False),
        sa.Column("available_seats", sa.Integer, nullable=False),
        sa.Column("price_per_seat", sa.Float, nullable=False),
        sa.Column("preferences", sa.JSON, nullable=True),
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
        sa.CheckConstraint("total_seats > 0", name="ck_trips_total_seats"),
        sa.CheckConstraint(
            "available_seats >= 0 AND available_seats <= total_seats",
            name="ck_trips_available_seats",
        ),
        sa.CheckConstraint("price_per_seat >= 0", name="ck_trips_price"),
    )
    op.create_index(
        "idx_trips_status_time", "published_trips", ["status", "scheduled_time"]
    )
    op.create_index("idx_trips_host", "published_trips", ["host_driver_id"])

    # ── trip_bookings ─────────────────────────────────────────────────
    op.create_table(
        "trip_bookings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "trip_id",
            sa.Integer,
            sa.ForeignKey("published_trips.id"),
            nullable=False,
        ),
        sa.Column(
            "passenger_id", sa.Integer, sa.ForeignKey("actors.id"), nullable=False
        ),
        sa.Column("seats_booked", sa.Integer, nullable=False, server_default="1"),
        sa.Column(
            "booking_status",
            sa.Enum("CONFIRMED", "CANCELLED", "COMPLETED", name="bookingstatus"),
            nullable=False,
        ),
        sa.Column(
            "pickup_status",
            sa.Enum("PENDING", "PICKED_UP", "DROPPED_OFF", name="pickupstatus"),
            nullable=False,
        ),
        sa.Column("pickup_code", sa.String(8), nullable=False),
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
        sa.CheckConstraint("seats_booked >= 1", name="ck_trip_bookings_seats"),
    )
    op.create_index(
        "uq_trip_bookings_live_passenger",
        "trip_bookings",
        ["trip_id", "passenger_id"],
        unique=True,
        postgresql_where=LIVE_BOOKING,
    )
    op.create_index("idx_trip_bookings_passenger", "trip_bookings", ["passenger_id"])

    # ── wallet_topups ─────────────────────────────────────────────────
    op.create_table(
        "wallet_topups",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.Integer, sa.ForeignKey("actors.id"), nullable=False),
        sa.Column("amount", sa.Float, nullable=False),
        sa.Column("payment_reference", sa.String(128), unique=True, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── actor_documents ───────────────────────────────────────────────
    op.create_table(
        "actor_documents",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.Integer, sa.ForeignKey("actors.id"), nullable=False),
        sa.Column(
            "doc_type", sa.Enum(*DOCUMENT_TYPES, name="documenttype"), nullable=False
        ),
        sa.Column("path", sa.String(500), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("actor_id", "doc_type", name="uq_actor_documents_type"),
    )


def downgrade() -> None:
    op.drop_table("actor_documents")
    op.drop_table("wallet_topups")
    op.drop_table("trip_bookings")
    op.drop_table("published_trips")
    op.drop_table("ride_requests")
    op.drop_table("actors")
    for enum_name in (
        "documenttype",
        "pickupstatus",
        "bookingstatus",
        "tripstatus",
        "triptype",
        "cancelledby",
        "ridestatus",
        "paymentmethod",
        "vehicleclass",
        "tripkind",
        "role",
    ):
        op.execute(f"DROP TYPE IF EXISTS {enum_name}")
