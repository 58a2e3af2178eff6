"""
SQLAlchemy ORM models  (maps to PostgreSQL; SQLite in tests).

Tables
------
* ``actors``           -- identity-owned balances and rating aggregates
* ``ride_requests``    -- on-demand bookings and their lifecycle
* ``published_trips``  -- driver-published trips with a seat inventory
* ``trip_bookings``    -- manifest entries (one row per seat claim)
* ``wallet_topups``    -- applied payment-gateway confirmations
* ``actor_documents``  -- uploaded document paths per document type

Indexes
-------
* **Partial unique** on ``ride_requests(passenger_id)`` and
  ``ride_requests(driver_id)`` restricted to non-terminal statuses: the
  single-active-ride rule is enforced by the store at write time.
* **Partial unique** on ``trip_bookings(trip_id, passenger_id)`` for
  non-cancelled entries: one live booking per passenger per trip.
* **B-Tree** on status / owner columns used by the read layer.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import relationship

from .database import Base
from src.domain.enums import (
    BookingStatus,
    CancelledBy,
    DocumentType,
    PaymentMethod,
    PickupStatus,
    RideStatus,
    Role,
    TripKind,
    TripStatus,
    TripType,
    VehicleClass,
)

_ACTIVE_RIDE = text("status IN ('PENDING', 'ACCEPTED', 'ARRIVED', 'ONGOING')")
_LIVE_BOOKING = text("booking_status != 'CANCELLED'")


class ActorModel(Base):
    __tablename__ = "actors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False, default="")
    role = Column(Enum(Role), default=Role.PASSENGER, nullable=False)
    wallet_balance = Column(Float, default=0.0, nullable=False)
    earnings_total = Column(Float, default=0.0, nullable=False)
    rating_average = Column(Float, default=0.0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class RideRequestModel(Base):
    __tablename__ = "ride_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    passenger_id = Column(Integer, ForeignKey("actors.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("actors.id"), nullable=True)

    pickup_address = Column(String(255), nullable=False)
    pickup_lng = Column(Float, nullable=False)
    pickup_lat = Column(Float, nullable=False)
    dropoff_address = Column(String(255), nullable=False)
    dropoff_lng = Column(Float, nullable=False)
    dropoff_lat = Column(Float, nullable=False)

    trip_kind = Column(Enum(TripKind), default=TripKind.CITY, nullable=False)
    vehicle_class = Column(Enum(VehicleClass), default=VehicleClass.CAR, nullable=False)
    seats = Column(Integer, default=1, nullable=False)
    distance_km = Column(Float, default=0.0, nullable=False)
    duration_mins = Column(Float, default=0.0, nullable=False)

    estimated_fare = Column(Float, default=0.0, nullable=False)
    offered_fare = Column(Float, default=0.0, nullable=False)
    final_fare = Column(Float, default=0.0, nullable=False)
    payment_method = Column(Enum(PaymentMethod), default=PaymentMethod.CASH, nullable=False)
    payment_settled = Column(Boolean, default=False, nullable=False)

    status = Column(Enum(RideStatus), default=RideStatus.PENDING, nullable=False)
    cancelled_by = Column(Enum(CancelledBy), nullable=True)
    cancellation_reason = Column(String(255), nullable=True)

    accepted_at = Column(DateTime(timezone=True), nullable=True)
    arrived_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # passenger -> driver
    passenger_rating = Column(Integer, nullable=True)
    passenger_rating_comment = Column(String(500), nullable=True)
    passenger_rated_at = Column(DateTime(timezone=True), nullable=True)
    # driver -> passenger
    driver_rating = Column(Integer, nullable=True)
    driver_rating_comment = Column(String(500), nullable=True)
    driver_rated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index(
            "uq_ride_requests_active_passenger",
            "passenger_id",
            unique=True,
            postgresql_where=_ACTIVE_RIDE,
            sqlite_where=_ACTIVE_RIDE,
        ),
        Index(
            "uq_ride_requests_active_driver",
            "driver_id",
            unique=True,
            postgresql_where=_ACTIVE_RIDE,
            sqlite_where=_ACTIVE_RIDE,
        ),
        Index("idx_ride_requests_status", "status"),
        Index("idx_ride_requests_passenger", "passenger_id"),
        Index("idx_ride_requests_driver", "driver_id"),
        CheckConstraint("final_fare >= 0", name="ck_ride_requests_final_fare"),
    )


class PublishedTripModel(Base):
    __tablename__ = "published_trips"

    id = Column(Integer, primary_key=True, autoincrement=True)
    host_driver_id = Column(Integer, ForeignKey("actors.id"), nullable=False)
    trip_type = Column(Enum(TripType), default=TripType.LOCAL, nullable=False)
    status = Column(Enum(TripStatus), default=TripStatus.SCHEDULED, nullable=False)

    origin_name = Column(String(255), nullable=False)
    origin_lng = Column(Float, nullable=False, default=0.0)
    origin_lat = Column(Float, nullable=False, default=0.0)
    destination_name = Column(String(255), nullable=False)
    destination_lng = Column(Float, nullable=False, default=0.0)
    destination_lat = Column(Float, nullable=False, default=0.0)

    scheduled_time = Column(DateTime(timezone=True), nullable=False)
    vehicle = Column(String(60), default="Sedan")
    total_seats = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    price_per_seat = Column(Float, nullable=False)
    preferences = Column(JSON, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    manifest = relationship(
        "PassengerBookingModel",
        order_by="PassengerBookingModel.id",
        lazy="selectin",
        back_populates="trip",
    )

    __table_args__ = (
        CheckConstraint("total_seats > 0", name="ck_trips_total_seats"),
        CheckConstraint(
            "available_seats >= 0 AND available_seats <= total_seats",
            name="ck_trips_available_seats",
        ),
        CheckConstraint("price_per_seat >= 0", name="ck_trips_price"),
        Index("idx_trips_status_time", "status", "scheduled_time"),
        Index("idx_trips_host", "host_driver_id"),
    )


class PassengerBookingModel(Base):
    __tablename__ = "trip_bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("published_trips.id"), nullable=False)
    passenger_id = Column(Integer, ForeignKey("actors.id"), nullable=False)
    seats_booked = Column(Integer, default=1, nullable=False)
    booking_status = Column(
        Enum(BookingStatus), default=BookingStatus.CONFIRMED, nullable=False
    )
    pickup_status = Column(
        Enum(PickupStatus), default=PickupStatus.PENDING, nullable=False
    )
    pickup_code = Column(String(8), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    trip = relationship("PublishedTripModel", back_populates="manifest")

    __table_args__ = (
        Index(
            "uq_trip_bookings_live_passenger",
            "trip_id",
            "passenger_id",
            unique=True,
            postgresql_where=_LIVE_BOOKING,
            sqlite_where=_LIVE_BOOKING,
        ),
        Index("idx_trip_bookings_passenger", "passenger_id"),
        CheckConstraint("seats_booked >= 1", name="ck_trip_bookings_seats"),
    )


class WalletTopUpModel(Base):
    __tablename__ = "wallet_topups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_id = Column(Integer, ForeignKey("actors.id"), nullable=False)
    amount = Column(Float, nullable=False)
    payment_reference = Column(String(128), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ActorDocumentModel(Base):
    __tablename__ = "actor_documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_id = Column(Integer, ForeignKey("actors.id"), nullable=False)
    doc_type = Column(Enum(DocumentType), nullable=False)
    path = Column(String(500), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("actor_id", "doc_type", name="uq_actor_documents_type"),
    )
