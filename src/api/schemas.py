"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from src.domain.entities import Location
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


# ── Shared ────────────────────────────────────────────────────────────


class Place(BaseModel):
    address: str = Field(..., min_length=1, max_length=255)
    coordinates: list[float] = Field(
        ..., min_length=2, max_length=2, description="[lng, lat]"
    )

    @field_validator("coordinates")
    @classmethod
    def _in_range(cls, value: list[float]) -> list[float]:
        lng, lat = value
        if not (-180 <= lng <= 180 and -90 <= lat <= 90):
            raise ValueError("coordinates must be [lng, lat] within range")
        return value

    def to_location(self) -> Location:
        return Location(self.address, self.coordinates[0], self.coordinates[1])


# ── Requests ──────────────────────────────────────────────────────────


class RideCreateRequest(BaseModel):
    pickup: Place
    dropoff: Place
    trip_kind: TripKind = TripKind.CITY
    vehicle_class: VehicleClass = VehicleClass.CAR
    seats: int = Field(1, ge=1, le=6)
    distance_km: Optional[float] = Field(None, ge=0)
    duration_mins: Optional[float] = Field(None, ge=0)
    offered_fare: Optional[float] = Field(
        None,
        ge=0,
        description="Pre-negotiated fare; trusted for non-CITY kinds.",
    )
    payment_method: PaymentMethod = PaymentMethod.CASH


class RideStatusUpdate(BaseModel):
    status: RideStatus
    cancellation_reason: Optional[str] = Field(None, max_length=255)


class RatingRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=500)


class TripPreferences(BaseModel):
    music: bool = False
    ac: bool = False
    quiet: bool = False
    pets: bool = False


class TripPublishRequest(BaseModel):
    trip_type: TripType = TripType.LOCAL
    origin: Place
    destination: Place
    scheduled_time: datetime
    vehicle: Optional[str] = Field(None, max_length=60)
    total_seats: int = Field(..., ge=1, le=50)
    price_per_seat: float = Field(..., ge=0)
    preferences: TripPreferences = Field(default_factory=TripPreferences)


class SeatClaimRequest(BaseModel):
    seats: int = Field(1, ge=1)


class TripStatusUpdate(BaseModel):
    status: str


class PickupVerifyRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=8)


class TopUpRequest(BaseModel):
    amount: float = Field(..., gt=0)
    funds_verified: bool
    payment_reference: str = Field(..., min_length=1, max_length=128)


class DocumentRequest(BaseModel):
    path: str = Field(..., min_length=1, max_length=500)


# ── Responses ─────────────────────────────────────────────────────────


class RatingOut(BaseModel):
    value: int
    comment: Optional[str] = None
    given_at: Optional[datetime] = None


class RideResponse(BaseModel):
    id: int
    passenger_id: int
    driver_id: Optional[int] = None
    pickup: Place
    dropoff: Place
    trip_kind: TripKind
    vehicle_class: VehicleClass
    seats: int
    distance_km: float
    duration_mins: float
    estimated_fare: float
    offered_fare: float
    final_fare: float
    payment_method: PaymentMethod
    payment_settled: bool
    status: RideStatus
    cancelled_by: Optional[CancelledBy] = None
    cancellation_reason: Optional[str] = None
    accepted_at: Optional[datetime] = None
    arrived_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    rating_by_passenger: Optional[RatingOut] = None
    rating_by_driver: Optional[RatingOut] = None
    created_at: Optional[datetime] = None


class Pagination(BaseModel):
    total: int
    page: int
    pages: int


class RideHistoryResponse(BaseModel):
    data: list[RideResponse]
    pagination: Pagination


class BookingResponse(BaseModel):
    id: int
    trip_id: int
    passenger_id: int
    seats_booked: int
    booking_status: BookingStatus
    pickup_status: PickupStatus
    pickup_code: Optional[str] = None


class TripResponse(BaseModel):
    id: int
    host_driver_id: int
    trip_type: TripType
    status: TripStatus
    origin: Place
    destination: Place
    scheduled_time: datetime
    vehicle: Optional[str] = None
    total_seats: int
    available_seats: int
    price_per_seat: float
    preferences: dict = {}
    manifest: list[BookingResponse] = []


class WalletResponse(BaseModel):
    actor_id: int
    role: Role
    wallet_balance: float
    earnings_total: float
    rating_average: float
    rating_count: int


class TopUpResponse(BaseModel):
    id: int
    payment_reference: str
    amount: float
    wallet: WalletResponse


class DocumentResponse(BaseModel):
    actor_id: int
    doc_type: DocumentType
    path: str
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"
