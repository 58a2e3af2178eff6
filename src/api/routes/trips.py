"""
Published trip endpoints
========================

POST   /api/v1/trips                                  -- driver publishes a trip (201)
GET    /api/v1/trips/search                           -- open trips with free seats
GET    /api/v1/trips/hosted                           -- trips the caller hosts
GET    /api/v1/trips/joined                           -- trips the caller booked
GET    /api/v1/trips/{trip_id}                        -- one trip with manifest
POST   /api/v1/trips/{trip_id}/book                   -- claim seats (201)
DELETE /api/v1/trips/{trip_id}/booking                -- withdraw own booking
PUT    /api/v1/trips/{trip_id}/status                 -- host moves the trip on
POST   /api/v1/trips/{trip_id}/bookings/{bid}/pickup  -- host verifies pickup code
POST   /api/v1/trips/{trip_id}/bookings/{bid}/dropoff -- host marks drop-off
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, get_identity
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import (
    BookingResponse,
    PickupVerifyRequest,
    SeatClaimRequest,
    TripPublishRequest,
    TripResponse,
    TripStatusUpdate,
)
from src.domain.distance import parse_coords
from src.domain.entities import Identity
from src.domain.enums import TripType
from src.domain.errors import ValidationError
from src.services.queries import TripQueries, project_booking, project_trip
from src.services.trips import SeatLedgerService

router = APIRouter(prefix="/trips", tags=["trips"])


def _coords(raw: Optional[str], name: str) -> Optional[tuple[float, float]]:
    if raw is None:
        return None
    try:
        return parse_coords(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be 'lng,lat'") from exc


@router.post("", status_code=201, response_model=TripResponse, summary="Publish a trip")
@limiter.limit(RATE_LIMIT)
async def publish_trip(
    request: Request,
    body: TripPublishRequest,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    trip = await SeatLedgerService(db).publish(
        identity,
        body.origin.to_location(),
        body.destination.to_location(),
        body.scheduled_time,
        body.total_seats,
        body.price_per_seat,
        trip_type=body.trip_type,
        vehicle=body.vehicle,
        preferences=body.preferences.model_dump(),
    )
    return project_trip(trip, identity)


@router.get(
    "/search",
    response_model=list[TripResponse],
    summary="Search scheduled trips with free seats",
)
@limiter.limit(RATE_LIMIT)
async def search_trips(
    request: Request,
    trip_type: Optional[TripType] = None,
    after: Optional[datetime] = None,
    from_coords: Optional[str] = Query(None, description="lng,lat"),
    to_coords: Optional[str] = Query(None, description="lng,lat"),
    limit: Optional[int] = Query(None, ge=1),
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    return await TripQueries(db).search(
        identity,
        trip_type=trip_type,
        after=after,
        from_coords=_coords(from_coords, "from_coords"),
        to_coords=_coords(to_coords, "to_coords"),
        limit=limit,
    )


@router.get("/hosted", response_model=list[TripResponse], summary="Trips I host")
@limiter.limit(RATE_LIMIT)
async def hosted_trips(
    request: Request,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    return await TripQueries(db).hosted(identity)


@router.get("/joined", response_model=list[TripResponse], summary="Trips I booked")
@limiter.limit(RATE_LIMIT)
async def joined_trips(
    request: Request,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    return await TripQueries(db).joined(identity)


@router.get("/{trip_id}", response_model=TripResponse, summary="Get a trip")
@limiter.limit(RATE_LIMIT)
async def get_trip(
    request: Request,
    trip_id: int,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    return await TripQueries(db).get_trip(identity, trip_id)


@router.post(
    "/{trip_id}/book",
    status_code=201,
    response_model=BookingResponse,
    summary="Book seats on a trip",
    responses={
        400: {"description": "Host tried to book their own trip."},
        409: {"description": "Not enough seats, or already booked."},
    },
)
@limiter.limit(RATE_LIMIT)
async def book_seats(
    request: Request,
    trip_id: int,
    body: SeatClaimRequest,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    entry = await SeatLedgerService(db).claim_seats(identity, trip_id, body.seats)
    return project_booking(entry, identity)


@router.delete(
    "/{trip_id}/booking",
    response_model=BookingResponse,
    summary="Cancel my booking and release its seats",
)
@limiter.limit(RATE_LIMIT)
async def cancel_booking(
    request: Request,
    trip_id: int,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    entry = await SeatLedgerService(db).cancel_booking(identity, trip_id)
    return project_booking(entry, identity)


@router.put("/{trip_id}/status", response_model=TripResponse, summary="Update trip status")
@limiter.limit(RATE_LIMIT)
async def update_trip_status(
    request: Request,
    trip_id: int,
    body: TripStatusUpdate,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    trip = await SeatLedgerService(db).update_status(identity, trip_id, body.status)
    return project_trip(trip, identity)


@router.post(
    "/{trip_id}/bookings/{booking_id}/pickup",
    response_model=BookingResponse,
    summary="Verify a passenger's pickup code",
)
@limiter.limit(RATE_LIMIT)
async def verify_pickup(
    request: Request,
    trip_id: int,
    booking_id: int,
    body: PickupVerifyRequest,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    entry = await SeatLedgerService(db).verify_pickup(
        identity, trip_id, booking_id, body.code
    )
    return project_booking(entry, identity)


@router.post(
    "/{trip_id}/bookings/{booking_id}/dropoff",
    response_model=BookingResponse,
    summary="Mark a passenger as dropped off",
)
@limiter.limit(RATE_LIMIT)
async def mark_drop_off(
    request: Request,
    trip_id: int,
    booking_id: int,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    entry = await SeatLedgerService(db).mark_drop_off(identity, trip_id, booking_id)
    return project_booking(entry, identity)
