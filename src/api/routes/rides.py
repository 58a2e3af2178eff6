"""
On-demand ride endpoints
========================

POST /api/v1/rides                   -- passenger requests a ride (201)
GET  /api/v1/rides/nearby            -- driver feed of open requests
GET  /api/v1/rides/active            -- caller's current non-terminal ride
GET  /api/v1/rides/history           -- caller's finished rides, paginated
GET  /api/v1/rides/{ride_id}         -- one ride (parties only)
POST /api/v1/rides/{ride_id}/accept  -- driver claims a pending request
PUT  /api/v1/rides/{ride_id}/status  -- role-gated lifecycle transition
POST /api/v1/rides/{ride_id}/rate    -- rate the other party after completion
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, get_identity
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import (
    RatingRequest,
    RideCreateRequest,
    RideHistoryResponse,
    RideResponse,
    RideStatusUpdate,
)
from src.domain.entities import Identity
from src.domain.enums import VehicleClass
from src.services.queries import RideQueries, project_ride
from src.services.rides import RideLifecycleService

router = APIRouter(prefix="/rides", tags=["rides"])


@router.post(
    "",
    status_code=201,
    response_model=RideResponse,
    summary="Request a ride",
    responses={409: {"description": "Passenger already has an active ride."}},
)
@limiter.limit(RATE_LIMIT)
async def request_ride(
    request: Request,
    body: RideCreateRequest,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    ride = await RideLifecycleService(db).submit(
        identity,
        body.pickup.to_location(),
        body.dropoff.to_location(),
        vehicle_class=body.vehicle_class,
        trip_kind=body.trip_kind,
        distance_km=body.distance_km,
        duration_mins=body.duration_mins,
        offered_fare=body.offered_fare,
        payment_method=body.payment_method,
        seats=body.seats,
    )
    return project_ride(ride, identity)


@router.get(
    "/nearby",
    response_model=list[RideResponse],
    summary="Open ride requests a driver can accept",
)
@limiter.limit(RATE_LIMIT)
async def nearby_rides(
    request: Request,
    vehicle_class: Optional[VehicleClass] = None,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    return await RideQueries(db).nearby(identity, vehicle_class)


@router.get(
    "/active",
    response_model=Optional[RideResponse],
    summary="Caller's current ride, or null",
)
@limiter.limit(RATE_LIMIT)
async def active_ride(
    request: Request,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    return await RideQueries(db).active_ride(identity)


@router.get(
    "/history",
    response_model=RideHistoryResponse,
    summary="Completed and cancelled rides, newest first",
)
@limiter.limit(RATE_LIMIT)
async def ride_history(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    return await RideQueries(db).history(identity, page, limit)


@router.get("/{ride_id}", response_model=RideResponse, summary="Get a ride")
@limiter.limit(RATE_LIMIT)
async def get_ride(
    request: Request,
    ride_id: int,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    return await RideQueries(db).get_ride(identity, ride_id)


@router.post(
    "/{ride_id}/accept",
    response_model=RideResponse,
    summary="Accept a pending ride request",
)
@limiter.limit(RATE_LIMIT)
async def accept_ride(
    request: Request,
    ride_id: int,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    ride = await RideLifecycleService(db).claim(identity, ride_id)
    return project_ride(ride, identity)


@router.put(
    "/{ride_id}/status",
    response_model=RideResponse,
    summary="Move a ride along its lifecycle",
    description=(
        "Drivers advance ACCEPTED -> ARRIVED -> ONGOING -> COMPLETED and may "
        "cancel; passengers may only cancel. Completing settles the fare."
    ),
)
@limiter.limit(RATE_LIMIT)
async def update_ride_status(
    request: Request,
    ride_id: int,
    body: RideStatusUpdate,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    ride = await RideLifecycleService(db).transition(
        identity, ride_id, body.status, body.cancellation_reason
    )
    return project_ride(ride, identity)


@router.post(
    "/{ride_id}/rate",
    response_model=RideResponse,
    summary="Rate a completed ride",
)
@limiter.limit(RATE_LIMIT)
async def rate_ride(
    request: Request,
    ride_id: int,
    body: RatingRequest,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    ride = await RideLifecycleService(db).rate(
        identity, ride_id, body.rating, body.comment
    )
    return project_ride(ride, identity)
