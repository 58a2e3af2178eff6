r"""
Ride Lifecycle Engine
=====================

    PENDING -> ACCEPTED -> ARRIVED -> ONGOING -> COMPLETED
        \__________\__________\_________\______-> CANCELLED

Who may take which edge is fixed by ``RIDE_TRANSITIONS``: the bound driver
advances the ride and may cancel, the passenger may only cancel.

Concurrency safety
------------------
* **Single active ride** per passenger and per driver is a partial unique
  index; a losing insert / claim surfaces as ``IntegrityError`` and is
  reported as ``ConflictError``.
* Every status write is a compare-and-swap on the status the caller
  observed, so two racing callers cannot both take the same edge.
* Completion settles in the same transaction; a ``SettlementError``
  propagates and the unit of work rolls the status back with it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.entities import (
    Identity,
    Location,
    check_ride_transition,
    resolve_party_role,
)
from src.domain.enums import (
    CancelledBy,
    PaymentMethod,
    RatingSide,
    RideStatus,
    Role,
    TripKind,
    VehicleClass,
)
from src.domain.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from src.domain.pricing import FareEstimator
from src.infrastructure.models import RideRequestModel
from src.infrastructure.repositories import RideRequestRepository
from src.services.settlement import SettlementService

logger = logging.getLogger(__name__)

# status -> column stamped when the ride enters it
_TIMESTAMP_COLUMNS = {
    RideStatus.ARRIVED: "arrived_at",
    RideStatus.ONGOING: "started_at",
    RideStatus.COMPLETED: "completed_at",
    RideStatus.CANCELLED: "cancelled_at",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RideLifecycleService:
    def __init__(
        self,
        session: AsyncSession,
        estimator: Optional[FareEstimator] = None,
        settlement: Optional[SettlementService] = None,
    ):
        self.session = session
        self.rides = RideRequestRepository(session)
        self.estimator = estimator or FareEstimator(
            settings.default_distance_km, settings.default_duration_mins
        )
        self.settlement = settlement or SettlementService(session)

    async def _get(self, ride_id: int) -> RideRequestModel:
        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise NotFoundError("Ride not found")
        return ride

    async def submit(
        self,
        identity: Identity,
        pickup: Location,
        dropoff: Location,
        *,
        vehicle_class: VehicleClass = VehicleClass.CAR,
        trip_kind: TripKind = TripKind.CITY,
        distance_km: Optional[float] = None,
        duration_mins: Optional[float] = None,
        offered_fare: Optional[float] = None,
        payment_method: PaymentMethod = PaymentMethod.CASH,
        seats: int = 1,
    ) -> RideRequestModel:
        if not pickup.address or not dropoff.address:
            raise ValidationError("Pickup and dropoff details are required")
        if seats < 1:
            raise ValidationError("At least one seat is required")

        quote = self.estimator.quote(
            trip_kind, vehicle_class, distance_km, duration_mins, offered_fare
        )
        ride = RideRequestModel(
            passenger_id=identity.actor_id,
            pickup_address=pickup.address,
            pickup_lng=pickup.lng,
            pickup_lat=pickup.lat,
            dropoff_address=dropoff.address,
            dropoff_lng=dropoff.lng,
            dropoff_lat=dropoff.lat,
            trip_kind=trip_kind,
            vehicle_class=vehicle_class,
            seats=seats,
            distance_km=distance_km or 0.0,
            duration_mins=duration_mins or 0.0,
            estimated_fare=quote.estimated_fare,
            offered_fare=quote.offered_fare,
            final_fare=quote.final_fare,
            payment_method=payment_method,
            status=RideStatus.PENDING,
        )
        try:
            ride = await self.rides.create(ride)
        except IntegrityError as exc:
            raise ConflictError("You already have an active ride") from exc

        logger.info(
            "Ride %d requested by passenger %d (fare %.2f)",
            ride.id,
            ride.passenger_id,
            ride.final_fare,
        )
        return ride

    async def claim(self, identity: Identity, ride_id: int) -> RideRequestModel:
        if not identity.is_driver:
            raise ForbiddenError("Only drivers can accept rides")

        ride = await self._get(ride_id)
        if ride.status != RideStatus.PENDING:
            raise ConflictError(f"Cannot accept. Ride is already {ride.status.value}")
        if ride.passenger_id == identity.actor_id:
            raise ConflictError("Cannot accept your own ride request")

        try:
            won = await self.rides.compare_and_set(
                ride_id,
                RideStatus.PENDING,
                driver_id=identity.actor_id,
                status=RideStatus.ACCEPTED,
                accepted_at=_now(),
            )
        except IntegrityError as exc:
            raise ConflictError("You already have an active ride") from exc
        if not won:
            raise ConflictError("Ride was taken by another driver")

        logger.info("Ride %d accepted by driver %d", ride_id, identity.actor_id)
        return await self._get(ride_id)

    async def transition(
        self,
        identity: Identity,
        ride_id: int,
        target: RideStatus,
        reason: Optional[str] = None,
    ) -> RideRequestModel:
        ride = await self._get(ride_id)
        role = resolve_party_role(identity.actor_id, ride.passenger_id, ride.driver_id)
        check_ride_transition(role, ride.status, target)

        now = _now()
        values: dict = {"status": target, _TIMESTAMP_COLUMNS[target]: now}
        if target == RideStatus.COMPLETED:
            values["payment_settled"] = True
        elif target == RideStatus.CANCELLED:
            values["cancelled_by"] = CancelledBy(role.value)
            values["cancellation_reason"] = reason or ""

        if not await self.rides.compare_and_set(ride_id, ride.status, **values):
            raise ConflictError("Ride status changed concurrently; reload and retry")

        ride = await self._get(ride_id)
        if target == RideStatus.COMPLETED:
            await self.settlement.apply_ride_settlement(ride)

        logger.info(
            "Ride %d -> %s by %s %d",
            ride_id,
            target.value,
            role.value.lower(),
            identity.actor_id,
        )
        return ride

    async def rate(
        self,
        identity: Identity,
        ride_id: int,
        value: int,
        comment: Optional[str] = None,
    ) -> RideRequestModel:
        if not isinstance(value, int) or not 1 <= value <= 5:
            raise ValidationError("Rating must be between 1 and 5")

        ride = await self._get(ride_id)
        role = resolve_party_role(identity.actor_id, ride.passenger_id, ride.driver_id)
        if ride.status != RideStatus.COMPLETED:
            raise InvalidTransitionError("Can only rate completed rides")

        side = RatingSide.PASSENGER if role == Role.PASSENGER else RatingSide.DRIVER
        if not await self.rides.record_rating(ride_id, side, value, comment, _now()):
            raise ConflictError("You have already rated this ride")

        await self.settlement.apply_rating(ride, side, value)
        return await self._get(ride_id)

    async def expire_stale(
        self, now: Optional[datetime] = None, ttl_seconds: Optional[int] = None
    ) -> list[int]:
        """Cancel PENDING requests nobody accepted within the TTL."""
        now = now or _now()
        ttl = settings.pending_ride_ttl_seconds if ttl_seconds is None else ttl_seconds
        expired: list[int] = []
        for ride_id in await self.rides.list_stale_pending_ids(now - timedelta(seconds=ttl)):
            won = await self.rides.compare_and_set(
                ride_id,
                RideStatus.PENDING,
                status=RideStatus.CANCELLED,
                cancelled_at=now,
                cancelled_by=CancelledBy.SYSTEM,
                cancellation_reason="No driver accepted the request in time",
            )
            if won:
                expired.append(ride_id)
        return expired
