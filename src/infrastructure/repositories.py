"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Every read-modify-write is a single
conditional ``UPDATE`` whose ``WHERE`` clause carries the expected prior
state; the returned ``bool`` tells the caller whether it won.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    ActorDocumentModel,
    ActorModel,
    PassengerBookingModel,
    PublishedTripModel,
    RideRequestModel,
    WalletTopUpModel,
)
from src.domain.enums import (
    ACTIVE_RIDE_STATUSES,
    TERMINAL_RIDE_STATUSES,
    BookingStatus,
    DocumentType,
    RatingSide,
    RideStatus,
    TripStatus,
    TripType,
    VehicleClass,
)

_KM_PER_DEGREE = 111.0


async def _changed(session: AsyncSession, stmt) -> bool:
    result = await session.execute(
        stmt.execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


class ActorRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, actor_id: int) -> Optional[ActorModel]:
        return await self.session.get(ActorModel, actor_id, populate_existing=True)

    async def credit_earnings(self, actor_id: int, amount: float) -> bool:
        return await _changed(
            self.session,
            update(ActorModel)
            .where(ActorModel.id == actor_id)
            .values(earnings_total=ActorModel.earnings_total + amount),
        )

    async def debit_wallet(
        self, actor_id: int, amount: float, allow_overdraft: bool = False
    ) -> bool:
        stmt = (
            update(ActorModel)
            .where(ActorModel.id == actor_id)
            .values(wallet_balance=ActorModel.wallet_balance - amount)
        )
        if not allow_overdraft:
            stmt = stmt.where(ActorModel.wallet_balance >= amount)
        return await _changed(self.session, stmt)

    async def credit_wallet(
        self, actor_id: int, amount: float, mirror_to_earnings: bool = False
    ) -> bool:
        values = {"wallet_balance": ActorModel.wallet_balance + amount}
        if mirror_to_earnings:
            values["earnings_total"] = ActorModel.earnings_total + amount
        return await _changed(
            self.session,
            update(ActorModel).where(ActorModel.id == actor_id).values(**values),
        )

    async def add_rating(self, actor_id: int, value: int) -> bool:
        """Fold one rating into the running mean in a single statement."""
        return await _changed(
            self.session,
            update(ActorModel)
            .where(ActorModel.id == actor_id)
            .values(
                rating_average=(
                    ActorModel.rating_average * ActorModel.rating_count + float(value)
                )
                / (ActorModel.rating_count + 1),
                rating_count=ActorModel.rating_count + 1,
            ),
        )


class RideRequestRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, ride: RideRequestModel) -> RideRequestModel:
        self.session.add(ride)
        await self.session.flush()
        await self.session.refresh(ride)
        return ride

    async def get_by_id(self, ride_id: int) -> Optional[RideRequestModel]:
        return await self.session.get(RideRequestModel, ride_id, populate_existing=True)

    async def compare_and_set(
        self, ride_id: int, expected: RideStatus, **values
    ) -> bool:
        """Apply ``values`` only if the ride is still in ``expected``."""
        return await _changed(
            self.session,
            update(RideRequestModel)
            .where(
                RideRequestModel.id == ride_id,
                RideRequestModel.status == expected,
            )
            .values(**values),
        )

    async def record_rating(
        self,
        ride_id: int,
        side: RatingSide,
        value: int,
        comment: Optional[str],
        given_at: datetime,
    ) -> bool:
        """Fill one side's rating if the ride is completed and that side is empty."""
        if side == RatingSide.PASSENGER:
            column = RideRequestModel.passenger_rating
            values = {
                "passenger_rating": value,
                "passenger_rating_comment": comment,
                "passenger_rated_at": given_at,
            }
        else:
            column = RideRequestModel.driver_rating
            values = {
                "driver_rating": value,
                "driver_rating_comment": comment,
                "driver_rated_at": given_at,
            }
        return await _changed(
            self.session,
            update(RideRequestModel)
            .where(
                RideRequestModel.id == ride_id,
                RideRequestModel.status == RideStatus.COMPLETED,
                column.is_(None),
            )
            .values(**values),
        )

    async def get_active_for_passenger(
        self, passenger_id: int
    ) -> Optional[RideRequestModel]:
        result = await self.session.execute(
            select(RideRequestModel).where(
                RideRequestModel.passenger_id == passenger_id,
                RideRequestModel.status.in_(sorted(ACTIVE_RIDE_STATUSES)),
            )
        )
        return result.scalar_one_or_none()

    async def get_active_for_driver(
        self, driver_id: int
    ) -> Optional[RideRequestModel]:
        result = await self.session.execute(
            select(RideRequestModel).where(
                RideRequestModel.driver_id == driver_id,
                RideRequestModel.status.in_(sorted(ACTIVE_RIDE_STATUSES)),
            )
        )
        return result.scalar_one_or_none()

    async def list_history(
        self, actor_id: int, as_driver: bool, page: int, limit: int
    ) -> tuple[list[RideRequestModel], int]:
        owner = (
            RideRequestModel.driver_id if as_driver else RideRequestModel.passenger_id
        )
        criteria = (
            owner == actor_id,
            RideRequestModel.status.in_(sorted(TERMINAL_RIDE_STATUSES)),
        )
        rows = await self.session.execute(
            select(RideRequestModel)
            .where(*criteria)
            .order_by(RideRequestModel.created_at.desc(), RideRequestModel.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        total = await self.session.execute(
            select(func.count()).select_from(RideRequestModel).where(*criteria)
        )
        return list(rows.scalars().all()), total.scalar() or 0

    async def list_pending(
        self, vehicle_class: Optional[VehicleClass], limit: int
    ) -> list[RideRequestModel]:
        query = select(RideRequestModel).where(
            RideRequestModel.status == RideStatus.PENDING,
            RideRequestModel.driver_id.is_(None),
        )
        if vehicle_class:
            query = query.where(RideRequestModel.vehicle_class == vehicle_class)
        result = await self.session.execute(
            query.order_by(
                RideRequestModel.created_at.desc(), RideRequestModel.id.desc()
            ).limit(limit)
        )
        return list(result.scalars().all())

    async def list_stale_pending_ids(self, created_before: datetime) -> list[int]:
        result = await self.session.execute(
            select(RideRequestModel.id)
            .where(
                RideRequestModel.status == RideStatus.PENDING,
                RideRequestModel.created_at < created_before,
            )
            .order_by(RideRequestModel.id)
        )
        return list(result.scalars().all())


class PublishedTripRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, trip: PublishedTripModel) -> PublishedTripModel:
        self.session.add(trip)
        await self.session.flush()
        await self.session.refresh(trip)
        return trip

    async def get_by_id(self, trip_id: int) -> Optional[PublishedTripModel]:
        return await self.session.get(
            PublishedTripModel, trip_id, populate_existing=True
        )

    async def reserve_seats(self, trip_id: int, seats: int) -> bool:
        """Decrement inventory only if the trip is open and has ``seats`` left."""
        return await _changed(
            self.session,
            update(PublishedTripModel)
            .where(
                PublishedTripModel.id == trip_id,
                PublishedTripModel.status == TripStatus.SCHEDULED,
                PublishedTripModel.available_seats >= seats,
            )
            .values(available_seats=PublishedTripModel.available_seats - seats),
        )

    async def release_seats(self, trip_id: int, seats: int) -> bool:
        """Return seats to inventory only while the trip is still open."""
        return await _changed(
            self.session,
            update(PublishedTripModel)
            .where(
                PublishedTripModel.id == trip_id,
                PublishedTripModel.status == TripStatus.SCHEDULED,
                PublishedTripModel.available_seats + seats
                <= PublishedTripModel.total_seats,
            )
            .values(available_seats=PublishedTripModel.available_seats + seats),
        )

    async def compare_and_set_status(
        self, trip_id: int, expected: TripStatus, target: TripStatus
    ) -> bool:
        return await _changed(
            self.session,
            update(PublishedTripModel)
            .where(
                PublishedTripModel.id == trip_id,
                PublishedTripModel.status == expected,
            )
            .values(status=target),
        )

    async def search(
        self,
        *,
        scheduled_after: datetime,
        trip_type: Optional[TripType] = None,
        near_origin: Optional[tuple[float, float, float]] = None,
        near_destination: Optional[tuple[float, float, float]] = None,
        limit: Optional[int] = None,
    ) -> list[PublishedTripModel]:
        """
        Open trips soonest-first.

        ``near_*`` are ``(lng, lat, radius_km)`` and only narrow the result
        to a bounding box; callers apply the exact radius.
        """
        query = select(PublishedTripModel).where(
            PublishedTripModel.status == TripStatus.SCHEDULED,
            PublishedTripModel.available_seats > 0,
            PublishedTripModel.scheduled_time >= scheduled_after,
        )
        if trip_type:
            query = query.where(PublishedTripModel.trip_type == trip_type)
        if near_origin:
            query = query.where(
                *_bounding_box(
                    PublishedTripModel.origin_lng,
                    PublishedTripModel.origin_lat,
                    *near_origin,
                )
            )
        if near_destination:
            query = query.where(
                *_bounding_box(
                    PublishedTripModel.destination_lng,
                    PublishedTripModel.destination_lat,
                    *near_destination,
                )
            )
        query = query.order_by(
            PublishedTripModel.scheduled_time.asc(), PublishedTripModel.id.asc()
        )
        if limit:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_by_host(self, host_driver_id: int) -> list[PublishedTripModel]:
        result = await self.session.execute(
            select(PublishedTripModel)
            .where(PublishedTripModel.host_driver_id == host_driver_id)
            .order_by(PublishedTripModel.scheduled_time.desc())
        )
        return list(result.scalars().all())

    async def list_by_passenger(self, passenger_id: int) -> list[PublishedTripModel]:
        joined = (
            select(PassengerBookingModel.trip_id)
            .where(PassengerBookingModel.passenger_id == passenger_id)
            .scalar_subquery()
        )
        result = await self.session.execute(
            select(PublishedTripModel)
            .where(PublishedTripModel.id.in_(joined))
            .order_by(PublishedTripModel.scheduled_time.desc())
        )
        return list(result.scalars().all())


def _bounding_box(lng_col, lat_col, lng: float, lat: float, radius_km: float):
    dlat = radius_km / _KM_PER_DEGREE
    dlng = radius_km / (_KM_PER_DEGREE * max(math.cos(math.radians(lat)), 0.01))
    return (
        lat_col.between(lat - dlat, lat + dlat),
        lng_col.between(lng - dlng, lng + dlng),
    )


class PassengerBookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, booking: PassengerBookingModel) -> PassengerBookingModel:
        self.session.add(booking)
        await self.session.flush()
        await self.session.refresh(booking)
        return booking

    async def get_by_id(self, booking_id: int) -> Optional[PassengerBookingModel]:
        return await self.session.get(
            PassengerBookingModel, booking_id, populate_existing=True
        )

    async def get_live(
        self, trip_id: int, passenger_id: int
    ) -> Optional[PassengerBookingModel]:
        result = await self.session.execute(
            select(PassengerBookingModel).where(
                PassengerBookingModel.trip_id == trip_id,
                PassengerBookingModel.passenger_id == passenger_id,
                PassengerBookingModel.booking_status != BookingStatus.CANCELLED,
            )
        )
        return result.scalar_one_or_none()

    async def compare_and_set(
        self, booking_id: int, *criteria, **values
    ) -> bool:
        return await _changed(
            self.session,
            update(PassengerBookingModel)
            .where(PassengerBookingModel.id == booking_id, *criteria)
            .values(**values),
        )

    async def complete_confirmed(self, trip_id: int) -> int:
        """Mark every confirmed entry completed; return the seats they held."""
        result = await self.session.execute(
            update(PassengerBookingModel)
            .where(
                PassengerBookingModel.trip_id == trip_id,
                PassengerBookingModel.booking_status == BookingStatus.CONFIRMED,
            )
            .values(booking_status=BookingStatus.COMPLETED)
            .returning(PassengerBookingModel.seats_booked)
            .execution_options(synchronize_session=False)
        )
        return sum(result.scalars().all())


class WalletTopUpRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, top_up: WalletTopUpModel) -> WalletTopUpModel:
        self.session.add(top_up)
        await self.session.flush()
        await self.session.refresh(top_up)
        return top_up


class ActorDocumentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(
        self, actor_id: int, doc_type: DocumentType
    ) -> Optional[ActorDocumentModel]:
        result = await self.session.execute(
            select(ActorDocumentModel).where(
                ActorDocumentModel.actor_id == actor_id,
                ActorDocumentModel.doc_type == doc_type,
            )
        )
        return result.scalar_one_or_none()

    async def upsert(
        self, actor_id: int, doc_type: DocumentType, path: str
    ) -> ActorDocumentModel:
        document = await self.get(actor_id, doc_type)
        if document is None:
            document = ActorDocumentModel(actor_id=actor_id, doc_type=doc_type, path=path)
            self.session.add(document)
        else:
            document.path = path
        await self.session.flush()
        await self.session.refresh(document)
        return document

    async def list_for_actor(self, actor_id: int) -> list[ActorDocumentModel]:
        result = await self.session.execute(
            select(ActorDocumentModel)
            .where(ActorDocumentModel.actor_id == actor_id)
            .order_by(ActorDocumentModel.id)
        )
        return list(result.scalars().all())
