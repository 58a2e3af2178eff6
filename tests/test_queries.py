"""Read-layer visibility and search tests."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from src.domain.entities import HIDDEN_DROPOFF
from src.domain.enums import RideStatus, TripStatus, TripType
from src.domain.errors import ForbiddenError, NotFoundError
from src.infrastructure.models import ActorModel
from src.services.queries import AccountQueries, RideQueries, TripQueries
from src.services.rides import RideLifecycleService
from src.services.trips import SeatLedgerService
from tests.conftest import (
    AIRPORT,
    ASHA,
    BEN,
    MG_ROAD,
    MYSURU,
    RAVI,
    SITA,
)


def _submit(identity, **kwargs):
    return lambda s: RideLifecycleService(s).submit(identity, AIRPORT, MG_ROAD, **kwargs)


def _publish(host, origin, destination, hours=2, seats=4, **kwargs):
    when = datetime.now(timezone.utc) + timedelta(hours=hours)
    return lambda s: SeatLedgerService(s).publish(
        host, origin, destination, when, seats, 200.0, **kwargs
    )


class TestRideVisibility:
    @pytest.mark.asyncio
    async def test_driver_sees_hidden_dropoff_until_ride_starts(self, run):
        ride = await run(_submit(ASHA))
        feed = await run(lambda s: RideQueries(s).nearby(RAVI))
        assert feed[0]["dropoff"] == HIDDEN_DROPOFF
        assert feed[0]["pickup"]["address"] == AIRPORT.address

        await run(lambda s: RideLifecycleService(s).claim(RAVI, ride.id))
        view = await run(lambda s: RideQueries(s).get_ride(RAVI, ride.id))
        assert view["dropoff"] == HIDDEN_DROPOFF

        await run(
            lambda s: RideLifecycleService(s).transition(RAVI, ride.id, RideStatus.ARRIVED)
        )
        await run(
            lambda s: RideLifecycleService(s).transition(RAVI, ride.id, RideStatus.ONGOING)
        )
        view = await run(lambda s: RideQueries(s).get_ride(RAVI, ride.id))
        assert view["dropoff"] == MG_ROAD.as_dict()

    @pytest.mark.asyncio
    async def test_passenger_always_sees_own_dropoff(self, run):
        ride = await run(_submit(ASHA))
        view = await run(lambda s: RideQueries(s).get_ride(ASHA, ride.id))
        assert view["dropoff"] == MG_ROAD.as_dict()

    @pytest.mark.asyncio
    async def test_non_party_cannot_read_ride(self, run):
        ride = await run(_submit(ASHA))
        with pytest.raises(ForbiddenError):
            await run(lambda s: RideQueries(s).get_ride(BEN, ride.id))

    @pytest.mark.asyncio
    async def test_passengers_cannot_browse_requests(self, run):
        with pytest.raises(ForbiddenError):
            await run(lambda s: RideQueries(s).nearby(BEN))

    @pytest.mark.asyncio
    async def test_active_ride_and_history(self, run):
        ride = await run(_submit(ASHA))
        active = await run(lambda s: RideQueries(s).active_ride(ASHA))
        assert active["id"] == ride.id
        assert await run(lambda s: RideQueries(s).active_ride(BEN)) is None

        await run(
            lambda s: RideLifecycleService(s).transition(ASHA, ride.id, RideStatus.CANCELLED)
        )
        history = await run(lambda s: RideQueries(s).history(ASHA, page=1, limit=10))
        assert [r["id"] for r in history["data"]] == [ride.id]
        assert history["pagination"] == {"total": 1, "page": 1, "pages": 1}
        assert await run(lambda s: RideQueries(s).active_ride(ASHA)) is None


class TestTripSearch:
    @pytest.mark.asyncio
    async def test_search_filters_and_orders(self, run):
        later = await run(_publish(RAVI, AIRPORT, MG_ROAD, hours=5))
        sooner = await run(_publish(SITA, AIRPORT, MYSURU, hours=1))
        await run(_publish(SITA, MG_ROAD, MYSURU, hours=3, trip_type=TripType.INTERCITY))

        near_airport = (AIRPORT.lng, AIRPORT.lat)
        found = await run(lambda s: TripQueries(s).search(ASHA, from_coords=near_airport))
        assert [t["id"] for t in found] == [sooner.id, later.id]

        to_mg_road = (MG_ROAD.lng, MG_ROAD.lat)
        found = await run(
            lambda s: TripQueries(s).search(
                ASHA, from_coords=near_airport, to_coords=to_mg_road
            )
        )
        assert [t["id"] for t in found] == [later.id]

        found = await run(
            lambda s: TripQueries(s).search(ASHA, trip_type=TripType.INTERCITY)
        )
        assert [t["destination"]["address"] for t in found] == [MYSURU.address]

    @pytest.mark.asyncio
    async def test_full_and_closed_trips_are_not_listed(self, run):
        full = await run(_publish(RAVI, AIRPORT, MG_ROAD, seats=1))
        await run(lambda s: SeatLedgerService(s).claim_seats(ASHA, full.id, 1))
        closed = await run(_publish(SITA, AIRPORT, MG_ROAD))
        await run(
            lambda s: SeatLedgerService(s).update_status(SITA, closed.id, TripStatus.CANCELLED)
        )
        assert await run(lambda s: TripQueries(s).search(BEN)) == []

    @pytest.mark.asyncio
    async def test_limit_is_capped(self, run):
        for _ in range(3):
            await run(_publish(RAVI, AIRPORT, MG_ROAD))
        found = await run(lambda s: TripQueries(s).search(ASHA, limit=2))
        assert len(found) == 2


class TestManifestVisibility:
    @pytest.mark.asyncio
    async def test_pickup_code_shown_only_to_its_passenger(self, run):
        trip = await run(_publish(RAVI, AIRPORT, MG_ROAD))
        await run(lambda s: SeatLedgerService(s).claim_seats(ASHA, trip.id, 1))
        await run(lambda s: SeatLedgerService(s).claim_seats(BEN, trip.id, 1))

        as_asha = await run(lambda s: TripQueries(s).get_trip(ASHA, trip.id))
        codes = {e["passenger_id"]: e["pickup_code"] for e in as_asha["manifest"]}
        assert codes[ASHA.actor_id] is not None
        assert codes[BEN.actor_id] is None

        as_host = await run(lambda s: TripQueries(s).get_trip(RAVI, trip.id))
        assert all(e["pickup_code"] is None for e in as_host["manifest"])

    @pytest.mark.asyncio
    async def test_hosted_and_joined(self, run):
        trip = await run(_publish(RAVI, AIRPORT, MG_ROAD))
        await run(lambda s: SeatLedgerService(s).claim_seats(ASHA, trip.id, 1))

        hosted = await run(lambda s: TripQueries(s).hosted(RAVI))
        joined = await run(lambda s: TripQueries(s).joined(ASHA))
        assert [t["id"] for t in hosted] == [t["id"] for t in joined] == [trip.id]
        assert await run(lambda s: TripQueries(s).joined(BEN)) == []

    @pytest.mark.asyncio
    async def test_missing_trip(self, run):
        with pytest.raises(NotFoundError):
            await run(lambda s: TripQueries(s).get_trip(ASHA, 12345))


class TestWalletView:
    @pytest.mark.asyncio
    async def test_rating_rounded_to_one_decimal(self, run, session_factory):
        async with session_factory() as session:
            await session.execute(
                update(ActorModel)
                .where(ActorModel.id == RAVI.actor_id)
                .values(rating_average=11 / 3, rating_count=3)
            )
            await session.commit()

        wallet = await run(lambda s: AccountQueries(s).wallet(RAVI))
        assert wallet["rating_average"] == 3.7
        assert wallet["rating_count"] == 3
