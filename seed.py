"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 passengers and 4 drivers (some wallets pre-funded)
  - 4 published trips around Bengaluru, two with bookings
  - 5 ride requests (mix of PENDING, ACCEPTED, COMPLETED, CANCELLED)
"""

import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import text

from src.domain.entities import generate_pickup_code
from src.domain.enums import (
    BookingStatus,
    CancelledBy,
    PaymentMethod,
    PickupStatus,
    RideStatus,
    Role,
    TripKind,
    TripStatus,
    TripType,
    VehicleClass,
)
from src.domain.pricing import FareEstimator
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.models import (
    ActorModel,
    PassengerBookingModel,
    PublishedTripModel,
    RideRequestModel,
)

# Kempegowda airport (lng, lat)
AIRPORT = ("Kempegowda International Airport", 77.7063, 13.1986)
MG_ROAD = ("MG Road Metro", 77.6070, 12.9756)
WHITEFIELD = ("Whitefield ITPL", 77.7370, 12.9857)
KORAMANGALA = ("Koramangala 5th Block", 77.6190, 12.9352)
MYSURU = ("Mysuru Palace", 76.6552, 12.3052)


PASSENGERS = [
    {"name": "Aarav Sharma", "wallet": 500.0},
    {"name": "Priya Patel", "wallet": 1200.0},
    {"name": "Rohan Mehta", "wallet": 0.0},
    {"name": "Sneha Gupta", "wallet": 250.0},
    {"name": "Ananya Reddy", "wallet": 800.0},
    {"name": "Karan Joshi", "wallet": 0.0},
]

DRIVERS = [
    {"name": "Vikram Singh", "rating": 4.6, "count": 40},
    {"name": "Meera Nair", "rating": 4.9, "count": 112},
    {"name": "Arjun Kumar", "rating": 4.4, "count": 18},
    {"name": "Diya Iyer", "rating": 4.7, "count": 63},
]


def _place(prefix: str, place: tuple) -> dict:
    name, lng, lat = place
    key = "address" if prefix in ("pickup", "dropoff") else "name"
    return {f"{prefix}_{key}": name, f"{prefix}_lng": lng, f"{prefix}_lat": lat}


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM actors"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Actors ────────────────────────────────────────────────────
        passengers = [
            ActorModel(name=p["name"], role=Role.PASSENGER, wallet_balance=p["wallet"])
            for p in PASSENGERS
        ]
        drivers = [
            ActorModel(
                name=d["name"],
                role=Role.DRIVER,
                rating_average=d["rating"],
                rating_count=d["count"],
            )
            for d in DRIVERS
        ]
        session.add_all(passengers + drivers)
        await session.flush()
        print(f"  Created {len(passengers)} passengers and {len(drivers)} drivers")

        # ── Published trips ───────────────────────────────────────────
        now = datetime.now(timezone.utc)
        trips_data = [
            (drivers[0], TripType.LOCAL, AIRPORT, MG_ROAD, 2, 4, 250.0),
            (drivers[1], TripType.LOCAL, AIRPORT, WHITEFIELD, 5, 3, 300.0),
            (drivers[2], TripType.INTERCITY, KORAMANGALA, MYSURU, 26, 6, 650.0),
            (drivers[3], TripType.LOCAL, MG_ROAD, AIRPORT, 8, 4, 275.0),
        ]
        trips = []
        for host, trip_type, origin, destination, hours, seats, price in trips_data:
            trip = PublishedTripModel(
                host_driver_id=host.id,
                trip_type=trip_type,
                status=TripStatus.SCHEDULED,
                **_place("origin", origin),
                **_place("destination", destination),
                scheduled_time=now + timedelta(hours=hours),
                vehicle="Sedan",
                total_seats=seats,
                available_seats=seats,
                price_per_seat=price,
                preferences={"music": True, "ac": True, "quiet": False, "pets": False},
            )
            session.add(trip)
            trips.append(trip)
        await session.flush()

        bookings = [(trips[0], passengers[0], 1), (trips[0], passengers[1], 2), (trips[2], passengers[3], 1)]
        for trip, passenger, seats in bookings:
            session.add(
                PassengerBookingModel(
                    trip_id=trip.id,
                    passenger_id=passenger.id,
                    seats_booked=seats,
                    booking_status=BookingStatus.CONFIRMED,
                    pickup_status=PickupStatus.PENDING,
                    pickup_code=generate_pickup_code(),
                )
            )
            trip.available_seats -= seats
        await session.flush()
        print(f"  Created {len(trips)} trips with {len(bookings)} bookings")

        # ── Ride requests ─────────────────────────────────────────────
        estimator = FareEstimator()
        rides_data = [
            (passengers[2], None, RideStatus.PENDING, VehicleClass.AUTO, 12.0, 30.0, None),
            (passengers[4], None, RideStatus.PENDING, VehicleClass.CAR, 35.0, 55.0, None),
            (passengers[5], drivers[0], RideStatus.ACCEPTED, VehicleClass.CAR, 8.0, 20.0, None),
            (passengers[0], drivers[1], RideStatus.COMPLETED, VehicleClass.CAR, 36.0, 60.0, None),
            (passengers[1], None, RideStatus.CANCELLED, VehicleClass.BIKE, 5.0, 15.0, CancelledBy.SYSTEM),
        ]
        for passenger, driver, status, vehicle_class, km, mins, cancelled_by in rides_data:
            quote = estimator.quote(TripKind.CITY, vehicle_class, km, mins)
            session.add(
                RideRequestModel(
                    passenger_id=passenger.id,
                    driver_id=driver.id if driver else None,
                    **_place("pickup", AIRPORT),
                    **_place("dropoff", KORAMANGALA),
                    trip_kind=TripKind.CITY,
                    vehicle_class=vehicle_class,
                    distance_km=km,
                    duration_mins=mins,
                    estimated_fare=quote.estimated_fare,
                    offered_fare=quote.offered_fare,
                    final_fare=quote.final_fare,
                    payment_method=PaymentMethod.CASH,
                    payment_settled=status == RideStatus.COMPLETED,
                    status=status,
                    cancelled_by=cancelled_by,
                    accepted_at=now if driver else None,
                    completed_at=now if status == RideStatus.COMPLETED else None,
                    cancelled_at=now if status == RideStatus.CANCELLED else None,
                )
            )
        await session.flush()
        print(f"  Created {len(rides_data)} ride requests")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
