"""Domain enumerations and state-transition rules."""

import enum


class Role(str, enum.Enum):
    PASSENGER = "PASSENGER"
    DRIVER = "DRIVER"
    ADMIN = "ADMIN"


class RideStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    ARRIVED = "ARRIVED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


ACTIVE_RIDE_STATUSES = frozenset(
    {RideStatus.PENDING, RideStatus.ACCEPTED, RideStatus.ARRIVED, RideStatus.ONGOING}
)
TERMINAL_RIDE_STATUSES = frozenset({RideStatus.COMPLETED, RideStatus.CANCELLED})

# Dropoff is disclosed to the driver only once the ride is underway.
DROPOFF_VISIBLE_STATUSES = frozenset({RideStatus.ONGOING, RideStatus.COMPLETED})


# (caller role, current status) -> set of statuses the caller may move to
RIDE_TRANSITIONS: dict[Role, dict[RideStatus, set[RideStatus]]] = {
    Role.DRIVER: {
        RideStatus.PENDING: {RideStatus.CANCELLED},
        RideStatus.ACCEPTED: {RideStatus.ARRIVED, RideStatus.CANCELLED},
        RideStatus.ARRIVED: {RideStatus.ONGOING, RideStatus.CANCELLED},
        RideStatus.ONGOING: {RideStatus.COMPLETED, RideStatus.CANCELLED},
    },
    Role.PASSENGER: {
        RideStatus.PENDING: {RideStatus.CANCELLED},
        RideStatus.ACCEPTED: {RideStatus.CANCELLED},
        RideStatus.ARRIVED: {RideStatus.CANCELLED},
        RideStatus.ONGOING: {RideStatus.CANCELLED},
    },
}


class CancelledBy(str, enum.Enum):
    PASSENGER = "PASSENGER"
    DRIVER = "DRIVER"
    SYSTEM = "SYSTEM"


class TripKind(str, enum.Enum):
    """Pricing kind of an on-demand request. Only CITY is metered."""

    CITY = "CITY"
    OUTSTATION = "OUTSTATION"
    POOL = "POOL"
    RENTAL = "RENTAL"


class VehicleClass(str, enum.Enum):
    CAR = "CAR"
    BIKE = "BIKE"
    AUTO = "AUTO"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    WALLET = "WALLET"


class TripStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


TRIP_TRANSITIONS: dict[TripStatus, set[TripStatus]] = {
    TripStatus.SCHEDULED: {TripStatus.ONGOING, TripStatus.CANCELLED},
    TripStatus.ONGOING: {TripStatus.COMPLETED, TripStatus.CANCELLED},
    TripStatus.COMPLETED: set(),
    TripStatus.CANCELLED: set(),
}


class TripType(str, enum.Enum):
    LOCAL = "LOCAL"
    OUTSTATION = "OUTSTATION"
    INTERCITY = "INTERCITY"


class BookingStatus(str, enum.Enum):
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class PickupStatus(str, enum.Enum):
    PENDING = "PENDING"
    PICKED_UP = "PICKED_UP"
    DROPPED_OFF = "DROPPED_OFF"


class RatingSide(str, enum.Enum):
    """Who gave the rating."""

    PASSENGER = "PASSENGER"
    DRIVER = "DRIVER"


class DocumentType(str, enum.Enum):
    LICENSE_FRONT = "licenseFront"
    LICENSE_BACK = "licenseBack"
    REGISTRATION = "registration"
    INSURANCE = "insurance"
    AADHAR_FRONT = "aadharFront"
    AADHAR_BACK = "aadharBack"
    PAN_CARD = "panCard"
    PERMIT = "permit"
    FITNESS = "fitness"
    RC = "rc"
    PROFILE_IMAGE = "profileImage"
