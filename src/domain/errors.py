"""
Error taxonomy shared by both lifecycle engines.

Every rejected precondition surfaces as exactly one of these so the API
layer can map it to a status code and the caller can render a precise
message.  Nothing here is retried by the core.
"""


class CoreError(Exception):
    """Base class for all domain errors."""

    code = "error"
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = str(self.args[0])


class ValidationError(CoreError):
    """Missing or malformed input."""

    code = "validation_error"
    status_code = 422


class NotFoundError(CoreError):
    """Referenced entity does not exist."""

    code = "not_found"
    status_code = 404


class ForbiddenError(CoreError):
    """Caller is not a party to the entity."""

    code = "forbidden"
    status_code = 403


class ConflictError(CoreError):
    """State precondition violated or a concurrent write won the race."""

    code = "conflict"
    status_code = 409


class InvalidTransitionError(CoreError):
    """Target status is not reachable from the current one for this role."""

    code = "invalid_transition"
    status_code = 409


class InsufficientSeatsError(CoreError):
    """Not enough seats left on the trip."""

    code = "insufficient_seats"
    status_code = 409


class SelfBookingError(CoreError):
    """A host cannot book seats on their own trip."""

    code = "self_booking"
    status_code = 400


class SettlementError(CoreError):
    """Financial delta could not be applied; the status change was rolled back."""

    code = "settlement_failed"
    status_code = 402
