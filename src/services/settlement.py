"""
Settlement Module
=================

Applies wallet / earnings deltas and rating aggregates as a side effect of
lifecycle transitions.  It keeps no state of its own: every delta is one
conditional ``UPDATE`` on ``actors`` executed in the caller's transaction,
so a failure here (raised as ``SettlementError``) rolls back the status
change that triggered it.

Exactly-once is the caller's job: each entry point is only reached after the
engine has won the compare-and-swap on the triggering status, which cannot
be won twice.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.enums import PaymentMethod, RatingSide, Role
from src.domain.errors import ConflictError, NotFoundError, SettlementError, ValidationError
from src.infrastructure.models import (
    PublishedTripModel,
    RideRequestModel,
    WalletTopUpModel,
)
from src.infrastructure.repositories import ActorRepository, WalletTopUpRepository

logger = logging.getLogger(__name__)


class SettlementService:
    def __init__(self, session: AsyncSession, allow_overdraft: bool | None = None):
        self.session = session
        self.actors = ActorRepository(session)
        self.allow_overdraft = (
            settings.wallet_overdraft_allowed if allow_overdraft is None else allow_overdraft
        )

    async def apply_ride_settlement(self, ride: RideRequestModel) -> None:
        """Credit the driver by ``final_fare``; debit the passenger for wallet rides."""
        if ride.driver_id is None:
            raise SettlementError("Ride has no driver to credit")

        if not await self.actors.credit_earnings(ride.driver_id, ride.final_fare):
            raise SettlementError(f"Driver {ride.driver_id} not found")

        if ride.payment_method == PaymentMethod.WALLET:
            debited = await self.actors.debit_wallet(
                ride.passenger_id, ride.final_fare, self.allow_overdraft
            )
            if not debited:
                logger.warning(
                    "Wallet debit of %.2f failed for passenger %d (ride %d)",
                    ride.final_fare,
                    ride.passenger_id,
                    ride.id,
                )
                raise SettlementError("Insufficient wallet balance")

        logger.info(
            "Settled ride %d: driver %d +%.2f (%s)",
            ride.id,
            ride.driver_id,
            ride.final_fare,
            ride.payment_method.value,
        )

    async def apply_rating(
        self, ride: RideRequestModel, side: RatingSide, value: int
    ) -> None:
        """Fold ``value`` into the rated party's running average."""
        rated = ride.driver_id if side == RatingSide.PASSENGER else ride.passenger_id
        if rated is None or not await self.actors.add_rating(rated, value):
            raise SettlementError("Rated actor not found")

    async def apply_trip_settlement(
        self, trip: PublishedTripModel, amount: float
    ) -> None:
        if amount <= 0:
            return
        if not await self.actors.credit_earnings(trip.host_driver_id, amount):
            raise SettlementError(f"Host {trip.host_driver_id} not found")
        logger.info(
            "Settled trip %d: host %d +%.2f", trip.id, trip.host_driver_id, amount
        )

    async def credit_top_up(
        self,
        actor_id: int,
        amount: float,
        funds_verified: bool,
        payment_reference: str,
    ) -> WalletTopUpModel:
        """
        Apply a payment-gateway confirmation to the actor's wallet.

        Drivers get the same amount mirrored into ``earnings_total``.  The
        reference is recorded under a unique constraint, so a replayed
        confirmation fails with ``ConflictError`` instead of paying twice.
        """
        if not funds_verified:
            raise ValidationError("Payment not verified by the gateway")
        if amount <= 0:
            raise ValidationError("Amount must be positive")

        actor = await self.actors.get_by_id(actor_id)
        if actor is None:
            raise NotFoundError("Actor not found")

        try:
            top_up = await WalletTopUpRepository(self.session).create(
                WalletTopUpModel(
                    actor_id=actor_id, amount=amount, payment_reference=payment_reference
                )
            )
        except IntegrityError as exc:
            raise ConflictError("Payment already applied") from exc

        credited = await self.actors.credit_wallet(
            actor_id, amount, mirror_to_earnings=actor.role == Role.DRIVER
        )
        if not credited:
            raise SettlementError("Wallet credit failed")
        logger.info("Wallet top-up %s: actor %d +%.2f", payment_reference, actor_id, amount)
        return top_up
