"""Settlement, wallet top-up and document tests."""

import pytest

from src.domain.entities import Identity
from src.domain.enums import DocumentType, PaymentMethod, RatingSide, Role
from src.domain.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    SettlementError,
    ValidationError,
)
from src.infrastructure.models import RideRequestModel
from src.services.accounts import AccountService
from src.services.settlement import SettlementService
from tests.conftest import ASHA, BEN, RAVI, SITA


def _ride(passenger=ASHA, driver=RAVI, fare=200.0, method=PaymentMethod.WALLET):
    return RideRequestModel(
        id=1,
        passenger_id=passenger.actor_id,
        driver_id=driver.actor_id if driver else None,
        final_fare=fare,
        payment_method=method,
    )


def _top_up(identity, amount, reference, verified=True):
    return lambda s: AccountService(s).top_up(identity, amount, verified, reference)


class TestRideSettlement:
    @pytest.mark.asyncio
    async def test_wallet_ride_moves_money(self, run, actor):
        await run(lambda s: SettlementService(s).apply_ride_settlement(_ride()))
        assert (await actor(ASHA)).wallet_balance == 800.0
        assert (await actor(RAVI)).earnings_total == 200.0

    @pytest.mark.asyncio
    async def test_cash_ride_only_credits_driver(self, run, actor):
        ride = _ride(method=PaymentMethod.CASH)
        await run(lambda s: SettlementService(s).apply_ride_settlement(ride))
        assert (await actor(ASHA)).wallet_balance == 1000.0
        assert (await actor(RAVI)).earnings_total == 200.0

    @pytest.mark.asyncio
    async def test_insufficient_balance_fails_whole_settlement(self, run, actor):
        with pytest.raises(SettlementError, match="Insufficient"):
            await run(
                lambda s: SettlementService(s).apply_ride_settlement(_ride(passenger=BEN))
            )
        assert (await actor(RAVI)).earnings_total == 0.0

    @pytest.mark.asyncio
    async def test_overdraft_when_allowed(self, run, actor):
        await run(
            lambda s: SettlementService(s, allow_overdraft=True).apply_ride_settlement(
                _ride(passenger=BEN)
            )
        )
        assert (await actor(BEN)).wallet_balance == -200.0

    @pytest.mark.asyncio
    async def test_ride_without_driver(self, run):
        with pytest.raises(SettlementError):
            await run(
                lambda s: SettlementService(s).apply_ride_settlement(_ride(driver=None))
            )

    @pytest.mark.asyncio
    async def test_rating_lands_on_other_party(self, run, actor):
        ride = _ride()
        await run(lambda s: SettlementService(s).apply_rating(ride, RatingSide.PASSENGER, 3))
        await run(lambda s: SettlementService(s).apply_rating(ride, RatingSide.DRIVER, 4))
        assert (await actor(RAVI)).rating_average == 3.0
        assert (await actor(ASHA)).rating_average == 4.0


class TestTopUp:
    @pytest.mark.asyncio
    async def test_verified_top_up_credits_wallet(self, run, actor):
        top_up = await run(_top_up(BEN, 300.0, "pay_001"))
        assert top_up.payment_reference == "pay_001"
        assert (await actor(BEN)).wallet_balance == 300.0
        assert (await actor(BEN)).earnings_total == 0.0

    @pytest.mark.asyncio
    async def test_driver_top_up_mirrors_into_earnings(self, run, actor):
        await run(_top_up(SITA, 150.0, "pay_002"))
        sita = await actor(SITA)
        assert sita.wallet_balance == sita.earnings_total == 150.0

    @pytest.mark.asyncio
    async def test_replayed_reference_is_applied_once(self, run, actor):
        await run(_top_up(BEN, 300.0, "pay_003"))
        with pytest.raises(ConflictError):
            await run(_top_up(BEN, 300.0, "pay_003"))
        assert (await actor(BEN)).wallet_balance == 300.0

    @pytest.mark.asyncio
    async def test_unverified_payment_rejected(self, run, actor):
        with pytest.raises(ValidationError):
            await run(_top_up(BEN, 300.0, "pay_004", verified=False))
        assert (await actor(BEN)).wallet_balance == 0.0

    @pytest.mark.asyncio
    async def test_non_positive_amount_rejected(self, run):
        with pytest.raises(ValidationError):
            await run(_top_up(BEN, 0, "pay_005"))

    @pytest.mark.asyncio
    async def test_unknown_actor(self, run):
        ghost = Identity(actor_id=99, role=Role.PASSENGER)
        with pytest.raises(NotFoundError):
            await run(_top_up(ghost, 10.0, "pay_006"))


class TestDocuments:
    @pytest.mark.asyncio
    async def test_driver_records_and_replaces_document(self, run):
        await run(
            lambda s: AccountService(s).record_document(RAVI, "licenseFront", "docs/4/a.jpg")
        )
        doc = await run(
            lambda s: AccountService(s).record_document(RAVI, "licenseFront", "docs/4/b.jpg")
        )
        assert doc.doc_type == DocumentType.LICENSE_FRONT
        assert doc.path == "docs/4/b.jpg"

        docs = await run(lambda s: AccountService(s).list_documents(RAVI))
        assert [d.path for d in docs] == ["docs/4/b.jpg"]

    @pytest.mark.asyncio
    async def test_passenger_may_only_set_profile_image(self, run):
        doc = await run(
            lambda s: AccountService(s).record_document(ASHA, "profileImage", "img/1.png")
        )
        assert doc.doc_type == DocumentType.PROFILE_IMAGE
        with pytest.raises(ForbiddenError):
            await run(
                lambda s: AccountService(s).record_document(ASHA, "permit", "docs/1.pdf")
            )

    @pytest.mark.asyncio
    async def test_unknown_document_type(self, run):
        with pytest.raises(ValidationError, match="docType"):
            await run(lambda s: AccountService(s).record_document(RAVI, "selfie", "x.jpg"))
