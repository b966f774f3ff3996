"""Tests for fee tiers, referrals and volume tracking."""

from decimal import Decimal

import pytest

from conftest import PAYER, RECIPIENT
from payroute.errors import ValidationError
from payroute.incentives import (
    ReferralRegistry,
    VolumeTracker,
    calculate_fee,
    get_fee_tier,
    get_next_tier_info,
)
from payroute.incentives.referrals import REFERRAL_DURATION_SECONDS
from payroute.utils.kvstore import InMemoryKeyValueStore

REFERRER = "0x9999999999999999999999999999999999999999"


class TestFeeTiers:
    """Monthly volume picks the tier, the tier picks the fee."""

    @pytest.mark.parametrize(
        "volume,expected",
        [
            ("0", "Starter"),
            ("999.99", "Starter"),
            ("1000", "Growth"),
            ("9999", "Growth"),
            ("10000", "Pro"),
            ("99999.99", "Pro"),
            ("100000", "Enterprise"),
            ("5000000", "Enterprise"),
        ],
    )
    def test_tier_boundaries(self, volume, expected):
        assert get_fee_tier(volume).name == expected

    def test_starter_fee(self):
        quote = calculate_fee("1000", "0")
        assert quote.fee_amount == Decimal("1.5")
        assert quote.fee_bps == Decimal("15")
        assert quote.to_dict()["fee_amount"] == "1.50"
        assert not quote.waived

    def test_enterprise_fee(self):
        quote = calculate_fee("1000", "250000")
        assert quote.fee_amount == Decimal("0.25")
        assert quote.tier.fee_percent == "0.025%"

    def test_gas_tank_waives_fee(self):
        quote = calculate_fee("1000", "0", has_gas_tank=True)
        assert quote.waived
        assert quote.fee_amount == 0
        assert quote.tier.name == "Starter"

    def test_next_tier_progress(self):
        info = get_next_tier_info("500")
        assert info["current_tier"].name == "Starter"
        assert info["next_tier"].name == "Growth"
        assert info["volume_to_next_tier"] == Decimal("500")
        assert info["percent_to_next_tier"] == Decimal("50")

    def test_top_tier_has_no_next(self):
        info = get_next_tier_info("100000")
        assert info["next_tier"] is None
        assert info["volume_to_next_tier"] == 0
        assert info["percent_to_next_tier"] == 100


class TestReferralRegistry:
    @pytest.fixture
    def registry(self, clock) -> ReferralRegistry:
        return ReferralRegistry(InMemoryKeyValueStore(clock=clock), clock=clock)

    @pytest.mark.asyncio
    async def test_register_and_lookup(self, registry):
        referral = await registry.register(REFERRER, RECIPIENT)

        assert referral.expires_at - referral.created_at == REFERRAL_DURATION_SECONDS
        assert await registry.get_referrer(RECIPIENT) == REFERRER.lower()
        assert await registry.get_referrer(PAYER) is None

    @pytest.mark.asyncio
    async def test_self_referral_rejected(self, registry):
        with pytest.raises(ValidationError, match="yourself"):
            await registry.register(RECIPIENT, RECIPIENT)

    @pytest.mark.asyncio
    async def test_second_referrer_rejected(self, registry):
        await registry.register(REFERRER, RECIPIENT)
        with pytest.raises(ValidationError, match="already"):
            await registry.register(PAYER, RECIPIENT)

    @pytest.mark.asyncio
    async def test_reward_is_half_the_fee(self, registry):
        await registry.register(REFERRER, RECIPIENT)
        reward = await registry.calculate_reward(RECIPIENT, Decimal("1.50"))

        assert reward.referrer == REFERRER.lower()
        assert reward.referral_reward == Decimal("0.75")
        assert reward.net_protocol_fee == Decimal("0.75")

    @pytest.mark.asyncio
    async def test_no_referrer_keeps_full_fee(self, registry):
        reward = await registry.calculate_reward(RECIPIENT, Decimal("1.50"))
        assert reward.referrer is None
        assert reward.referral_reward == 0
        assert reward.net_protocol_fee == Decimal("1.50")

    @pytest.mark.asyncio
    async def test_referral_expires(self, registry, clock):
        await registry.register(REFERRER, RECIPIENT)
        clock.advance(REFERRAL_DURATION_SECONDS - 1)
        assert await registry.get_referrer(RECIPIENT) == REFERRER.lower()

        clock.advance(1)
        assert await registry.get_referrer(RECIPIENT) is None
        reward = await registry.calculate_reward(RECIPIENT, Decimal("1.50"))
        assert reward.referral_reward == 0

    @pytest.mark.asyncio
    async def test_earnings_and_stats(self, registry, clock):
        await registry.register(REFERRER, RECIPIENT)
        await registry.register(REFERRER, PAYER)
        await registry.record_earning(RECIPIENT, Decimal("0.75"))
        await registry.record_earning(RECIPIENT, Decimal("0.25"))

        stats = await registry.get_referrer_stats(REFERRER)
        assert stats["total_referrals"] == 2
        assert stats["active_referrals"] == 2
        assert Decimal(stats["total_earned"]) == Decimal("1.00")

        clock.advance(REFERRAL_DURATION_SECONDS)
        await registry.record_earning(RECIPIENT, Decimal("5"))
        stats = await registry.get_referrer_stats(REFERRER)
        assert stats["active_referrals"] == 0
        assert Decimal(stats["total_earned"]) == Decimal("1.00")


class TestVolumeTracker:
    @pytest.fixture
    def tracker(self, clock) -> VolumeTracker:
        return VolumeTracker(InMemoryKeyValueStore(clock=clock), clock=clock)

    @pytest.mark.asyncio
    async def test_payments_accumulate(self, tracker):
        await tracker.record_payment(RECIPIENT, Decimal("600"))
        record = await tracker.record_payment(RECIPIENT, Decimal("500"), tx_hash="0xabc")

        assert record["payments"] == 2
        assert record["tier"] == "Growth"
        assert record["last_tx"] == "0xabc"
        assert await tracker.get_monthly_volume(RECIPIENT) == Decimal("1100")
        assert await tracker.get_monthly_volume(PAYER) == 0

    @pytest.mark.asyncio
    async def test_new_month_starts_at_zero(self, tracker, clock):
        await tracker.record_payment(RECIPIENT, Decimal("600"))
        clock.advance(31 * 24 * 60 * 60)
        assert await tracker.get_monthly_volume(RECIPIENT) == 0
