"""Referral registry.

A referrer earns 50% of the protocol fee on payments received by the users they
referred, for six months after the referral is registered.
"""

import logging
import time
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Callable, Optional

from payroute.errors import ValidationError
from payroute.utils.kvstore import InMemoryKeyValueStore, KeyValueStore

logger = logging.getLogger(__name__)

REFERRAL_FEE_SHARE = Decimal("0.5")
REFERRAL_DURATION_SECONDS = 6 * 30 * 24 * 60 * 60


@dataclass
class Referral:
    referrer: str
    referred: str
    created_at: float
    expires_at: float
    total_earned: str = "0"

    def is_active(self, now: float) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class ReferralReward:
    referrer: Optional[str]
    referral_reward: Decimal
    net_protocol_fee: Decimal

    def to_dict(self) -> dict:
        return {
            "referrer": self.referrer,
            "referral_reward": f"{self.referral_reward:.2f}",
            "net_protocol_fee": f"{self.net_protocol_fee:.2f}",
        }


class ReferralRegistry:
    """Referral records kept in a KeyValueStore, keyed by the referred user."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store if store is not None else InMemoryKeyValueStore()
        self._clock = clock

    @staticmethod
    def _key(referred: str) -> str:
        return f"referral:{referred.lower()}"

    @staticmethod
    def _index_key(referrer: str) -> str:
        return f"referrals-by:{referrer.lower()}"

    async def register(self, referrer: str, referred: str) -> Referral:
        """Register a referral.

        Raises:
            ValidationError: self-referral, or the user already has a referrer
        """
        referrer = referrer.lower()
        referred = referred.lower()
        if referrer == referred:
            raise ValidationError("Cannot refer yourself")
        if await self._store.get(self._key(referred)) is not None:
            raise ValidationError("User already has a referrer")

        now = self._clock()
        referral = Referral(referrer, referred, now, now + REFERRAL_DURATION_SECONDS)
        await self._store.set(self._key(referred), asdict(referral))

        index = await self._store.get(self._index_key(referrer)) or []
        await self._store.set(self._index_key(referrer), [*index, referred])
        logger.info(f"Registered referral {referrer} -> {referred}")
        return referral

    async def get_referral(self, referred: str) -> Optional[Referral]:
        data = await self._store.get(self._key(referred))
        return Referral(**data) if data else None

    async def get_referrer(self, referred: str) -> Optional[str]:
        """Active referrer for a user, None if none or expired."""
        referral = await self.get_referral(referred)
        if referral is None or not referral.is_active(self._clock()):
            return None
        return referral.referrer

    async def calculate_reward(self, referred: str, protocol_fee: Decimal) -> ReferralReward:
        referrer = await self.get_referrer(referred)
        if referrer is None or protocol_fee <= 0:
            return ReferralReward(None, Decimal("0"), protocol_fee)
        reward = protocol_fee * REFERRAL_FEE_SHARE
        return ReferralReward(referrer, reward, protocol_fee - reward)

    async def record_earning(self, referred: str, earned: Decimal) -> None:
        referral = await self.get_referral(referred)
        if referral is None or not referral.is_active(self._clock()):
            return
        referral.total_earned = str(Decimal(referral.total_earned) + earned)
        await self._store.set(self._key(referred), asdict(referral))

    async def get_referrer_stats(self, referrer: str) -> dict:
        now = self._clock()
        referred_users = await self._store.get(self._index_key(referrer)) or []
        referrals = [r for r in [await self.get_referral(u) for u in referred_users] if r]
        return {
            "address": referrer.lower(),
            "total_referrals": len(referrals),
            "active_referrals": sum(1 for r in referrals if r.is_active(now)),
            "total_earned": str(sum((Decimal(r.total_earned) for r in referrals), Decimal("0"))),
            "referrals": [asdict(r) for r in referrals],
        }
