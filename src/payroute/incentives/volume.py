"""Monthly received volume per receiver, used to pick the fee tier."""

import logging
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional

from payroute.incentives.fee_tiers import get_fee_tier
from payroute.utils.kvstore import InMemoryKeyValueStore, KeyValueStore

logger = logging.getLogger(__name__)

# Buckets outlive their month slightly so late reads still see them
BUCKET_TTL_SECONDS = 62 * 24 * 60 * 60


class VolumeTracker:
    """Calendar-month volume buckets in a KeyValueStore."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store if store is not None else InMemoryKeyValueStore()
        self._clock = clock

    def _month(self) -> str:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc).strftime("%Y-%m")

    def _key(self, receiver: str) -> str:
        return f"volume:{receiver.lower()}:{self._month()}"

    async def get_monthly_volume(self, receiver: str) -> Decimal:
        record = await self._store.get(self._key(receiver))
        if not record:
            return Decimal("0")
        return Decimal(record["volume"])

    async def record_payment(self, receiver: str, amount_usd: Decimal, tx_hash: Optional[str] = None) -> dict:
        key = self._key(receiver)
        record = await self._store.get(key) or {"volume": "0", "payments": 0}
        volume = Decimal(record["volume"]) + Decimal(str(amount_usd))
        updated = {
            "volume": str(volume),
            "payments": record["payments"] + 1,
            "last_tx": tx_hash,
            "tier": get_fee_tier(volume).name,
        }
        await self._store.set(key, updated, ttl=BUCKET_TTL_SECONDS)
        logger.debug(f"Recorded {amount_usd} USD for {receiver}: month volume {volume}")
        return updated
