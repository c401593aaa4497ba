# mintgate/supply.py
# Global ceiling, per-channel sub-caps and per-address quotas.

from __future__ import annotations

import logging
from typing import Dict, Tuple

from .chain import Chain, Stateful, to_address
from .config import Channel, SaleConfig
from .constants import UINT256_MAX
from .errors import (
    ArithmeticOverflow,
    ChannelSupplyExceeded,
    GlobalSupplyExceeded,
    QuotaExceeded,
    ZeroQuantity,
)

logger = logging.getLogger(__name__)


def checked_add(a: int, b: int, bound: int = UINT256_MAX) -> int:
    total = a + b
    if total > bound:
        raise ArithmeticOverflow(f"{a} + {b} exceeds {bound}")
    return total


class SupplyLedger(Stateful):
    _transient = ("chain", "config")
    _flat = ("channel_minted", "claimed")

    def __init__(self, chain: Chain, max_supply: int, config: SaleConfig) -> None:
        self.chain = chain
        self.config = config
        self._max_supply = max_supply
        self.total_minted = 0
        self.channel_minted: Dict[Channel, int] = {channel: 0 for channel in Channel}
        self.claimed: Dict[Tuple[Channel, str], int] = {}
        chain.journal(self)

    @property
    def max_supply(self) -> int:
        return self._max_supply

    def claimed_by(self, channel: Channel, claimant: str) -> int:
        return self.claimed.get((channel, to_address(claimant)), 0)

    def remaining(self) -> int:
        return self._max_supply - self.total_minted

    def check_capacity(self, channel: Channel, quantity: int) -> None:
        if quantity <= 0:
            raise ZeroQuantity(f"quantity must be positive, got {quantity}")
        if self.total_minted + quantity > self._max_supply:
            raise GlobalSupplyExceeded(
                f"{self.total_minted} minted + {quantity} requested > {self._max_supply}"
            )
        if channel.gated:
            sub_cap = self.config.channel(channel).sub_cap
            minted = self.channel_minted[channel]
            if minted + quantity > sub_cap:
                raise ChannelSupplyExceeded(
                    f"{channel.value}: {minted} minted + {quantity} requested > {sub_cap}"
                )

    def check_quota(self, channel: Channel, claimant: str, quantity: int) -> None:
        limit = self.config.channel(channel).max_per_address
        if not limit:
            return
        claimed = self.claimed_by(channel, claimant)
        if claimed + quantity > limit:
            raise QuotaExceeded(
                f"{channel.value}: {claimant} claimed {claimed} + {quantity} requested > {limit}"
            )

    def reserve(self, channel: Channel, quantity: int, claimant: str) -> None:
        """Check everything, then commit every counter at once."""
        claimant = to_address(claimant)
        self.check_capacity(channel, quantity)
        self.check_quota(channel, claimant, quantity)
        total = checked_add(self.total_minted, quantity, self._max_supply)
        channel_total = checked_add(self.channel_minted[channel], quantity, self._max_supply)
        key = (channel, claimant)
        claimed = checked_add(self.claimed.get(key, 0), quantity)
        self.total_minted = total
        self.channel_minted[channel] = channel_total
        self.claimed[key] = claimed
        logger.debug("reserved %d on %s for %s (total %d)", quantity, channel.value, claimant, total)


def checked_mul(a: int, b: int, bound: int = UINT256_MAX) -> int:
    product = a * b
    if product > bound:
        raise ArithmeticOverflow(f"{a} * {b} exceeds {bound}")
    return product
