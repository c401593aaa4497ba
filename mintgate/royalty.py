# mintgate/royalty.py
# Default and per-token royalty rates (numerator over ROYALTY_SCALE).

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .chain import Chain, Stateful, to_address
from .constants import ROYALTY_SCALE, ZERO_ADDRESS
from .errors import InvalidRoyalty
from .events import RoyaltyChanged

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoyaltyRate:
    receiver: str
    rate: int


class RoyaltyPolicy(Stateful):
    _transient = ("chain",)
    _flat = ("overrides",)

    def __init__(self, chain: Chain) -> None:
        self.chain = chain
        self.default: Optional[RoyaltyRate] = None
        self.overrides: Dict[int, RoyaltyRate] = {}
        chain.journal(self)

    def royalty_for(self, token_id: int, sale_price: int) -> Tuple[str, int]:
        entry = self.overrides.get(token_id) or self.default
        if entry is None:
            return ZERO_ADDRESS, 0
        return entry.receiver, sale_price * entry.rate // ROYALTY_SCALE

    def set_default(self, receiver: str, rate: int) -> None:
        self.default = self._validated(receiver, rate)
        self.chain.emit(RoyaltyChanged(0, self.default.receiver, rate))
        logger.info("default royalty set to %d/%d for %s", rate, ROYALTY_SCALE, receiver)

    def delete_default(self) -> None:
        self.default = None
        self.chain.emit(RoyaltyChanged(0, ZERO_ADDRESS, 0))

    def set_token(self, token_id: int, receiver: str, rate: int) -> None:
        self.overrides[token_id] = self._validated(receiver, rate)
        self.chain.emit(RoyaltyChanged(token_id, self.overrides[token_id].receiver, rate))
        logger.info("royalty for token %d set to %d/%d", token_id, rate, ROYALTY_SCALE)

    def reset_token(self, token_id: int) -> None:
        if self.overrides.pop(token_id, None) is not None:
            self.chain.emit(RoyaltyChanged(token_id, ZERO_ADDRESS, 0))

    @staticmethod
    def _validated(receiver: str, rate: int) -> RoyaltyRate:
        if not 0 <= rate <= ROYALTY_SCALE:
            raise InvalidRoyalty(f"rate {rate} exceeds scale {ROYALTY_SCALE}")
        receiver = to_address(receiver)
        if receiver == ZERO_ADDRESS:
            raise InvalidRoyalty("royalty receiver is the zero address")
        return RoyaltyRate(receiver, rate)
