# mintgate/executor.py
# Arbitrary calls made on the contract's behalf, used to sweep or recover funds.

from __future__ import annotations

import logging

from .chain import Chain, to_address
from .errors import NegativeValue, ValueTransferFailed
from .events import TransactionExecuted

logger = logging.getLogger(__name__)


class TransactionExecutor:
    def __init__(self, chain: Chain, contract: str) -> None:
        self.chain = chain
        self.contract = contract

    def execute(self, target: str, payload: bytes, value: int) -> bytes:
        """Forward ``value`` and ``payload``; the callee's revert payload is re-raised as is."""
        target = to_address(target)
        if value < 0:
            raise NegativeValue(f"cannot send {value} to {target}")
        result = self.chain.call(self.contract, target, value, payload)
        if not result.success:
            logger.warning("exec to %s reverted with 0x%s", target, result.data.hex())
            raise ValueTransferFailed(target, result.data)
        self.chain.emit(TransactionExecuted(target, value, bytes(payload)))
        logger.info("executed call to %s with value %d", target, value)
        return result.data
