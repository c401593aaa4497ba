# mintgate/payments.py
# What happens to the value attached to a paid mint.

from __future__ import annotations

import logging
from typing import Dict

from .chain import Chain, Stateful, require_nonzero
from .config import DeploymentProfile, PaymentMode
from .errors import ConfigurationError, ValueTransferFailed
from .royalty import RoyaltyPolicy

logger = logging.getLogger(__name__)


class PaymentPolicy(Stateful):
    mode: PaymentMode
    _transient = ("chain", "royalty")

    def __init__(self, chain: Chain, contract: str) -> None:
        self.chain = chain
        self.contract = contract
        chain.journal(self)

    def settle(self, payer: str, paid: int, required: int, first_token_id: int, quantity: int, unit_price: int) -> None:
        raise NotImplementedError

    def _send(self, to: str, amount: int) -> None:
        result = self.chain.call(self.contract, to, amount)
        if not result.success:
            logger.warning("payout of %d to %s failed", amount, to)
            raise ValueTransferFailed(to, result.data)


class RefundPolicy(PaymentPolicy):
    """Keep the exact price, hand back the change, optionally push royalties per unit."""

    mode = PaymentMode.REFUND

    def __init__(self, chain: Chain, contract: str, royalty: RoyaltyPolicy, push_royalty: bool = False) -> None:
        super().__init__(chain, contract)
        self.royalty = royalty
        self.push_royalty = push_royalty

    def settle(self, payer: str, paid: int, required: int, first_token_id: int, quantity: int, unit_price: int) -> None:
        if paid > required:
            self._send(payer, paid - required)
        if not self.push_royalty or not unit_price:
            return
        owed: Dict[str, int] = {}
        for token_id in range(first_token_id, first_token_id + quantity):
            receiver, amount = self.royalty.royalty_for(token_id, unit_price)
            if amount:
                owed[receiver] = owed.get(receiver, 0) + amount
        for receiver, amount in owed.items():
            self._send(receiver, amount)
            logger.debug("pushed royalty %d to %s", amount, receiver)


class FullForwardPolicy(PaymentPolicy):
    """Everything attached goes to the beneficiary; no change is given."""

    mode = PaymentMode.FULL_FORWARD

    def __init__(self, chain: Chain, contract: str, beneficiary: str) -> None:
        super().__init__(chain, contract)
        self.beneficiary = require_nonzero(beneficiary, "beneficiary")

    def settle(self, payer: str, paid: int, required: int, first_token_id: int, quantity: int, unit_price: int) -> None:
        if paid:
            self._send(self.beneficiary, paid)


def build_policy(profile: DeploymentProfile, chain: Chain, contract: str, royalty: RoyaltyPolicy) -> PaymentPolicy:
    if profile.payment_mode is PaymentMode.REFUND:
        return RefundPolicy(chain, contract, royalty, profile.push_royalty_on_mint)
    if profile.payment_mode is PaymentMode.FULL_FORWARD:
        return FullForwardPolicy(chain, contract, profile.beneficiary or "")
    raise ConfigurationError(f"unsupported payment mode {profile.payment_mode}")
