# mintgate/sale.py
# The issuance contract: four channels gated by supply, quota, allowlist and payment,
# plus permits, royalties, metadata and operator fund recovery.

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional, Sequence, Tuple

from .access import OperatorCapability, ReentrancyGuard, public, view
from .allowlist import AllowlistVerifier
from .chain import CallContext, Chain, ContractAccount, require_nonzero, to_address
from .config import Channel, ChannelState, DeploymentProfile, SaleConfig
from .constants import SUPPORTED_INTERFACES
from .errors import (
    ChannelInactive,
    ConfigurationError,
    InsufficientPayment,
    InvalidProof,
    InvalidSubCap,
    NotApprovedOrOwner,
    Revert,
    SelfApproval,
)
from .events import (
    AllowlistRootChanged,
    ChannelPriceChanged,
    ChannelQuotaChanged,
    ChannelSubCapChanged,
    ChannelToggled,
    MetadataChanged,
    Minted,
)
from .executor import TransactionExecutor
from .ledger import SequentialTokenLedger, TokenLedger
from .metadata import TokenMetadata
from .payments import FullForwardPolicy, build_policy
from .permit import DomainContext, PermitAuthority
from .royalty import RoyaltyPolicy
from .supply import SupplyLedger, checked_mul

logger = logging.getLogger(__name__)


class SaleController(ContractAccount):
    """Issuance contract composed over independent capabilities.

    Every paid or free issuance runs its checks in a fixed order: channel
    active, payment, global and channel supply, allowlist proof, per-address
    quota. Counters are committed before any value leaves the contract, and
    the whole call is rolled back if a payout fails.
    """

    def __init__(
        self,
        chain: Chain,
        profile: DeploymentProfile,
        operator: str,
        ledger: Optional[TokenLedger] = None,
    ) -> None:
        chain.deploy(self, label=profile.name)
        self.profile = profile
        self.operator = OperatorCapability(chain, operator)
        self.guard = ReentrancyGuard()
        self.config = SaleConfig(profile.channels)
        chain.journal(self.config)
        self.ledger: TokenLedger = ledger if ledger is not None else SequentialTokenLedger(chain)
        self.supply = SupplyLedger(chain, profile.max_supply, self.config)
        self.allowlist = AllowlistVerifier()
        self.royalty = RoyaltyPolicy(chain)
        if profile.royalty_receiver:
            self.royalty.set_default(profile.royalty_receiver, profile.royalty_rate)
        self.domain = DomainContext(profile.name, profile.domain_version, self.address, chain.chain_id)
        self.permits = PermitAuthority(chain, self.ledger, self.domain)
        self.payments = build_policy(profile, chain, self.address, self.royalty)
        self.metadata = TokenMetadata(chain, profile.base_uri, profile.pre_reveal_uri, profile.reveal_threshold)
        self.executor = TransactionExecutor(chain, self.address)
        logger.info(
            "deployed %s (%s) at %s, max supply %d, %s payments",
            profile.name,
            profile.symbol,
            self.address,
            profile.max_supply,
            profile.payment_mode.value,
        )

    def receive(self, ctx: CallContext, payload: bytes) -> bytes:
        if payload:
            raise Revert()
        return b""

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    @public(payable=True, guarded=True)
    def mint(self, ctx: CallContext, to: str, quantity: int) -> int:
        return self._issue(ctx, Channel.PUBLIC, to, quantity)

    @public(payable=True, guarded=True)
    def presale_mint(self, ctx: CallContext, to: str, quantity: int, proof: Sequence[bytes]) -> int:
        return self._issue(ctx, Channel.PRESALE, to, quantity, proof)

    @public(guarded=True)
    def free_mint(self, ctx: CallContext, to: str, quantity: int, proof: Sequence[bytes]) -> int:
        return self._issue(ctx, Channel.FREE, to, quantity, proof)

    @public(guarded=True)
    def reserve_mint(self, ctx: CallContext, to: str, quantity: int) -> int:
        self.operator.require(ctx.sender)
        self.supply.reserve(Channel.RESERVE, quantity, ctx.sender)
        to = require_nonzero(to, "recipient")
        first = self.ledger.safe_create(ctx.sender, to, quantity)
        self.chain.emit(Minted(Channel.RESERVE, ctx.sender, to, first, quantity, 0))
        logger.info("reserve: %d tokens from #%d to %s", quantity, first, to)
        return first

    def _issue(
        self,
        ctx: CallContext,
        channel: Channel,
        to: str,
        quantity: int,
        proof: Sequence[bytes] = (),
    ) -> int:
        claimant = to_address(ctx.sender)
        state = self.config.channel(channel)
        if not state.active:
            raise ChannelInactive(f"{channel.value} channel is not active")

        required = 0
        if channel.priced:
            required = checked_mul(state.price, max(quantity, 0))
            if ctx.value < required:
                raise InsufficientPayment(f"{channel.value}: sent {ctx.value}, need {required}")

        self.supply.check_capacity(channel, quantity)
        if channel.gated and not self.allowlist.verify(state.allowlist_root, claimant, proof):
            raise InvalidProof(f"{claimant} is not on the {channel.value} allowlist")
        self.supply.reserve(channel, quantity, claimant)

        to = require_nonzero(to, "recipient")
        first = self.ledger.next_token_id()
        self.payments.settle(claimant, ctx.value, required, first, quantity, state.price)
        first = self.ledger.safe_create(claimant, to, quantity)
        self.chain.emit(Minted(channel, claimant, to, first, quantity, ctx.value))
        logger.info(
            "%s: %d tokens from #%d to %s (paid %d)", channel.value, quantity, first, to, ctx.value
        )
        return first

    # ------------------------------------------------------------------
    # Operator configuration
    # ------------------------------------------------------------------

    @public()
    def set_channel_active(self, ctx: CallContext, channel: Channel, active: bool) -> None:
        self.operator.require(ctx.sender)
        self.config.update(channel, active=bool(active))
        self.chain.emit(ChannelToggled(channel, bool(active)))
        logger.info("%s channel %s", channel.value, "opened" if active else "closed")

    @public()
    def set_price(self, ctx: CallContext, channel: Channel, price: int) -> None:
        self.operator.require(ctx.sender)
        if not channel.priced:
            raise ConfigurationError(f"{channel.value} channel has no price")
        if price < 0:
            raise ConfigurationError("price cannot be negative")
        self.config.update(channel, price=price)
        self.chain.emit(ChannelPriceChanged(channel, price))
        logger.info("%s price set to %d", channel.value, price)

    @public()
    def set_max_per_address(self, ctx: CallContext, channel: Channel, limit: int) -> None:
        self.operator.require(ctx.sender)
        if limit < 0:
            raise ConfigurationError("quota cannot be negative")
        self.config.update(channel, max_per_address=limit)
        self.chain.emit(ChannelQuotaChanged(channel, limit))
        logger.info("%s max per address set to %d", channel.value, limit)

    @public()
    def set_sub_cap(self, ctx: CallContext, channel: Channel, sub_cap: int) -> None:
        self.operator.require(ctx.sender)
        if not channel.gated:
            raise ConfigurationError(f"{channel.value} channel has no sub-cap")
        if not self.supply.channel_minted[channel] <= sub_cap <= self.supply.max_supply:
            raise InvalidSubCap(
                f"{channel.value} sub-cap {sub_cap} must lie within "
                f"{self.supply.channel_minted[channel]}..{self.supply.max_supply}"
            )
        self.config.update(channel, sub_cap=sub_cap)
        self.chain.emit(ChannelSubCapChanged(channel, sub_cap))
        logger.info("%s sub-cap set to %d", channel.value, sub_cap)

    @public()
    def set_allowlist_root(self, ctx: CallContext, channel: Channel, root: bytes) -> None:
        self.operator.require(ctx.sender)
        if not channel.gated:
            raise ConfigurationError(f"{channel.value} channel has no allowlist")
        root = bytes(root)
        if len(root) != 32:
            raise ConfigurationError("allowlist root must be 32 bytes")
        self.config.update(channel, allowlist_root=root)
        self.chain.emit(AllowlistRootChanged(channel, root))
        logger.info("%s allowlist root set to 0x%s", channel.value, root.hex())

    @public()
    def set_base_uri(self, ctx: CallContext, base_uri: str) -> None:
        self.operator.require(ctx.sender)
        self.metadata.base_uri = base_uri
        self.chain.emit(MetadataChanged("base_uri", base_uri))

    @public()
    def set_pre_reveal_uri(self, ctx: CallContext, pre_reveal_uri: str) -> None:
        self.operator.require(ctx.sender)
        self.metadata.pre_reveal_uri = pre_reveal_uri
        self.chain.emit(MetadataChanged("pre_reveal_uri", pre_reveal_uri))

    @public()
    def set_reveal_threshold(self, ctx: CallContext, threshold: int) -> None:
        self.operator.require(ctx.sender)
        self.metadata.reveal_threshold = threshold
        self.chain.emit(MetadataChanged("reveal_threshold", str(threshold)))
        logger.info("revealed up to token %d", threshold)

    @public()
    def set_default_royalty(self, ctx: CallContext, receiver: str, rate: int) -> None:
        self.operator.require(ctx.sender)
        self.royalty.set_default(receiver, rate)

    @public()
    def delete_default_royalty(self, ctx: CallContext) -> None:
        self.operator.require(ctx.sender)
        self.royalty.delete_default()

    @public()
    def set_token_royalty(self, ctx: CallContext, token_id: int, receiver: str, rate: int) -> None:
        self.operator.require(ctx.sender)
        self.royalty.set_token(token_id, receiver, rate)

    @public()
    def reset_token_royalty(self, ctx: CallContext, token_id: int) -> None:
        self.operator.require(ctx.sender)
        self.royalty.reset_token(token_id)

    @public()
    def set_beneficiary(self, ctx: CallContext, beneficiary: str) -> None:
        self.operator.require(ctx.sender)
        if not isinstance(self.payments, FullForwardPolicy):
            raise ConfigurationError("beneficiary only applies to full_forward payments")
        self.payments.beneficiary = require_nonzero(beneficiary, "beneficiary")
        logger.info("beneficiary set to %s", self.payments.beneficiary)

    @public()
    def transfer_ownership(self, ctx: CallContext, new_owner: str) -> None:
        self.operator.require(ctx.sender)
        self.operator.transfer(new_owner)

    @public()
    def renounce_ownership(self, ctx: CallContext) -> None:
        self.operator.require(ctx.sender)
        self.operator.renounce()

    @public(guarded=True)
    def exec_transaction(self, ctx: CallContext, target: str, payload: bytes, value: int) -> bytes:
        self.operator.require(ctx.sender)
        return self.executor.execute(target, payload, value)

    # ------------------------------------------------------------------
    # Approvals and transfers
    # ------------------------------------------------------------------

    @public()
    def permit(self, ctx: CallContext, spender: str, token_id: int, deadline: int, signature: bytes) -> None:
        self.permits.permit(spender, token_id, deadline, signature)

    @public()
    def transfer_with_permit(
        self,
        ctx: CallContext,
        from_addr: str,
        to: str,
        token_id: int,
        deadline: int,
        signature: bytes,
    ) -> None:
        self.permits.permit(ctx.sender, token_id, deadline, signature)
        self.ledger.transfer(ctx.sender, from_addr, to, token_id)

    @public()
    def approve(self, ctx: CallContext, spender: str, token_id: int) -> None:
        owner = self.ledger.owner_of(token_id)
        spender = to_address(spender)
        if spender == owner:
            raise SelfApproval(f"{spender} already owns token {token_id}")
        caller = to_address(ctx.sender)
        if caller != owner and not self.ledger.is_approved_for_all(owner, caller):
            raise NotApprovedOrOwner(f"{caller} may not approve token {token_id}")
        self.ledger.approve(token_id, spender)

    @public()
    def set_approval_for_all(self, ctx: CallContext, operator: str, approved: bool) -> None:
        if to_address(operator) == to_address(ctx.sender):
            raise SelfApproval("cannot approve yourself as operator")
        self.ledger.set_approval_for_all(ctx.sender, operator, approved)

    @public()
    def transfer_from(self, ctx: CallContext, from_addr: str, to: str, token_id: int) -> None:
        self.ledger.transfer(ctx.sender, from_addr, to, token_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @view
    def nonces(self, token_id: int) -> int:
        return self.permits.nonces(token_id)

    @view
    def domain_separator(self) -> bytes:
        return self.permits.domain_separator()

    @view
    def royalty_info(self, token_id: int, sale_price: int) -> Tuple[str, int]:
        return self.royalty.royalty_for(token_id, sale_price)

    @view
    def supports_interface(self, interface_id: bytes) -> bool:
        return bytes(interface_id) in SUPPORTED_INTERFACES

    @view
    def token_uri(self, token_id: int) -> str:
        return self.metadata.token_uri(self.ledger, token_id)

    @view
    def name(self) -> str:
        return self.profile.name

    @view
    def symbol(self) -> str:
        return self.profile.symbol

    @view
    def owner(self) -> str:
        return self.operator.owner

    @view
    def owner_of(self, token_id: int) -> str:
        return self.ledger.owner_of(token_id)

    @view
    def balance_of(self, owner: str) -> int:
        return self.ledger.balance_of(owner)

    @view
    def get_approved(self, token_id: int) -> str:
        return self.ledger.get_approved(token_id)

    @view
    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        return self.ledger.is_approved_for_all(owner, operator)

    @view
    def total_supply(self) -> int:
        return self.ledger.total_supply()

    @view
    def total_minted(self) -> int:
        return self.supply.total_minted

    @view
    def max_supply(self) -> int:
        return self.supply.max_supply

    @view
    def channel_minted(self, channel: Channel) -> int:
        return self.supply.channel_minted[channel]

    @view
    def claimed(self, channel: Channel, claimant: str) -> int:
        return self.supply.claimed_by(channel, claimant)

    @view
    def channel_state(self, channel: Channel) -> ChannelState:
        return replace(self.config.channel(channel))

    @view
    def config_version(self) -> int:
        return self.config.version
