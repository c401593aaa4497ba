from __future__ import annotations

from typing import Optional

import pytest
from eth_account import Account

from mintgate import CallContext, Chain, ChannelState, DeploymentProfile, MerkleTree, PaymentMode, SaleController
from mintgate.config import Channel
from mintgate.constants import ERC1271_MAGIC_VALUE, ERC721_RECEIVER_MAGIC
from mintgate.chain import ContractAccount
from mintgate.errors import ReentrantCall, Revert
from mintgate.permit import recover_signer

GENESIS_TIME = 1_700_000_000
PUBLIC_PRICE = 10**15
PRESALE_PRICE = 5 * 10**14
ONE_ETHER = 10**18

OPERATOR = Account.from_key("0x" + "11" * 32)
ALICE = Account.from_key("0x" + "a1" * 32)
BOB = Account.from_key("0x" + "b2" * 32)
CAROL = Account.from_key("0x" + "c3" * 32)
DAVE = Account.from_key("0x" + "d4" * 32)


def make_profile(**overrides) -> DeploymentProfile:
    max_supply = overrides.get("max_supply", 10_000)
    settings = dict(
        name="Gatekeepers",
        symbol="GATE",
        max_supply=max_supply,
        payment_mode=PaymentMode.REFUND,
        channels={
            Channel.PUBLIC: ChannelState(price=PUBLIC_PRICE),
            Channel.PRESALE: ChannelState(price=PRESALE_PRICE, sub_cap=min(1_000, max_supply)),
            Channel.FREE: ChannelState(sub_cap=min(500, max_supply), max_per_address=100),
        },
        pre_reveal_uri="ipfs://hidden.json",
    )
    settings.update(overrides)
    return DeploymentProfile(**settings)


# ---------------------------------------------------------------------------
# Contract accounts used as counterparties
# ---------------------------------------------------------------------------


class TokenReceiver(ContractAccount):
    def on_token_received(self, operator: str, from_addr: str, token_id: int) -> bytes:
        return ERC721_RECEIVER_MAGIC


class RejectingReceiver(ContractAccount):
    def __init__(self, reason: bytes = b"\xde\xad") -> None:
        self.reason = reason

    def receive(self, ctx: CallContext, payload: bytes) -> bytes:
        raise Revert(self.reason)


class ContractWallet(TokenReceiver):
    """Smart-contract owner that accepts signatures made by ``signer``."""

    def __init__(self, signer: str) -> None:
        self.signer = signer

    def is_valid_signature(self, digest: bytes, signature: bytes) -> bytes:
        if recover_signer(digest, signature) == self.signer:
            return ERC1271_MAGIC_VALUE
        return b"\xff\xff\xff\xff"


class BrokenAccount(TokenReceiver):
    """Contract whose code dies with an ordinary Python error rather than a revert."""

    def __init__(self) -> None:
        self.divisor = 0

    def receive(self, ctx: CallContext, payload: bytes) -> bytes:
        return bytes([ctx.value // self.divisor])

    def is_valid_signature(self, digest: bytes, signature: bytes) -> bytes:
        return ERC1271_MAGIC_VALUE[: len(digest) // self.divisor]


class ReentrantMinter(TokenReceiver):
    """Tries to mint again from inside the refund it receives."""

    def __init__(self, sale: SaleController, swallow: bool = False) -> None:
        self.sale = sale
        self.swallow = swallow
        self.blocked = 0

    def receive(self, ctx: CallContext, payload: bytes) -> bytes:
        try:
            self.sale.mint(CallContext(self.address), self.address, 1)
        except ReentrantCall:
            self.blocked += 1
            if not self.swallow:
                raise
        return b""


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def chain() -> Chain:
    chain = Chain(chain_id=1, timestamp=GENESIS_TIME)
    for account in (OPERATOR, ALICE, BOB, CAROL, DAVE):
        chain.fund(account.address, 1_000 * ONE_ETHER)
    return chain


@pytest.fixture
def op() -> CallContext:
    return CallContext(OPERATOR.address)


@pytest.fixture
def allowlist() -> MerkleTree:
    return MerkleTree([ALICE.address, BOB.address, DAVE.address])


def deploy(chain: Chain, profile: Optional[DeploymentProfile] = None) -> SaleController:
    return SaleController(chain, profile or make_profile(), OPERATOR.address)


@pytest.fixture
def sale(chain: Chain) -> SaleController:
    return deploy(chain)


@pytest.fixture
def open_sale(sale: SaleController, op: CallContext, allowlist: MerkleTree) -> SaleController:
    for channel in (Channel.PUBLIC, Channel.PRESALE, Channel.FREE):
        sale.set_channel_active(op, channel, True)
    sale.set_allowlist_root(op, Channel.PRESALE, allowlist.root)
    sale.set_allowlist_root(op, Channel.FREE, allowlist.root)
    return sale
