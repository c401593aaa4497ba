# mintgate/events.py
# Log-style event records appended to Chain.logs.

from __future__ import annotations

from dataclasses import dataclass

from .config import Channel


@dataclass(frozen=True)
class Transfer:
    from_addr: str
    to_addr: str
    token_id: int


@dataclass(frozen=True)
class Approval:
    owner: str
    spender: str
    token_id: int


@dataclass(frozen=True)
class ApprovalForAll:
    owner: str
    operator: str
    approved: bool


@dataclass(frozen=True)
class Minted:
    channel: Channel
    claimant: str
    to_addr: str
    first_token_id: int
    quantity: int
    paid: int


@dataclass(frozen=True)
class ChannelToggled:
    channel: Channel
    active: bool


@dataclass(frozen=True)
class ChannelPriceChanged:
    channel: Channel
    price: int


@dataclass(frozen=True)
class ChannelQuotaChanged:
    channel: Channel
    max_per_address: int


@dataclass(frozen=True)
class ChannelSubCapChanged:
    channel: Channel
    sub_cap: int


@dataclass(frozen=True)
class AllowlistRootChanged:
    channel: Channel
    root: bytes


@dataclass(frozen=True)
class RoyaltyChanged:
    token_id: int  # 0 for the default rate
    receiver: str
    rate: int


@dataclass(frozen=True)
class MetadataChanged:
    field: str
    value: str


@dataclass(frozen=True)
class OwnershipTransferred:
    previous_owner: str
    new_owner: str


@dataclass(frozen=True)
class TransactionExecuted:
    target: str
    value: int
    payload: bytes
