# mintgate/config.py
# Deployment profile and the versioned sale configuration owned by the controller.

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from eth_utils import to_checksum_address

from .chain import Stateful
from .constants import DEFAULT_DOMAIN_VERSION, ROYALTY_SCALE, UINT256_MAX, ZERO_ADDRESS
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

EMPTY_ROOT = bytes(32)


class Channel(Enum):
    PUBLIC = "public"
    PRESALE = "presale"
    FREE = "free"
    RESERVE = "reserve"

    @property
    def gated(self) -> bool:
        return self in (Channel.PRESALE, Channel.FREE)

    @property
    def priced(self) -> bool:
        return self in (Channel.PUBLIC, Channel.PRESALE)


class PaymentMode(Enum):
    REFUND = "refund"
    FULL_FORWARD = "full_forward"


@dataclass
class ChannelState:
    active: bool = False
    price: int = 0
    allowlist_root: bytes = EMPTY_ROOT
    max_per_address: int = 0  # 0 = unlimited
    sub_cap: int = 0  # only meaningful for gated channels


class SaleConfig(Stateful):
    """Per-channel settings; ``version`` moves on every change."""

    def __init__(self, channels: Optional[Mapping[Channel, ChannelState]] = None) -> None:
        self.channels: Dict[Channel, ChannelState] = {
            channel: replace((channels or {}).get(channel, ChannelState()))
            for channel in Channel
        }
        self.version = 0

    def channel(self, channel: Channel) -> ChannelState:
        return self.channels[channel]

    def update(self, channel: Channel, **changes: Any) -> ChannelState:
        state = self.channels[channel]
        for key, value in changes.items():
            if not hasattr(state, key):
                raise AttributeError(f"ChannelState has no field {key!r}")
            setattr(state, key, value)
        self.version += 1
        logger.debug("sale config v%d: %s %s", self.version, channel.value, changes)
        return state


@dataclass
class DeploymentProfile:
    name: str
    symbol: str
    max_supply: int
    payment_mode: PaymentMode
    beneficiary: Optional[str] = None
    push_royalty_on_mint: bool = False
    royalty_receiver: Optional[str] = None
    royalty_rate: int = 0
    domain_version: str = DEFAULT_DOMAIN_VERSION
    channels: Dict[Channel, ChannelState] = field(default_factory=dict)
    base_uri: str = ""
    pre_reveal_uri: str = ""
    reveal_threshold: int = 0

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigurationError("name is required")
        if not isinstance(self.payment_mode, PaymentMode):
            raise ConfigurationError("payment_mode must be a PaymentMode")
        if not 0 < self.max_supply <= UINT256_MAX:
            raise ConfigurationError(f"max_supply out of range: {self.max_supply}")
        if self.payment_mode is PaymentMode.FULL_FORWARD:
            if not self.beneficiary or _checksum(self.beneficiary) == ZERO_ADDRESS:
                raise ConfigurationError("full_forward payment mode needs a beneficiary")
            if self.push_royalty_on_mint:
                raise ConfigurationError("royalty push is only available in refund mode")
        if not 0 <= self.royalty_rate <= ROYALTY_SCALE:
            raise ConfigurationError(f"royalty_rate must be within 0..{ROYALTY_SCALE}")
        if self.royalty_rate and not self.royalty_receiver:
            raise ConfigurationError("royalty_rate set without royalty_receiver")
        channels = {}
        for channel in Channel:
            state = replace(self.channels.get(channel) or ChannelState())
            channels[channel] = state
            if channel.gated and state.sub_cap == 0:
                state.sub_cap = self.max_supply
            if state.sub_cap > self.max_supply:
                raise ConfigurationError(f"{channel.value} sub_cap exceeds max_supply")
            if state.price < 0 or state.max_per_address < 0:
                raise ConfigurationError(f"{channel.value} has a negative price or quota")
        self.channels = channels

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DeploymentProfile":
        try:
            raw = dict(data)
            raw["payment_mode"] = PaymentMode(str(raw["payment_mode"]).lower())
            raw["max_supply"] = int(raw["max_supply"])
            channels = {}
            for key, settings in dict(raw.pop("channels", {})).items():
                settings = dict(settings)
                root = settings.pop("allowlist_root", None)
                state = ChannelState(**settings)
                if root:
                    state.allowlist_root = _parse_root(root)
                channels[Channel(key)] = state
            raw["channels"] = channels
            return cls(**raw)
        except ConfigurationError:
            raise
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"invalid deployment profile: {exc}") from exc


def load_profile(path: Union[str, Path]) -> DeploymentProfile:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"cannot read profile {path}: {exc}") from exc
    logger.info("loaded deployment profile %s", path)
    return DeploymentProfile.from_mapping(data)


def _checksum(address: str) -> str:
    try:
        return to_checksum_address(address)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"invalid address {address!r}") from exc


def _parse_root(value: Union[str, bytes]) -> bytes:
    root = bytes.fromhex(value[2:] if value.startswith("0x") else value) if isinstance(value, str) else bytes(value)
    if len(root) != 32:
        raise ConfigurationError("allowlist root must be 32 bytes")
    return root
