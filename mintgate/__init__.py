# mintgate
# Channel-gated sequential token issuance with Merkle allowlists and EIP-712 token permits.

from __future__ import annotations

import logging

from .allowlist import AllowlistVerifier, MerkleTree, hash_leaf, hash_pair
from .chain import CallContext, CallResult, Chain, ContractAccount
from .config import Channel, ChannelState, DeploymentProfile, PaymentMode, load_profile
from .errors import MintGateError
from .ledger import SequentialTokenLedger, TokenLedger
from .permit import DomainContext, PermitAuthority, recover_signer, sign_permit
from .royalty import RoyaltyPolicy
from .sale import SaleController
from .supply import SupplyLedger

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AllowlistVerifier",
    "CallContext",
    "CallResult",
    "Chain",
    "Channel",
    "ChannelState",
    "ContractAccount",
    "DeploymentProfile",
    "DomainContext",
    "MerkleTree",
    "MintGateError",
    "PaymentMode",
    "PermitAuthority",
    "RoyaltyPolicy",
    "SaleController",
    "SequentialTokenLedger",
    "SupplyLedger",
    "TokenLedger",
    "hash_leaf",
    "hash_pair",
    "load_profile",
    "recover_signer",
    "sign_permit",
]
