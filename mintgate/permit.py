# mintgate/permit.py
# EIP-712 permits for single tokens: fork-aware domain separator, per-token nonces,
# EOA recovery with a contract-wallet fallback.

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from eth_abi import encode
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import keccak

from .chain import Chain, Stateful, to_address
from .constants import (
    DOMAIN_TYPEHASH,
    EIP712_PREFIX,
    ERC1271_MAGIC_VALUE,
    PERMIT_TYPEHASH,
    SECP256K1_HALF_N,
    ZERO_ADDRESS,
)
from .errors import InvalidSignature, MintGateError, PermitExpired, SelfApproval, Unauthorized
from .ledger import TokenLedger

logger = logging.getLogger(__name__)

_LOW_255_BITS = (1 << 255) - 1


# ---------------------------------------------------------------------------
# Signatures
# ---------------------------------------------------------------------------


def split_signature(signature: bytes) -> Optional[Tuple[int, int, int]]:
    """Return ``(v, r, s)`` with v in {27, 28}, or None if the encoding is unusable.

    Accepts 65-byte ``r || s || v`` and 64-byte EIP-2098 ``r || vs``.
    """
    signature = bytes(signature)
    if len(signature) == 65:
        r = int.from_bytes(signature[:32], "big")
        s = int.from_bytes(signature[32:64], "big")
        v = signature[64]
        if v < 27:
            v += 27
    elif len(signature) == 64:
        r = int.from_bytes(signature[:32], "big")
        vs = int.from_bytes(signature[32:], "big")
        s = vs & _LOW_255_BITS
        v = (vs >> 255) + 27
    else:
        return None
    if v not in (27, 28) or r == 0 or s == 0 or s > SECP256K1_HALF_N:
        return None
    return v, r, s


def to_compact(signature: bytes) -> bytes:
    parts = split_signature(signature)
    if parts is None:
        raise ValueError("not a recoverable signature")
    v, r, s = parts
    return r.to_bytes(32, "big") + (s | ((v - 27) << 255)).to_bytes(32, "big")


def recover_signer(digest: bytes, signature: bytes) -> Optional[str]:
    parts = split_signature(signature)
    if parts is None:
        return None
    v, r, s = parts
    try:
        public_key = keys.Signature(vrs=(v - 27, r, s)).recover_public_key_from_msg_hash(digest)
    except (BadSignature, ValidationError, ValueError):
        return None
    return public_key.to_checksum_address()


# ---------------------------------------------------------------------------
# Domain
# ---------------------------------------------------------------------------


class DomainContext:
    def __init__(self, name: str, version: str, verifying_contract: str, chain_id: int) -> None:
        self.name = name
        self.version = version
        self.name_hash = keccak(text=name)
        self.version_hash = keccak(text=version)
        self.verifying_contract = to_address(verifying_contract)
        self.initial_chain_id = chain_id
        self.initial_domain_separator = self.compute(chain_id)

    def compute(self, chain_id: int) -> bytes:
        return keccak(
            encode(
                ["bytes32", "bytes32", "bytes32", "uint256", "address"],
                [DOMAIN_TYPEHASH, self.name_hash, self.version_hash, chain_id, self.verifying_contract],
            )
        )

    def separator(self, chain_id: int) -> bytes:
        if chain_id == self.initial_chain_id:
            return self.initial_domain_separator
        return self.compute(chain_id)


class PermitAuthority(Stateful):
    _transient = ("chain", "ledger", "domain")
    _flat = ("_nonces",)

    def __init__(self, chain: Chain, ledger: TokenLedger, domain: DomainContext) -> None:
        self.chain = chain
        self.ledger = ledger
        self.domain = domain
        self._nonces: Dict[int, int] = {}
        ledger.add_transfer_hook(self._on_transfer)
        chain.journal(self)

    def _on_transfer(self, from_addr: str, to: str, token_id: int) -> None:
        if from_addr != ZERO_ADDRESS:
            self._nonces[token_id] = self._nonces.get(token_id, 0) + 1

    def nonces(self, token_id: int) -> int:
        self.ledger.owner_of(token_id)
        return self._nonces.get(token_id, 0)

    def domain_separator(self) -> bytes:
        return self.domain.separator(self.chain.chain_id)

    def permit_digest(self, spender: str, token_id: int, nonce: int, deadline: int) -> bytes:
        struct_hash = keccak(
            encode(
                ["bytes32", "address", "uint256", "uint256", "uint256"],
                [PERMIT_TYPEHASH, to_address(spender), token_id, nonce, deadline],
            )
        )
        return keccak(EIP712_PREFIX + self.domain_separator() + struct_hash)

    def permit(self, spender: str, token_id: int, deadline: int, signature: bytes) -> None:
        spender = to_address(spender)
        if self.chain.timestamp > deadline:
            raise PermitExpired(f"permit for token {token_id} expired at {deadline}")

        digest = self.permit_digest(spender, token_id, self._nonces.get(token_id, 0), deadline)
        signer = recover_signer(digest, signature)
        if signer is None:
            logger.warning("permit for token %d: signature does not recover", token_id)
            raise InvalidSignature("signature does not recover an address")

        owner = self.ledger.owner_of(token_id)
        if spender == owner:
            raise SelfApproval(f"{spender} already owns token {token_id}")

        if signer != owner and not self._contract_accepts(owner, digest, signature):
            logger.warning("permit for token %d signed by %s, owner is %s", token_id, signer, owner)
            raise Unauthorized(f"permit for token {token_id} not signed by its owner")

        self.ledger.approve(token_id, spender)
        logger.info("permit: %s approved for token %d", spender, token_id)

    def _contract_accepts(self, owner: str, digest: bytes, signature: bytes) -> bool:
        account = self.chain.accounts.get(owner)
        check = getattr(account, "is_valid_signature", None)
        if check is None:
            return False
        try:
            return bytes(check(digest, bytes(signature))) == ERC1271_MAGIC_VALUE
        except MintGateError as exc:
            logger.debug("isValidSignature on %s reverted: %r", owner, exc)
            return False
        except Exception as exc:
            logger.warning("isValidSignature on %s crashed: %r", owner, exc)
            return False


# ---------------------------------------------------------------------------
# Client side
# ---------------------------------------------------------------------------


def permit_typed_data(
    domain: DomainContext, chain_id: int, spender: str, token_id: int, nonce: int, deadline: int
) -> Dict[str, Any]:
    return {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "Permit": [
                {"name": "spender", "type": "address"},
                {"name": "tokenId", "type": "uint256"},
                {"name": "nonce", "type": "uint256"},
                {"name": "deadline", "type": "uint256"},
            ],
        },
        "primaryType": "Permit",
        "domain": {
            "name": domain.name,
            "version": domain.version,
            "chainId": chain_id,
            "verifyingContract": domain.verifying_contract,
        },
        "message": {
            "spender": to_address(spender),
            "tokenId": token_id,
            "nonce": nonce,
            "deadline": deadline,
        },
    }


def sign_permit(
    private_key: Any,
    domain: DomainContext,
    chain_id: int,
    spender: str,
    token_id: int,
    nonce: int,
    deadline: int,
    compact: bool = False,
) -> bytes:
    """Sign a permit the way a wallet's ``eth_signTypedData_v4`` would."""
    signable = encode_typed_data(
        full_message=permit_typed_data(domain, chain_id, spender, token_id, nonce, deadline)
    )
    signature = bytes(Account.sign_message(signable, private_key).signature)
    return to_compact(signature) if compact else signature
