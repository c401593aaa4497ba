# mintgate/errors.py
# Failure kinds raised by the issuance core. Every one aborts the whole call.

from __future__ import annotations

from typing import Optional

from eth_abi import decode, encode

from .constants import ERROR_SELECTOR


def encode_revert_reason(message: str) -> bytes:
    return ERROR_SELECTOR + encode(["string"], [message])


def decode_revert_reason(data: bytes) -> Optional[str]:
    """Return the message of an ``Error(string)`` payload, or None for anything else."""
    if len(data) < 4 or data[:4] != ERROR_SELECTOR:
        return None
    try:
        (message,) = decode(["string"], data[4:])
    except Exception:
        return None
    return message


class MintGateError(Exception):
    """Base for every contract-level failure.

    ``revert_data`` is what a caller on the other side of a low-level call
    observes when this error escapes a contract account.
    """

    @property
    def revert_data(self) -> bytes:
        return encode_revert_reason(str(self) or type(self).__name__)


# ---------------------------------------------------------------------------
# Issuance
# ---------------------------------------------------------------------------


class ChannelInactive(MintGateError):
    pass


class InsufficientPayment(MintGateError):
    pass


class GlobalSupplyExceeded(MintGateError):
    pass


SupplyExceeded = GlobalSupplyExceeded


class ChannelSupplyExceeded(MintGateError):
    pass


class QuotaExceeded(MintGateError):
    pass


class InvalidProof(MintGateError):
    pass


class ZeroQuantity(MintGateError):
    pass


class NonPayable(MintGateError):
    pass


class ArithmeticOverflow(MintGateError):
    pass


# ---------------------------------------------------------------------------
# Permits
# ---------------------------------------------------------------------------


class PermitExpired(MintGateError):
    pass


class InvalidSignature(MintGateError):
    pass


class SelfApproval(MintGateError):
    pass


class Unauthorized(MintGateError):
    pass


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class NonexistentToken(MintGateError):
    pass


class ZeroAddress(MintGateError):
    pass


class NotApprovedOrOwner(MintGateError):
    pass


class TransferToNonReceiver(MintGateError):
    pass


# ---------------------------------------------------------------------------
# Value movement and access
# ---------------------------------------------------------------------------


class InsufficientBalance(MintGateError):
    pass


class NegativeValue(MintGateError):
    pass


class ValueTransferFailed(MintGateError):
    """An outbound call failed; ``reason`` is the callee's raw revert payload."""

    def __init__(self, target: str, reason: bytes = b"") -> None:
        self.target = target
        self.reason = bytes(reason)
        decoded = decode_revert_reason(self.reason)
        detail = decoded if decoded is not None else "0x" + self.reason.hex()
        super().__init__(f"call to {target} failed: {detail}")

    @property
    def revert_data(self) -> bytes:
        return self.reason


class ReentrantCall(MintGateError):
    pass


class NotOperator(MintGateError):
    pass


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class InvalidRoyalty(MintGateError):
    pass


class InvalidSubCap(MintGateError):
    pass


class ConfigurationError(MintGateError):
    pass


class Revert(MintGateError):
    """Raised by contract accounts to fail a call with an arbitrary raw payload."""

    def __init__(self, data: bytes = b"") -> None:
        self.data = bytes(data)
        super().__init__("0x" + self.data.hex())

    @property
    def revert_data(self) -> bytes:
        return self.data
