# mintgate/constants.py
# Fixed values shared by the issuance core. EVM-aligned wherever a value crosses the wire.

from __future__ import annotations

from eth_utils import keccak

# ---------------------------------------------------------------------------
# Addresses and numeric bounds
# ---------------------------------------------------------------------------

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
UINT256_MAX = 2**256 - 1
FIRST_TOKEN_ID = 1

# Royalty rates are numerators over this denominator.
ROYALTY_SCALE = 100_000

# ---------------------------------------------------------------------------
# EIP-712
# ---------------------------------------------------------------------------

DEFAULT_DOMAIN_VERSION = "1"
EIP712_DOMAIN_TYPE = "EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
PERMIT_TYPE = "Permit(address spender,uint256 tokenId,uint256 nonce,uint256 deadline)"
DOMAIN_TYPEHASH = keccak(text=EIP712_DOMAIN_TYPE)
PERMIT_TYPEHASH = keccak(text=PERMIT_TYPE)
EIP712_PREFIX = b"\x19\x01"

# secp256k1 group order; signatures with s above half of it are malleable.
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256K1_HALF_N = SECP256K1_N // 2

# ---------------------------------------------------------------------------
# Magic return values and interface ids
# ---------------------------------------------------------------------------

ERC1271_MAGIC_VALUE = bytes.fromhex("1626ba7e")
ERC721_RECEIVER_MAGIC = bytes.fromhex("150b7a02")
ERROR_SELECTOR = keccak(text="Error(string)")[:4]

INTERFACE_ERC165 = bytes.fromhex("01ffc9a7")
INTERFACE_ERC721 = bytes.fromhex("80ac58cd")
INTERFACE_ERC721_METADATA = bytes.fromhex("5b5e139f")
INTERFACE_ERC2981 = bytes.fromhex("2a55205a")
INTERFACE_ERC4494 = bytes.fromhex("5604e225")

SUPPORTED_INTERFACES = frozenset(
    {
        INTERFACE_ERC165,
        INTERFACE_ERC721,
        INTERFACE_ERC721_METADATA,
        INTERFACE_ERC2981,
        INTERFACE_ERC4494,
    }
)
