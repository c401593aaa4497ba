# mintgate/allowlist.py
# Sorted-pair keccak Merkle allowlists: leaf hashing, proof verification and tree building.

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Sequence

from eth_utils import keccak

from .chain import to_address

logger = logging.getLogger(__name__)


def hash_leaf(address: str) -> bytes:
    """keccak256 of the 20 raw address bytes, nothing else mixed in."""
    return keccak(bytes.fromhex(to_address(address)[2:]))


def hash_pair(a: bytes, b: bytes) -> bytes:
    return keccak(a + b) if a <= b else keccak(b + a)


def process_proof(leaf: bytes, proof: Sequence[bytes]) -> bytes:
    computed = leaf
    for element in proof:
        computed = hash_pair(computed, bytes(element))
    return computed


def verify(root: bytes, leaf: bytes, proof: Sequence[bytes]) -> bool:
    return process_proof(leaf, proof) == bytes(root)


class AllowlistVerifier:
    """Checks a claimant against a published root."""

    def verify(self, root: bytes, claimant: str, proof: Sequence[bytes]) -> bool:
        ok = verify(root, hash_leaf(claimant), proof)
        logger.debug("allowlist proof for %s: %s", claimant, "ok" if ok else "rejected")
        return ok


class MerkleTree:
    """Tree whose proofs ``verify`` accepts.

    Leaves are sorted; a node left without a sibling is carried up unchanged.
    """

    def __init__(self, addresses: Iterable[str]) -> None:
        leaves = sorted({hash_leaf(address) for address in addresses})
        if not leaves:
            raise ValueError("an allowlist needs at least one address")
        self.layers: List[List[bytes]] = [leaves]
        while len(self.layers[-1]) > 1:
            level = self.layers[-1]
            parents = [
                hash_pair(level[i], level[i + 1]) if i + 1 < len(level) else level[i]
                for i in range(0, len(level), 2)
            ]
            self.layers.append(parents)
        self._index: Dict[bytes, int] = {leaf: i for i, leaf in enumerate(leaves)}

    @property
    def root(self) -> bytes:
        return self.layers[-1][0]

    def __contains__(self, address: str) -> bool:
        return hash_leaf(address) in self._index

    def proof(self, address: str) -> List[bytes]:
        try:
            index = self._index[hash_leaf(address)]
        except KeyError:
            raise KeyError(f"{address} is not on the allowlist") from None
        proof = []
        for level in self.layers[:-1]:
            sibling = index ^ 1
            if sibling < len(level):
                proof.append(level[sibling])
            index //= 2
        return proof
