# mintgate/metadata.py
# Token URIs with a pre-reveal placeholder.

from __future__ import annotations

from .chain import Chain, Stateful
from .ledger import TokenLedger


class TokenMetadata(Stateful):
    _transient = ("chain",)

    def __init__(self, chain: Chain, base_uri: str = "", pre_reveal_uri: str = "", reveal_threshold: int = 0) -> None:
        self.chain = chain
        self.base_uri = base_uri
        self.pre_reveal_uri = pre_reveal_uri
        self.reveal_threshold = reveal_threshold
        chain.journal(self)

    def token_uri(self, ledger: TokenLedger, token_id: int) -> str:
        ledger.owner_of(token_id)
        if self.base_uri and token_id <= self.reveal_threshold:
            return f"{self.base_uri}{token_id}"
        return self.pre_reveal_uri
