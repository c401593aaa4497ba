# mintgate/ledger.py
# Ownership ledger collaborator: the protocol the core calls into, plus a sequential reference ledger.

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Protocol, Set

from .chain import Chain, Stateful, require_nonzero, to_address
from .constants import ERC721_RECEIVER_MAGIC, FIRST_TOKEN_ID, ZERO_ADDRESS
from .errors import NonexistentToken, NotApprovedOrOwner, TransferToNonReceiver, ZeroQuantity
from .events import Approval, ApprovalForAll, Transfer

logger = logging.getLogger(__name__)

TransferHook = Callable[[str, str, int], None]


class TokenLedger(Protocol):
    def owner_of(self, token_id: int) -> str: ...

    def balance_of(self, owner: str) -> int: ...

    def total_supply(self) -> int: ...

    def exists(self, token_id: int) -> bool: ...

    def next_token_id(self) -> int: ...

    def safe_create(self, operator: str, to: str, quantity: int) -> int: ...

    def transfer(self, operator: str, from_addr: str, to: str, token_id: int) -> None: ...

    def approve(self, token_id: int, spender: str) -> None: ...

    def get_approved(self, token_id: int) -> str: ...

    def set_approval_for_all(self, owner: str, operator: str, approved: bool) -> None: ...

    def is_approved_for_all(self, owner: str, operator: str) -> bool: ...

    def add_transfer_hook(self, hook: TransferHook) -> None: ...


class SequentialTokenLedger(Stateful):
    """In-memory ERC-721 ledger handing out ids 1, 2, 3, ..."""

    _transient = ("chain", "_hooks")
    _flat = ("_owners", "_balances", "_approvals")

    def __init__(self, chain: Chain) -> None:
        self.chain = chain
        self._hooks: List[TransferHook] = []
        self._owners: Dict[int, str] = {}
        self._balances: Dict[str, int] = {}
        self._approvals: Dict[int, str] = {}
        self._operators: Dict[str, Set[str]] = {}
        self._next_id = FIRST_TOKEN_ID
        chain.journal(self)

    def add_transfer_hook(self, hook: TransferHook) -> None:
        self._hooks.append(hook)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def exists(self, token_id: int) -> bool:
        return token_id in self._owners

    def owner_of(self, token_id: int) -> str:
        try:
            return self._owners[token_id]
        except KeyError:
            raise NonexistentToken(f"token {token_id} does not exist") from None

    def balance_of(self, owner: str) -> int:
        return self._balances.get(require_nonzero(owner, "owner"), 0)

    def total_supply(self) -> int:
        return len(self._owners)

    def next_token_id(self) -> int:
        return self._next_id

    def get_approved(self, token_id: int) -> str:
        self.owner_of(token_id)
        return self._approvals.get(token_id, ZERO_ADDRESS)

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        return to_address(operator) in self._operators.get(to_address(owner), set())

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def approve(self, token_id: int, spender: str) -> None:
        owner = self.owner_of(token_id)
        spender = to_address(spender)
        self._approvals[token_id] = spender
        self.chain.emit(Approval(owner, spender, token_id))

    def set_approval_for_all(self, owner: str, operator: str, approved: bool) -> None:
        owner, operator = to_address(owner), to_address(operator)
        operators = self._operators.setdefault(owner, set())
        if approved:
            operators.add(operator)
        else:
            operators.discard(operator)
        self.chain.emit(ApprovalForAll(owner, operator, approved))

    def safe_create(self, operator: str, to: str, quantity: int) -> int:
        to = require_nonzero(to, "recipient")
        if quantity <= 0:
            raise ZeroQuantity("cannot create zero tokens")
        first = self._next_id
        for token_id in range(first, first + quantity):
            self._run_hooks(ZERO_ADDRESS, to, token_id)
            self._owners[token_id] = to
            self.chain.emit(Transfer(ZERO_ADDRESS, to, token_id))
        self._balances[to] = self._balances.get(to, 0) + quantity
        self._next_id = first + quantity
        if self.chain.is_contract(to):
            for token_id in range(first, first + quantity):
                self._check_receiver(operator, ZERO_ADDRESS, to, token_id)
        logger.debug("created tokens %d..%d for %s", first, first + quantity - 1, to)
        return first

    def transfer(self, operator: str, from_addr: str, to: str, token_id: int) -> None:
        operator, from_addr = to_address(operator), to_address(from_addr)
        to = require_nonzero(to, "recipient")
        owner = self.owner_of(token_id)
        if owner != from_addr:
            raise NotApprovedOrOwner(f"token {token_id} is not owned by {from_addr}")
        if not (
            operator == owner
            or self._approvals.get(token_id) == operator
            or self.is_approved_for_all(owner, operator)
        ):
            raise NotApprovedOrOwner(f"{operator} may not move token {token_id}")
        self._run_hooks(from_addr, to, token_id)
        self._approvals.pop(token_id, None)
        self._balances[from_addr] -= 1
        self._balances[to] = self._balances.get(to, 0) + 1
        self._owners[token_id] = to
        self.chain.emit(Transfer(from_addr, to, token_id))

    def _run_hooks(self, from_addr: str, to: str, token_id: int) -> None:
        for hook in self._hooks:
            hook(from_addr, to, token_id)

    def _check_receiver(self, operator: str, from_addr: str, to: str, token_id: int) -> None:
        account = self.chain.accounts[to]
        on_received = getattr(account, "on_token_received", None)
        if on_received is None or on_received(operator, from_addr, token_id) != ERC721_RECEIVER_MAGIC:
            raise TransferToNonReceiver(f"{to} does not accept tokens")
