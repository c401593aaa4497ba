# mintgate/chain.py
# In-process EVM-style environment: balances, contract accounts, call frames and logs.

from __future__ import annotations

import copy
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from eth_utils import keccak, to_checksum_address

from .constants import ZERO_ADDRESS
from .errors import InsufficientBalance, MintGateError, ZeroAddress

logger = logging.getLogger(__name__)


def to_address(value: str) -> str:
    """Checksum an address; raises ValueError on anything that is not 20 bytes of hex."""
    return to_checksum_address(value)


def require_nonzero(address: str, what: str = "address") -> str:
    address = to_address(address)
    if address == ZERO_ADDRESS:
        raise ZeroAddress(f"{what} is the zero address")
    return address


@dataclass(frozen=True)
class CallContext:
    sender: str
    value: int = 0


@dataclass(frozen=True)
class CallResult:
    success: bool
    data: bytes = b""


class Stateful:
    """Journaled component: everything not named in ``_transient`` is rolled back on failure.

    Attributes named in ``_flat`` are containers of immutable values and are
    copied one level deep; the rest are deep-copied.
    """

    _transient: Tuple[str, ...] = ()
    _flat: Tuple[str, ...] = ()

    def snapshot(self) -> Dict[str, Any]:
        skip = set(self._transient) | {"chain", "address"}
        state = {}
        for key, value in vars(self).items():
            if key in skip:
                continue
            state[key] = copy.copy(value) if key in self._flat else copy.deepcopy(value)
        return state

    def restore(self, state: Dict[str, Any]) -> None:
        for key, value in state.items():
            setattr(self, key, value)


class ContractAccount:
    """An account with code.

    Subclasses may also define ``is_valid_signature(digest, signature) -> bytes``
    and ``on_token_received(operator, from_addr, token_id) -> bytes``.
    """

    address: str = ZERO_ADDRESS
    chain: Optional["Chain"] = None

    def receive(self, ctx: CallContext, payload: bytes) -> bytes:
        return b""


class Chain:
    def __init__(self, chain_id: int = 1, timestamp: Optional[int] = None) -> None:
        self.chain_id = chain_id
        self.timestamp = int(time.time()) if timestamp is None else timestamp
        self.balances: Dict[str, int] = {}
        self.accounts: Dict[str, ContractAccount] = {}
        self.logs: List[Any] = []
        self._journaled: List[Stateful] = []
        self._address_nonce = 0

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def new_address(self, label: Optional[str] = None) -> str:
        self._address_nonce += 1
        seed = f"{label or 'account'}:{self._address_nonce}"
        return to_address(keccak(text=seed)[-20:])

    def deploy(self, account: ContractAccount, label: Optional[str] = None) -> ContractAccount:
        account.address = self.new_address(label or type(account).__name__)
        account.chain = self
        self.accounts[account.address] = account
        if isinstance(account, Stateful):
            self.journal(account)
        logger.debug("deployed %s at %s", type(account).__name__, account.address)
        return account

    def journal(self, component: Stateful) -> None:
        if all(existing is not component for existing in self._journaled):
            self._journaled.append(component)

    def is_contract(self, address: str) -> bool:
        return to_address(address) in self.accounts

    def balance_of(self, address: str) -> int:
        return self.balances.get(to_address(address), 0)

    def fund(self, address: str, amount: int) -> None:
        address = to_address(address)
        self.balances[address] = self.balances.get(address, 0) + amount

    def move_value(self, sender: str, target: str, value: int) -> None:
        if value < 0:
            raise ValueError("negative value")
        if value == 0:
            return
        sender, target = to_address(sender), to_address(target)
        available = self.balances.get(sender, 0)
        if available < value:
            raise InsufficientBalance(f"{sender} holds {available}, needs {value}")
        self.balances[sender] = available - value
        self.balances[target] = self.balances.get(target, 0) + value

    # ------------------------------------------------------------------
    # Block context
    # ------------------------------------------------------------------

    def advance(self, seconds: int) -> None:
        self.timestamp += seconds

    def set_chain_id(self, chain_id: int) -> None:
        logger.info("chain id changed %d -> %d", self.chain_id, chain_id)
        self.chain_id = chain_id

    def emit(self, event: Any) -> None:
        self.logs.append(event)

    def events(self, kind: type) -> List[Any]:
        return [event for event in self.logs if isinstance(event, kind)]

    # ------------------------------------------------------------------
    # Frames and calls
    # ------------------------------------------------------------------

    def _snapshot(self) -> Tuple[Dict[str, int], int, List[Dict[str, Any]]]:
        return (
            dict(self.balances),
            len(self.logs),
            [component.snapshot() for component in self._journaled],
        )

    def _restore(self, saved: Tuple[Dict[str, int], int, List[Dict[str, Any]]]) -> None:
        balances, log_count, states = saved
        self.balances = balances
        del self.logs[log_count:]
        for component, state in zip(self._journaled, states):
            component.restore(state)

    @contextmanager
    def frame(self) -> Iterator[None]:
        """Commit everything done inside the block, or nothing at all."""
        saved = self._snapshot()
        try:
            yield
        except BaseException:
            self._restore(saved)
            raise

    def call(self, sender: str, target: str, value: int = 0, payload: bytes = b"") -> CallResult:
        """Low-level call; failures come back as data, never as exceptions.

        A revert hands back its payload. Any other error raised by the callee's
        code counts as a failed call with empty return data.
        """
        sender, target = to_address(sender), to_address(target)
        if value < 0 or self.balances.get(sender, 0) < value:
            logger.debug("call %s -> %s: cannot send %d", sender, target, value)
            return CallResult(False, b"")
        account = self.accounts.get(target)
        if account is None:
            self.move_value(sender, target, value)
            return CallResult(True, b"")
        try:
            with self.frame():
                self.move_value(sender, target, value)
                data = account.receive(CallContext(sender, value), bytes(payload)) or b""
        except MintGateError as exc:
            logger.debug("call %s -> %s reverted: %r", sender, target, exc)
            return CallResult(False, exc.revert_data)
        except Exception as exc:
            logger.warning("call %s -> %s crashed: %r", sender, target, exc)
            return CallResult(False, b"")
        return CallResult(True, bytes(data))
