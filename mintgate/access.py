# mintgate/access.py
# Entrypoint decorators, single-operator gating and the re-entrancy lock.

from __future__ import annotations

import functools
import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from .chain import Chain, Stateful, require_nonzero, to_address
from .constants import ZERO_ADDRESS
from .errors import NonPayable, NotOperator, ReentrantCall
from .events import OwnershipTransferred

logger = logging.getLogger(__name__)


class ReentrancyGuard:
    def __init__(self) -> None:
        self._held_by: Optional[str] = None

    @property
    def locked(self) -> bool:
        return self._held_by is not None

    @contextmanager
    def held(self, entrypoint: str = "") -> Iterator[None]:
        if self._held_by is not None:
            raise ReentrantCall(f"{entrypoint or 'call'} re-entered while {self._held_by} is running")
        self._held_by = entrypoint or "call"
        try:
            yield
        finally:
            self._held_by = None


class OperatorCapability(Stateful):
    """Single-owner capability check."""

    _transient = ("chain",)

    def __init__(self, chain: Chain, owner: str) -> None:
        self.chain = chain
        self.owner = require_nonzero(owner, "operator")
        chain.journal(self)

    def is_operator(self, caller: str) -> bool:
        return self.owner != ZERO_ADDRESS and to_address(caller) == self.owner

    def require(self, caller: str) -> None:
        if not self.is_operator(caller):
            raise NotOperator(f"{caller} is not the operator")

    def transfer(self, new_owner: str) -> None:
        new_owner = require_nonzero(new_owner, "new operator")
        self._set(new_owner)

    def renounce(self) -> None:
        self._set(ZERO_ADDRESS)

    def _set(self, new_owner: str) -> None:
        previous, self.owner = self.owner, new_owner
        self.chain.emit(OwnershipTransferred(previous, new_owner))
        logger.info("operator %s -> %s", previous, new_owner)


def public(payable: bool = False, guarded: bool = False) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Mark a state-mutating entrypoint.

    The wrapped method runs inside a chain frame, so any failure leaves no
    trace. Attached value is credited to the contract before the body runs;
    non-payable entrypoints refuse it. ``guarded`` entrypoints hold the
    owner's ``guard`` for their whole duration.
    """

    def decorator(method: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(method)
        def wrapper(self: Any, ctx: Any, *args: Any, **kwargs: Any) -> Any:
            with self.chain.frame():
                if ctx.value:
                    if not payable:
                        raise NonPayable(f"{method.__name__} does not accept value")
                    self.chain.move_value(ctx.sender, self.address, ctx.value)
                if guarded:
                    with self.guard.held(method.__name__):
                        return method(self, ctx, *args, **kwargs)
                return method(self, ctx, *args, **kwargs)

        wrapper.is_public = True  # type: ignore[attr-defined]
        wrapper.payable = payable  # type: ignore[attr-defined]
        wrapper.guarded = guarded  # type: ignore[attr-defined]
        return wrapper

    return decorator


def view(method: Callable[..., Any]) -> Callable[..., Any]:
    method.is_view = True  # type: ignore[attr-defined]
    return method
