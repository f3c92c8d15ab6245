"""Account selection strategies.

A preferred account travels in a context variable so it follows the calling
task through `await` points::

    with use_account("secondary"):
        await provider.send(msg)
"""
from __future__ import annotations

import bisect
import contextvars
import itertools
import random
import threading
from contextlib import contextmanager
from typing import Iterator, List, Sequence

from .accounts import Account, Strategy
from .errors import NoAvailableAccountError

_preferred_account_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "sms_preferred_account", default=None
)


def preferred_account() -> str | None:
    return _preferred_account_var.get()


@contextmanager
def use_account(name: str | None) -> Iterator[None]:
    token = _preferred_account_var.set(name)
    try:
        yield
    finally:
        _preferred_account_var.reset(token)


class Selector:
    def __init__(self, accounts: Sequence[Account], strategy: Strategy = Strategy.ROUND_ROBIN, *, rng: random.Random | None = None):
        self.accounts: tuple[Account, ...] = tuple(accounts)
        self.strategy = Strategy(strategy)
        self._rng = rng or random.Random()
        self._rng_lock = threading.Lock()
        self._counter = itertools.count()
        self._counter_lock = threading.Lock()

    def candidates(self, sub_provider: str | None = None) -> List[Account]:
        return [
            a for a in self.accounts
            if a.enabled and (sub_provider is None or a.matches(sub_provider))
        ]

    def select(self, sub_provider: str | None = None, *, preferred: str | None = None) -> Account:
        """Pick one enabled account.

        `preferred` (or the context-carried name set by `use_account`) wins when it
        names an enabled candidate; otherwise the configured strategy decides.
        """
        pool = self.candidates(sub_provider)
        name = preferred if preferred is not None else _preferred_account_var.get()
        if name:
            for account in pool:
                if account.name == name:
                    return account
        if self.strategy is Strategy.WEIGHTED:
            return self._weighted(pool, sub_provider)
        if not pool:
            raise NoAvailableAccountError(
                "no enabled account available", provider=sub_provider or ""
            )
        if self.strategy is Strategy.RANDOM:
            with self._rng_lock:
                return self._rng.choice(pool)
        with self._counter_lock:
            idx = next(self._counter)
        return pool[idx % len(pool)]

    def _weighted(self, pool: List[Account], sub_provider: str | None) -> Account:
        weighted = [a for a in pool if a.weight > 0]
        if not weighted:
            raise NoAvailableAccountError(
                "no enabled account with a positive weight", provider=sub_provider or ""
            )
        bounds = list(itertools.accumulate(a.weight for a in weighted))
        with self._rng_lock:
            slot = self._rng.randrange(bounds[-1])
        # first account whose cumulative weight exceeds the slot; ties go to the earlier one
        return weighted[bisect.bisect_right(bounds, slot)]


__all__ = ["Selector", "use_account", "preferred_account"]
