"""An in-memory wallet of secp256k1 accounts."""

from __future__ import annotations

import threading
from collections import Counter
from typing import Any

from perunckb.account import Account, new_account
from perunckb.address import Participant


class WalletError(Exception):
    """Raised when an account cannot be found or added."""


class EphemeralWallet:
    """A thread-safe wallet that keeps its accounts in memory only.

    Accounts are never locked. The wallet records how often each address is
    in use, but that count has no effect on unlocking.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._accounts: dict[str, Account] = {}
        self._usage: Counter[str] = Counter()

    def unlock(self, address: Any) -> Account:
        """Return the account belonging to ``address``."""
        if not isinstance(address, Participant):
            raise WalletError("address is not of type Participant")
        with self._lock:
            try:
                return self._accounts[str(address)]
            except KeyError:
                raise WalletError("account not found") from None

    def lock_all(self) -> None:
        """Reset all usage counts; accounts themselves stay available."""
        with self._lock:
            self._usage.clear()

    def increment_usage(self, address: Any) -> None:
        """Record one more use of ``address``."""
        with self._lock:
            self._usage[str(address)] += 1

    def decrement_usage(self, address: Any) -> None:
        """Record one use of ``address`` less, never dropping below zero."""
        key = str(address)
        with self._lock:
            if self._usage[key] > 1:
                self._usage[key] -= 1
            else:
                self._usage.pop(key, None)

    def add_new_account(self) -> Account:
        """Generate an account, add it and return it."""
        account = new_account()
        self.add_account(account)
        return account

    def add_account(self, account: Account) -> None:
        """Add ``account``; raises WalletError if it is already present."""
        key = str(account.address())
        with self._lock:
            if key in self._accounts:
                raise WalletError("account already exists")
            self._accounts[key] = account