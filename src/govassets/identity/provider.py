"""Identity provider boundary.

The registry never stores credentials. It only asks the external
identity provider to attach or clear custom claims on an account and
whether the account's e-mail has been confirmed.
"""

from __future__ import annotations

import abc
import threading
from typing import Any, Optional


class IdentityProviderError(Exception):
    """The identity provider could not complete a request."""


class IdentityProvider(abc.ABC):
    """External identity service holding per-account custom claims."""

    @abc.abstractmethod
    def set_custom_claims(self, account_id: str, claims: Optional[dict[str, Any]]) -> None:
        """Replace the account's claims. ``None`` clears them."""

    @abc.abstractmethod
    def get_custom_claims(self, account_id: str) -> Optional[dict[str, Any]]:
        """Return the account's current claims, or None."""

    @abc.abstractmethod
    def is_email_verified(self, account_id: str) -> bool:
        """Whether the provider has confirmed the account's e-mail."""


class InMemoryIdentityProvider(IdentityProvider):
    """Process-local identity provider with failure injection.

    Set ``available = False`` to make every call fail, or call
    ``fail_next(n)`` to fail only the next n claim writes.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._claims: dict[str, dict[str, Any]] = {}
        self._verified_emails: set[str] = set()
        self._failures_pending = 0
        self.available = True
        self.write_count = 0

    def fail_next(self, count: int = 1) -> None:
        with self._lock:
            self._failures_pending = count

    def mark_email_verified(self, account_id: str) -> None:
        with self._lock:
            self._verified_emails.add(account_id)

    def set_custom_claims(self, account_id: str, claims: Optional[dict[str, Any]]) -> None:
        with self._lock:
            self._check_available()
            if self._failures_pending > 0:
                self._failures_pending -= 1
                raise IdentityProviderError(
                    f"Identity provider rejected claims update for {account_id}"
                )
            if claims is None:
                self._claims.pop(account_id, None)
            else:
                self._claims[account_id] = dict(claims)
            self.write_count += 1

    def get_custom_claims(self, account_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            self._check_available()
            claims = self._claims.get(account_id)
            return dict(claims) if claims is not None else None

    def is_email_verified(self, account_id: str) -> bool:
        with self._lock:
            self._check_available()
            return account_id in self._verified_emails

    def _check_available(self) -> None:
        if not self.available:
            raise IdentityProviderError("Identity provider unavailable")
