"""Claims authority — keeps capability tokens in step with accounts.

The capability carried by a caller's token is the pair
``{role, ministryId}``. The account document is the source of truth;
claims are written to the identity provider only after the document
commit, and a failed write is reported rather than rolled back.

Tokens handed to callers are compact Ed25519-signed strings:

    b64url(canonical-json payload) "." b64url(signature)

The payload carries ``sub``, ``email``, ``role``, ``ministryId``,
``iss`` and ``iat``.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from govassets.errors import RegistryError
from govassets.identity.provider import IdentityProvider, IdentityProviderError
from govassets.models.account import Account, Role
from govassets.models.common import utc_now
from govassets.policy.resolver import TokenPolicy

logger = logging.getLogger(__name__)


def b64url_encode(b: bytes) -> str:
    return base64.urlsafe_b64encode(b).rstrip(b"=").decode("ascii")


def b64url_decode(s: str) -> bytes:
    pad = "=" * ((4 - len(s) % 4) % 4)
    return base64.urlsafe_b64decode((s + pad).encode("ascii"))


def _canonical(obj: dict[str, Any]) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def claims_for(role: Role, ministry_id: Optional[str] = None) -> dict[str, Any]:
    """Build the claims dict for a role and optional ministry binding."""
    claims: dict[str, Any] = {"role": role.value}
    if ministry_id:
        claims["ministryId"] = ministry_id
    return claims


@dataclass(frozen=True)
class ClaimsSyncResult:
    """Outcome of pushing claims to the identity provider.

    ``synced`` is False when the provider write failed; the account
    document is still committed and ``resync`` can repair the drift.
    """
    account_id: str
    synced: bool
    claims: Optional[dict[str, Any]] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class AuthContext:
    """The verified identity behind a presented token."""
    uid: str
    email: str
    role: Optional[str]
    ministry_id: Optional[str]
    issued_at: int


class ClaimsAuthority:
    """Issues, revokes and verifies capability claims.

    Usage:
        authority = ClaimsAuthority(provider, token_policy)
        result = authority.issue_claims(uid, Role.APPROVER, ministry_id)
        token = authority.mint_token(uid, email)
        ctx = authority.verify_token(token)
    """

    def __init__(
        self,
        provider: IdentityProvider,
        token_policy: TokenPolicy,
        signing_key: Optional[Ed25519PrivateKey] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._provider = provider
        self._token_policy = token_policy
        self._signing_key = signing_key or Ed25519PrivateKey.generate()
        self._clock = clock

    @property
    def provider(self) -> IdentityProvider:
        return self._provider

    @property
    def public_key(self) -> Ed25519PublicKey:
        return self._signing_key.public_key()

    # ------------------------------------------------------------------
    # Claims sync
    # ------------------------------------------------------------------

    def issue_claims(
        self,
        account_id: str,
        role: Role,
        ministry_id: Optional[str] = None,
    ) -> ClaimsSyncResult:
        """Set the account's claims to {role, ministryId}."""
        claims = claims_for(role, ministry_id)
        return self._push(account_id, claims)

    def revoke_claims(self, account_id: str) -> ClaimsSyncResult:
        """Clear every claim on the account."""
        return self._push(account_id, None)

    def resync(self, account: Account) -> ClaimsSyncResult:
        """Re-derive claims from the account document.

        Active accounts get their role and ministry re-issued; any other
        account has its claims revoked.
        """
        expected = account.expected_claims()
        if expected is None:
            return self.revoke_claims(account.user_id)
        role, ministry_id = expected
        return self.issue_claims(account.user_id, role, ministry_id)

    def current_claims(self, account_id: str) -> Optional[dict[str, Any]]:
        """Claims the provider holds for the account.

        Raises failed-precondition when the provider cannot be read.
        """
        try:
            return self._provider.get_custom_claims(account_id)
        except (IdentityProviderError, ConnectionError, TimeoutError) as exc:
            logger.error("Claims read failed for %s: %s", account_id, exc)
            raise RegistryError.failed_precondition(f"Claims sync failed: {exc}") from exc

    def _push(self, account_id: str, claims: Optional[dict[str, Any]]) -> ClaimsSyncResult:
        try:
            self._provider.set_custom_claims(account_id, claims)
        except (IdentityProviderError, ConnectionError, TimeoutError) as exc:
            logger.error(
                "Claims sync failed for %s (wanted %s): %s",
                account_id, claims, exc,
            )
            return ClaimsSyncResult(
                account_id=account_id,
                synced=False,
                claims=claims,
                error=str(exc),
            )
        logger.info("Claims synced for %s: %s", account_id, claims)
        return ClaimsSyncResult(account_id=account_id, synced=True, claims=claims)

    # ------------------------------------------------------------------
    # Compact tokens
    # ------------------------------------------------------------------

    def mint_token(self, account_id: str, email: str) -> str:
        """Sign the claims the provider currently holds into a token.

        This is the force-refresh path: a client calls it after a
        privilege change to pick up its new capability. An unreachable
        provider fails the call; no token is minted from stale claims.
        """
        claims = self.current_claims(account_id) or {}
        payload = {
            "sub": account_id,
            "email": email,
            "role": claims.get("role"),
            "ministryId": claims.get("ministryId"),
            "iss": self._token_policy.issuer,
            "iat": int(self._clock().timestamp()),
        }
        body = _canonical(payload)
        signature = self._signing_key.sign(body)
        return f"{b64url_encode(body)}.{b64url_encode(signature)}"

    def verify_token(self, token: Optional[str]) -> AuthContext:
        """Check signature, issuer and age. Raises unauthenticated."""
        if not token or not isinstance(token, str):
            raise RegistryError.unauthenticated()
        try:
            body_part, sig_part = token.split(".")
            body = b64url_decode(body_part)
            signature = b64url_decode(sig_part)
            self.public_key.verify(signature, body)
            payload = json.loads(body)
            uid = payload["sub"]
            issued_at = int(payload["iat"])
            issuer = payload["iss"]
        except (InvalidSignature, ValueError, KeyError, TypeError):
            raise RegistryError.unauthenticated("Invalid capability token") from None

        if issuer != self._token_policy.issuer:
            raise RegistryError.unauthenticated("Token issuer not recognised")
        age = int(self._clock().timestamp()) - issued_at
        if age > self._token_policy.max_age_seconds:
            raise RegistryError.unauthenticated("Capability token expired")

        return AuthContext(
            uid=uid,
            email=payload.get("email", ""),
            role=payload.get("role"),
            ministry_id=payload.get("ministryId"),
            issued_at=issued_at,
        )
