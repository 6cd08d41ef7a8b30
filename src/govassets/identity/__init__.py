"""Identity boundary — external provider and capability claims."""

from govassets.identity.claims import AuthContext, ClaimsAuthority, ClaimsSyncResult
from govassets.identity.provider import (
    IdentityProvider,
    IdentityProviderError,
    InMemoryIdentityProvider,
)

__all__ = [
    "AuthContext",
    "ClaimsAuthority",
    "ClaimsSyncResult",
    "IdentityProvider",
    "IdentityProviderError",
    "InMemoryIdentityProvider",
]
