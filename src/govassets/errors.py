"""Error taxonomy for registry operations.

Every caller-visible failure carries one of five kinds plus a
human-readable reason. Kinds are terminal for the call: the core never
retries on the caller's behalf.
"""

from __future__ import annotations

import enum


class ErrorKind(str, enum.Enum):
    """Caller-visible failure classes."""
    UNAUTHENTICATED = "unauthenticated"
    PERMISSION_DENIED = "permission-denied"
    INVALID_ARGUMENT = "invalid-argument"
    FAILED_PRECONDITION = "failed-precondition"
    NOT_FOUND = "not-found"


class RegistryError(Exception):
    """A typed failure raised by the lifecycle managers.

    The service facade converts these into failed ServiceResults; they
    never escape the public API.
    """

    def __init__(self, kind: ErrorKind, reason: str) -> None:
        super().__init__(reason)
        self.kind = kind
        self.reason = reason

    def __repr__(self) -> str:
        return f"RegistryError({self.kind.value!r}, {self.reason!r})"

    @classmethod
    def unauthenticated(cls, reason: str = "User must be authenticated") -> RegistryError:
        return cls(ErrorKind.UNAUTHENTICATED, reason)

    @classmethod
    def permission_denied(cls, reason: str) -> RegistryError:
        return cls(ErrorKind.PERMISSION_DENIED, reason)

    @classmethod
    def invalid_argument(cls, reason: str) -> RegistryError:
        return cls(ErrorKind.INVALID_ARGUMENT, reason)

    @classmethod
    def failed_precondition(cls, reason: str) -> RegistryError:
        return cls(ErrorKind.FAILED_PRECONDITION, reason)

    @classmethod
    def not_found(cls, reason: str) -> RegistryError:
        return cls(ErrorKind.NOT_FOUND, reason)


class ConflictError(Exception):
    """A conditional write lost against a concurrent writer.

    Raised by the document store when the version read no longer
    matches the stored version.
    """


def parse_enum(enum_cls: type[enum.Enum], value: object, field_name: str):
    """Parse a boundary value into a closed enum.

    Unknown values are rejected with invalid-argument, never coerced.
    """
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        raise RegistryError.invalid_argument(f"{field_name} must be a string")
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise RegistryError.invalid_argument(
            f"Unknown {field_name}: {value!r} (expected one of: {allowed})"
        ) from None
