"""Exception types raised by the authentication core."""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every error raised by :mod:`cpauth`."""


class InvalidParameters(AuthError, ValueError):
    """Group parameters failed validation; the service must refuse to start."""


class InsufficientEntropy(AuthError):
    """The entropy source could not produce secure randomness."""


class AlreadyRegistered(AuthError):
    """A commitment is already stored for this user identity."""


class InvalidCommitment(AuthError, ValueError):
    """A registration commitment is not an element of the group."""


class UnknownUser(AuthError, LookupError):
    """No commitment is registered for this user identity."""


class UnknownOrExpiredAttempt(AuthError, LookupError):
    """The authentication attempt is missing, consumed or past its lifetime."""


class AuthenticationFailed(AuthError):
    """Generic rejection exposed to clients."""


__all__ = [
    "AuthError",
    "AlreadyRegistered",
    "AuthenticationFailed",
    "InsufficientEntropy",
    "InvalidCommitment",
    "InvalidParameters",
    "UnknownOrExpiredAttempt",
    "UnknownUser",
]
