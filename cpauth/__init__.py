"""Password authentication with Chaum-Pedersen zero-knowledge proofs."""

from .auth import AuthClient, AuthServer, Challenge, issue_session_token
from .constants import DEFAULT_GROUP, GROUP_NAMES, load_group
from .crypto import (
    ChaumPedersenProver,
    CommitmentPair,
    EphemeralCommitment,
    commit,
    password_to_secret,
    respond,
    verify,
)
from .errors import (
    AlreadyRegistered,
    AuthenticationFailed,
    AuthError,
    InsufficientEntropy,
    InvalidCommitment,
    InvalidParameters,
    UnknownOrExpiredAttempt,
    UnknownUser,
)
from .group import GroupParameters
from .randomness import RandomSource
from .store import AuthAttempt, CredentialStore, SessionStore, UserRecord, VerificationResult

__all__ = [
    "AuthClient",
    "AuthServer",
    "Challenge",
    "issue_session_token",
    "DEFAULT_GROUP",
    "GROUP_NAMES",
    "load_group",
    "ChaumPedersenProver",
    "CommitmentPair",
    "EphemeralCommitment",
    "commit",
    "password_to_secret",
    "respond",
    "verify",
    "AlreadyRegistered",
    "AuthenticationFailed",
    "AuthError",
    "InsufficientEntropy",
    "InvalidCommitment",
    "InvalidParameters",
    "UnknownOrExpiredAttempt",
    "UnknownUser",
    "GroupParameters",
    "RandomSource",
    "AuthAttempt",
    "CredentialStore",
    "SessionStore",
    "UserRecord",
    "VerificationResult",
]
