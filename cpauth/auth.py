"""Server and client sides of the registration and login exchange."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Union

from .crypto import ChaumPedersenProver, commit, password_to_secret
from .errors import AuthenticationFailed, UnknownOrExpiredAttempt
from .group import GroupParameters
from .randomness import RandomSource
from .store import SessionStore, VerificationResult

logger = logging.getLogger(__name__)

Password = Union[str, bytes]
PasswordMapping = Callable[[GroupParameters, Password], int]
TokenFactory = Callable[[], str]


@dataclass(frozen=True)
class Challenge:
    auth_id: str
    c: int


class Transport(Protocol):
    """Operations a client needs from the server, local or remote."""

    def register(self, user_id: str, y1: int, y2: int) -> None: ...

    def create_authentication_challenge(self, user_id: str, r1: int, r2: int) -> Challenge: ...

    def verify_authentication(self, auth_id: str, s: object) -> str: ...


def issue_session_token() -> str:
    return secrets.token_urlsafe(32)


class AuthServer:
    """Verifier side: thin layer over :class:`SessionStore`.

    Missing, expired and failed attempts all surface as
    :class:`AuthenticationFailed` so a client cannot tell them apart.
    """

    def __init__(self, sessions: SessionStore, token_factory: TokenFactory = issue_session_token) -> None:
        self.sessions = sessions
        self.token_factory = token_factory

    @property
    def params(self) -> GroupParameters:
        return self.sessions.params

    def register(self, user_id: str, y1: int, y2: int) -> None:
        self.sessions.register(user_id, y1, y2)

    def create_authentication_challenge(self, user_id: str, r1: int, r2: int) -> Challenge:
        auth_id, c = self.sessions.begin_attempt(user_id, r1, r2)
        return Challenge(auth_id=auth_id, c=c)

    def verify_authentication(self, auth_id: str, s: object) -> str:
        try:
            result = self.sessions.complete_attempt(auth_id, s)
        except UnknownOrExpiredAttempt as exc:
            logger.warning("Authentication rejected: unknown or expired attempt")
            raise AuthenticationFailed("Authentication failed") from exc

        if result is not VerificationResult.SUCCESS:
            logger.warning("Authentication rejected: invalid proof")
            raise AuthenticationFailed("Authentication failed")

        logger.info("Authentication succeeded for attempt %s", auth_id)
        return self.token_factory()


class AuthClient:
    """Prover side: derives the secret from a password and drives the exchange."""

    def __init__(
        self,
        transport: Transport,
        params: GroupParameters,
        *,
        password_mapping: PasswordMapping = password_to_secret,
        random_source: Optional[RandomSource] = None,
    ) -> None:
        self.transport = transport
        self.params = params
        self.password_mapping = password_mapping
        self.random_source = random_source if random_source is not None else RandomSource(params)

    def register(self, user_id: str, password: Password) -> None:
        pair = commit(self.params, self.password_mapping(self.params, password))
        self.transport.register(user_id, pair.first, pair.second)

    def login(self, user_id: str, password: Password) -> str:
        prover = ChaumPedersenProver(
            self.params,
            self.password_mapping(self.params, password),
            self.random_source,
        )
        commitment = prover.commit()
        challenge = self.transport.create_authentication_challenge(
            user_id, commitment.pair.first, commitment.pair.second
        )
        if not self.params.is_scalar(challenge.c):
            logger.warning("Server sent a challenge outside the scalar range")
            raise AuthenticationFailed("Authentication failed")
        response = prover.prove(challenge.c, commitment)
        return self.transport.verify_authentication(challenge.auth_id, response)


__all__ = [
    "AuthClient",
    "AuthServer",
    "Challenge",
    "Transport",
    "issue_session_token",
]
