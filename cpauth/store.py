"""Credential registry and in-flight authentication attempts."""

from __future__ import annotations

import enum
import json
import logging
import os
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from .crypto import verify
from .errors import (
    AlreadyRegistered,
    InvalidCommitment,
    UnknownOrExpiredAttempt,
    UnknownUser,
)
from .group import GroupParameters
from .randomness import RandomSource

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPT_TTL = 60.0


@dataclass
class UserRecord:
    """Registered commitment pair ``(g^x, h^x)`` for one user."""

    user_id: str
    y1: int
    y2: int

    def to_dict(self) -> Dict[str, str]:
        return {"user_id": self.user_id, "y1": hex(self.y1), "y2": hex(self.y2)}

    @staticmethod
    def from_dict(data: Dict[str, str]) -> "UserRecord":
        return UserRecord(user_id=data["user_id"], y1=int(data["y1"], 16), y2=int(data["y2"], 16))


@dataclass
class AuthAttempt:
    """Challenge state for one login, consumed by the first verification."""

    auth_id: str
    user_id: str
    r1: object
    r2: object
    c: int
    created_at: float = 0.0


class VerificationResult(enum.Enum):
    SUCCESS = "success"
    INVALID_PROOF = "invalid_proof"


class CredentialStore:
    """Map user identities to commitments, optionally persisted as JSON.

    With ``path`` set, the file is read once on construction and rewritten on
    every registration.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._records: Dict[str, UserRecord] = {}
        if path is not None:
            self._load_records()
            logger.info("Loaded %d credential(s) from %s", len(self._records), path)

    def _load_records(self) -> None:
        if not os.path.exists(self.path):
            self._save()
            return
        with open(self.path, "r", encoding="utf-8") as handle:
            payload = json.load(handle)
        for raw_user in payload.get("users", []):
            record = UserRecord.from_dict(raw_user)
            if record.user_id in self._records:
                raise ValueError(f"Duplicate user '{record.user_id}' in {self.path}")
            self._records[record.user_id] = record

    def _save(self) -> None:
        payload = {"users": [record.to_dict() for record in self._records.values()]}
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
        os.replace(tmp_path, self.path)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def get(self, user_id: str) -> Optional[UserRecord]:
        return self._records.get(user_id)

    def add(self, record: UserRecord) -> None:
        with self._lock:
            if record.user_id in self._records:
                raise AlreadyRegistered(f"User '{record.user_id}' already registered")
            self._records[record.user_id] = record
            if self.path is not None:
                try:
                    self._save()
                except OSError:
                    del self._records[record.user_id]
                    raise


class SessionStore:
    """Server-side state: registered commitments and pending challenges.

    Locks are held only around dictionary mutations. Challenge sampling and
    proof verification happen outside them.
    """

    def __init__(
        self,
        params: GroupParameters,
        credentials: Optional[CredentialStore] = None,
        random_source: Optional[RandomSource] = None,
        *,
        ttl: float = DEFAULT_ATTEMPT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError("Attempt time-to-live must be positive")
        self.params = params
        self.credentials = credentials if credentials is not None else CredentialStore()
        self.random_source = random_source if random_source is not None else RandomSource(params)
        self.ttl = ttl
        self.clock = clock
        self._attempts: Dict[str, AuthAttempt] = {}
        self._attempts_lock = threading.Lock()

    @property
    def pending_attempts(self) -> int:
        return len(self._attempts)

    def register(self, user_id: str, y1: int, y2: int) -> UserRecord:
        if not (self.params.is_element(y1) and self.params.is_element(y2)):
            raise InvalidCommitment("Commitment values must be group elements")
        record = UserRecord(user_id=user_id, y1=y1, y2=y2)
        self.credentials.add(record)
        logger.info("Registered user %s", user_id)
        return record

    def begin_attempt(self, user_id: str, r1: object, r2: object) -> Tuple[str, int]:
        if user_id not in self.credentials:
            raise UnknownUser(user_id)

        challenge = self.random_source.random_scalar()
        attempt = AuthAttempt(
            auth_id=secrets.token_urlsafe(16),
            user_id=user_id,
            r1=r1,
            r2=r2,
            c=challenge,
            created_at=self.clock(),
        )
        with self._attempts_lock:
            self._attempts[attempt.auth_id] = attempt
        logger.debug("Issued challenge for user %s", user_id)
        return attempt.auth_id, challenge

    def _is_expired(self, attempt: AuthAttempt, now: float) -> bool:
        return now - attempt.created_at >= self.ttl

    def complete_attempt(self, auth_id: str, s: object) -> VerificationResult:
        with self._attempts_lock:
            attempt = self._attempts.pop(auth_id, None)
        if attempt is None:
            raise UnknownOrExpiredAttempt(auth_id)
        if self._is_expired(attempt, self.clock()):
            logger.info("Rejected expired attempt for user %s", attempt.user_id)
            raise UnknownOrExpiredAttempt(auth_id)

        record = self.credentials.get(attempt.user_id)
        if record is None:  # pragma: no cover - registrations are never removed
            raise UnknownOrExpiredAttempt(auth_id)

        if verify(self.params, record.y1, record.y2, attempt.r1, attempt.r2, attempt.c, s):
            return VerificationResult.SUCCESS
        return VerificationResult.INVALID_PROOF

    def sweep_expired(self) -> int:
        now = self.clock()
        with self._attempts_lock:
            expired = [
                auth_id for auth_id, attempt in self._attempts.items() if self._is_expired(attempt, now)
            ]
            for auth_id in expired:
                del self._attempts[auth_id]
        if expired:
            logger.info("Evicted %d expired authentication attempt(s)", len(expired))
        return len(expired)


__all__ = [
    "AuthAttempt",
    "CredentialStore",
    "DEFAULT_ATTEMPT_TTL",
    "SessionStore",
    "UserRecord",
    "VerificationResult",
]
