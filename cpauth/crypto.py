"""Chaum-Pedersen proof of equality of discrete logarithms.

The prover shows that ``y1 = g^x`` and ``y2 = h^x`` share the exponent ``x``
without revealing it:

* prover sends ``r1 = g^k``, ``r2 = h^k`` for a fresh random ``k``
* verifier replies with a random challenge ``c``
* prover answers ``s = k - c*x mod q``
* verifier accepts iff ``r1 == g^s * y1^c`` and ``r2 == h^s * y2^c``
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from typing import Union

from .group import GroupParameters
from .randomness import RandomSource

PASSWORD_CONTEXT = b"cpauth password v1:"


@dataclass(frozen=True)
class CommitmentPair:
    """A pair ``(g^e, h^e)`` for some exponent ``e``."""

    first: int
    second: int

    def to_dict(self) -> dict[str, str]:
        return {"first": hex(self.first), "second": hex(self.second)}


@dataclass
class EphemeralCommitment:
    """Commitment sent at the start of a login together with its nonce."""

    pair: CommitmentPair
    nonce: int


def commit(params: GroupParameters, secret: int) -> CommitmentPair:
    return CommitmentPair(first=params.pow(params.g, secret), second=params.pow(params.h, secret))


def respond(params: GroupParameters, k: int, c: int, x: int) -> int:
    return params.reduce_scalar(k - c * x)


def verify(
    params: GroupParameters,
    y1: object,
    y2: object,
    r1: object,
    r2: object,
    c: object,
    s: object,
) -> bool:
    """Check both verification equations.

    Malformed values count as a failed proof. Both equations are evaluated
    and compared before the conjunction is taken.
    """

    if not all(params.is_element(value) for value in (y1, y2, r1, r2)):
        return False
    if not (params.is_scalar(c) and params.is_scalar(s)):
        return False

    expected_r1 = params.combine(params.pow(params.g, s), params.pow(y1, c))
    expected_r2 = params.combine(params.pow(params.h, s), params.pow(y2, c))

    first = secrets.compare_digest(params.element_to_bytes(expected_r1), params.element_to_bytes(r1))
    second = secrets.compare_digest(params.element_to_bytes(expected_r2), params.element_to_bytes(r2))
    return first & second


def password_to_secret(params: GroupParameters, password: Union[str, bytes]) -> int:
    """Default password mapping: oversized SHAKE-256 digest reduced mod q."""

    if isinstance(password, str):
        password = password.encode("utf-8")
    digest = hashlib.shake_256(PASSWORD_CONTEXT + password).digest(params.scalar_size + 16)
    return int.from_bytes(digest, "big") % params.q


class ChaumPedersenProver:
    """Prover holding the long-lived secret ``x`` for a single login."""

    def __init__(self, params: GroupParameters, secret: int, random_source: RandomSource) -> None:
        if not params.is_scalar(secret):
            raise ValueError("Secret must be a scalar in [0, q)")
        self.params = params
        self.secret = secret
        self.random_source = random_source

    def commit(self) -> EphemeralCommitment:
        nonce = self.random_source.random_scalar()
        return EphemeralCommitment(pair=commit(self.params, nonce), nonce=nonce)

    def prove(self, challenge: int, commitment: EphemeralCommitment) -> int:
        if not self.params.is_scalar(challenge):
            raise ValueError("Challenge outside of the scalar range")
        return respond(self.params, commitment.nonce, challenge, self.secret)


__all__ = [
    "ChaumPedersenProver",
    "CommitmentPair",
    "EphemeralCommitment",
    "commit",
    "password_to_secret",
    "respond",
    "verify",
]
