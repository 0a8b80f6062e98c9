"""Arithmetic over a prime-order subgroup of the multiplicative group mod p.

Elements are plain integers in ``(0, p)`` that lie in the subgroup of order
``q``. Scalars are integers in ``[0, q)``. The identity element is ``1``.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass

from .errors import InvalidParameters

_SMALL_PRIMES = (2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41, 43, 47)


def byte_length(value: int) -> int:
    return max(1, (value.bit_length() + 7) // 8)


def is_probable_prime(n: int, rounds: int = 32) -> bool:
    """Miller-Rabin primality test with random bases."""

    if n < 2:
        return False
    for prime in _SMALL_PRIMES:
        if n % prime == 0:
            return n == prime

    d, r = n - 1, 0
    while d % 2 == 0:
        d //= 2
        r += 1

    for _ in range(rounds):
        a = secrets.randbelow(n - 3) + 2
        x = pow(a, d, n)
        if x in (1, n - 1):
            continue
        for _ in range(r - 1):
            x = pow(x, 2, n)
            if x == n - 1:
                break
        else:
            return False
    return True


def ladder_pow(base: int, exponent: int, modulus: int, bits: int) -> int:
    """Montgomery ladder over exactly ``bits`` exponent bits.

    Every iteration performs one multiplication and one squaring regardless of
    the bit value; the registers are exchanged with a masked xor swap.
    """

    r0, r1 = 1, base % modulus
    for i in reversed(range(bits)):
        mask = -((exponent >> i) & 1)
        swap = (r0 ^ r1) & mask
        r0 ^= swap
        r1 ^= swap
        r1 = (r0 * r1) % modulus
        r0 = (r0 * r0) % modulus
        swap = (r0 ^ r1) & mask
        r0 ^= swap
        r1 ^= swap
    return r0


def hash_to_element(p: int, q: int, seed: bytes) -> int:
    """Map a public seed to a non-identity element of the order-q subgroup.

    Nobody learns the discrete log of the result with respect to any other
    generator, which makes it suitable as the second generator ``h``.
    """

    cofactor = (p - 1) // q
    width = byte_length(p) + 16
    counter = 0
    while True:
        digest = hashlib.shake_256(seed + counter.to_bytes(4, "big")).digest(width)
        candidate = pow(int.from_bytes(digest, "big") % p, cofactor, p)
        if candidate > 1:
            return candidate
        counter += 1


@dataclass(frozen=True)
class GroupParameters:
    """Public parameters shared by the prover and the verifier."""

    p: int
    q: int
    g: int
    h: int
    name: str = "custom"

    def __post_init__(self) -> None:
        if not is_probable_prime(self.q):
            raise InvalidParameters("Subgroup order q must be prime")
        if not is_probable_prime(self.p):
            raise InvalidParameters("Modulus p must be prime")
        if (self.p - 1) % self.q != 0:
            raise InvalidParameters("q must divide p - 1")
        for label, generator in (("g", self.g), ("h", self.h)):
            if generator == 1:
                raise InvalidParameters(f"Generator {label} must not be the identity")
            if not 1 < generator < self.p or pow(generator, self.q, self.p) != 1:
                raise InvalidParameters(f"Generator {label} is not in the order-q subgroup")
        if self.g == self.h:
            raise InvalidParameters("Generators g and h must be independent")

    @property
    def scalar_bits(self) -> int:
        return self.q.bit_length()

    @property
    def scalar_size(self) -> int:
        return byte_length(self.q)

    @property
    def element_size(self) -> int:
        return byte_length(self.p)

    def pow(self, base: int, exponent: int) -> int:
        return ladder_pow(base, exponent % self.q, self.p, self.scalar_bits)

    def combine(self, a: int, b: int) -> int:
        return (a * b) % self.p

    def reduce_scalar(self, value: int) -> int:
        return value % self.q

    def is_scalar(self, value: object) -> bool:
        return isinstance(value, int) and not isinstance(value, bool) and 0 <= value < self.q

    def is_element(self, value: object) -> bool:
        if not isinstance(value, int) or isinstance(value, bool):
            return False
        if not 0 < value < self.p:
            return False
        return pow(value, self.q, self.p) == 1

    def element_to_bytes(self, element: int) -> bytes:
        return element.to_bytes(self.element_size, "big")

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "p": hex(self.p),
            "q": hex(self.q),
            "g": hex(self.g),
            "h": hex(self.h),
        }


__all__ = [
    "GroupParameters",
    "byte_length",
    "hash_to_element",
    "is_probable_prime",
    "ladder_pow",
]
