"""Uniform scalar sampling backed by a cryptographically secure source."""

from __future__ import annotations

import logging
import secrets
import time
from typing import Callable

from .errors import InsufficientEntropy
from .group import GroupParameters

logger = logging.getLogger(__name__)

EntropyFunction = Callable[[int], bytes]


class RandomSource:
    """Draw scalars uniformly from ``[0, q)``.

    ``entropy_f`` behaves like :func:`os.urandom`; tests substitute a
    deterministic function. Each call draws fresh bytes, nothing is cached
    between calls.
    """

    def __init__(
        self,
        params: GroupParameters,
        entropy_f: EntropyFunction = secrets.token_bytes,
        *,
        retries: int = 3,
        backoff: float = 0.05,
    ) -> None:
        self.params = params
        self.entropy_f = entropy_f
        self.retries = retries
        self.backoff = backoff
        bits = params.q.bit_length()
        self._num_bytes = (bits + 7) // 8
        leftover = bits % 8
        self._top_mask = (1 << leftover) - 1 if leftover else 0xFF

    def _read(self, count: int) -> bytes:
        for attempt in range(self.retries + 1):
            try:
                data = self.entropy_f(count)
            except OSError as exc:
                logger.warning("Entropy source failed (attempt %d): %s", attempt + 1, exc)
            else:
                if len(data) == count:
                    return data
                logger.warning("Entropy source returned %d of %d bytes", len(data), count)
            if attempt < self.retries:
                time.sleep(self.backoff)
        raise InsufficientEntropy("Secure random source unavailable")

    def random_scalar(self) -> int:
        q = self.params.q
        while True:
            raw = bytearray(self._read(self._num_bytes))
            raw[0] &= self._top_mask
            candidate = int.from_bytes(raw, "big")
            if candidate < q:
                return candidate


__all__ = ["EntropyFunction", "RandomSource"]
