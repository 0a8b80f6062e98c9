import hashlib

from cpauth.group import GroupParameters


def toy_group() -> GroupParameters:
    return GroupParameters(p=23, q=11, g=4, h=9, name="toy")


def scenario_group() -> GroupParameters:
    return GroupParameters(p=23, q=11, g=2, h=3, name="scenario")


class PRG:
    """Deterministic stand-in for os.urandom."""

    def __init__(self, seed: bytes) -> None:
        self.seed = seed
        self.counter = 0

    def __call__(self, count: int) -> bytes:
        output = b""
        while len(output) < count:
            output += hashlib.sha256(self.seed + self.counter.to_bytes(8, "big")).digest()
            self.counter += 1
        return output[:count]


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
