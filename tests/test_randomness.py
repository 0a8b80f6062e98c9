import unittest

from cpauth.errors import InsufficientEntropy
from cpauth.randomness import RandomSource

from .common import PRG, toy_group


class FlakyEntropy:
    def __init__(self, failures: int, payload: bytes = b"\x03") -> None:
        self.failures = failures
        self.payload = payload
        self.calls = 0

    def __call__(self, count: int) -> bytes:
        self.calls += 1
        if self.calls <= self.failures:
            raise OSError("entropy pool starved")
        return self.payload * count


class TestRandomSource(unittest.TestCase):
    def test_scalars_in_range_and_cover_group(self) -> None:
        params = toy_group()
        source = RandomSource(params, entropy_f=PRG(b"cover"))
        seen = {source.random_scalar() for _ in range(500)}
        self.assertEqual(seen, set(range(params.q)))

    def test_deterministic_with_injected_entropy(self) -> None:
        params = toy_group()
        first = [RandomSource(params, entropy_f=PRG(b"seed")).random_scalar() for _ in range(3)]
        second = [RandomSource(params, entropy_f=PRG(b"seed")).random_scalar() for _ in range(3)]
        self.assertEqual(first, second)

    def test_rejection_sampling(self) -> None:
        params = toy_group()
        values = iter([b"\xff", b"\x0b", b"\x03"])
        source = RandomSource(params, entropy_f=lambda count: next(values))
        # 0xff masks to 15 and 0x0b is 11, both outside [0, 11).
        self.assertEqual(source.random_scalar(), 3)

    def test_transient_failure_is_retried(self) -> None:
        entropy = FlakyEntropy(failures=2)
        source = RandomSource(toy_group(), entropy_f=entropy, retries=3, backoff=0)
        self.assertEqual(source.random_scalar(), 3)
        self.assertEqual(entropy.calls, 3)

    def test_persistent_failure_raises(self) -> None:
        entropy = FlakyEntropy(failures=100)
        source = RandomSource(toy_group(), entropy_f=entropy, retries=2, backoff=0)
        with self.assertRaises(InsufficientEntropy):
            source.random_scalar()
        self.assertEqual(entropy.calls, 3)

    def test_short_read_raises(self) -> None:
        source = RandomSource(toy_group(), entropy_f=lambda count: b"", retries=1, backoff=0)
        with self.assertRaises(InsufficientEntropy):
            source.random_scalar()

    def test_fresh_bytes_per_call(self) -> None:
        calls = []

        def entropy(count: int) -> bytes:
            calls.append(count)
            return bytes([len(calls) % 11])

        source = RandomSource(toy_group(), entropy_f=entropy)
        self.assertEqual([source.random_scalar() for _ in range(4)], [1, 2, 3, 4])
        self.assertEqual(calls, [1, 1, 1, 1])


if __name__ == "__main__":
    unittest.main()
