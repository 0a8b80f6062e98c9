import json
import os
import tempfile
import threading
import unittest

from cpauth.crypto import commit, respond
from cpauth.errors import (
    AlreadyRegistered,
    InvalidCommitment,
    UnknownOrExpiredAttempt,
    UnknownUser,
)
from cpauth.randomness import RandomSource
from cpauth.store import CredentialStore, SessionStore, UserRecord, VerificationResult

from .common import PRG, FakeClock, toy_group

SECRET = 6


class StoreTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.params = toy_group()
        self.clock = FakeClock()
        self.sessions = SessionStore(
            self.params,
            random_source=RandomSource(self.params, entropy_f=PRG(b"store")),
            ttl=30.0,
            clock=self.clock,
        )
        y = commit(self.params, SECRET)
        self.sessions.register("alice", y.first, y.second)

    def begin(self, k: int = 3):
        r = commit(self.params, k)
        auth_id, c = self.sessions.begin_attempt("alice", r.first, r.second)
        return auth_id, c, respond(self.params, k, c, SECRET)


class TestRegistration(StoreTestCase):
    def test_register_stores_commitment(self) -> None:
        record = self.sessions.credentials.get("alice")
        self.assertEqual(record, UserRecord(user_id="alice", y1=2, y2=3))

    def test_duplicate_registration(self) -> None:
        with self.assertRaises(AlreadyRegistered):
            self.sessions.register("alice", 2, 3)

    def test_invalid_commitment(self) -> None:
        for y1, y2 in ((0, 3), (2, 5), (2, 23), ("2", 3)):
            with self.assertRaises(InvalidCommitment):
                self.sessions.register("bob", y1, y2)
        self.assertNotIn("bob", self.sessions.credentials)

    def test_concurrent_registration_single_winner(self) -> None:
        barrier = threading.Barrier(8)
        outcomes = []
        lock = threading.Lock()

        def worker() -> None:
            barrier.wait()
            try:
                self.sessions.register("carol", 2, 3)
            except AlreadyRegistered:
                outcome = "duplicate"
            else:
                outcome = "registered"
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        self.assertEqual(outcomes.count("registered"), 1)
        self.assertEqual(outcomes.count("duplicate"), 7)


class TestAttempts(StoreTestCase):
    def test_unknown_user(self) -> None:
        with self.assertRaises(UnknownUser):
            self.sessions.begin_attempt("mallory", 8, 4)

    def test_challenge_is_scalar(self) -> None:
        for _ in range(20):
            _, c, _ = self.begin()
            self.assertTrue(0 <= c < self.params.q)

    def test_attempt_ids_are_unique(self) -> None:
        ids = {self.begin()[0] for _ in range(50)}
        self.assertEqual(len(ids), 50)
        self.assertEqual(self.sessions.pending_attempts, 50)

    def test_success_then_single_use(self) -> None:
        auth_id, _, s = self.begin()
        self.assertIs(self.sessions.complete_attempt(auth_id, s), VerificationResult.SUCCESS)
        with self.assertRaises(UnknownOrExpiredAttempt):
            self.sessions.complete_attempt(auth_id, s)

    def test_failure_consumes_attempt(self) -> None:
        auth_id, _, s = self.begin()
        wrong = (s + 1) % self.params.q
        self.assertIs(self.sessions.complete_attempt(auth_id, wrong), VerificationResult.INVALID_PROOF)
        with self.assertRaises(UnknownOrExpiredAttempt):
            self.sessions.complete_attempt(auth_id, s)

    def test_malformed_response_is_invalid_proof(self) -> None:
        auth_id, _, _ = self.begin()
        self.assertIs(self.sessions.complete_attempt(auth_id, None), VerificationResult.INVALID_PROOF)
        self.assertEqual(self.sessions.pending_attempts, 0)

    def test_malformed_commitment_is_invalid_proof(self) -> None:
        auth_id, c = self.sessions.begin_attempt("alice", 5, 0)
        s = respond(self.params, 3, c, SECRET)
        self.assertIs(self.sessions.complete_attempt(auth_id, s), VerificationResult.INVALID_PROOF)

    def test_unknown_attempt(self) -> None:
        with self.assertRaises(UnknownOrExpiredAttempt):
            self.sessions.complete_attempt("missing", 1)

    def test_new_login_draws_fresh_attempt(self) -> None:
        first_id, _, first_s = self.begin()
        self.sessions.complete_attempt(first_id, (first_s + 1) % self.params.q)
        second_id, _, second_s = self.begin()
        self.assertNotEqual(first_id, second_id)
        self.assertIs(self.sessions.complete_attempt(second_id, second_s), VerificationResult.SUCCESS)

    def test_concurrent_completion_single_winner(self) -> None:
        for _ in range(10):
            auth_id, _, s = self.begin()
            barrier = threading.Barrier(6)
            results = []
            lock = threading.Lock()

            def worker() -> None:
                barrier.wait()
                try:
                    outcome = self.sessions.complete_attempt(auth_id, s)
                except UnknownOrExpiredAttempt:
                    outcome = None
                with lock:
                    results.append(outcome)

            threads = [threading.Thread(target=worker) for _ in range(6)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()
            self.assertEqual(results.count(VerificationResult.SUCCESS), 1)
            self.assertEqual(results.count(None), 5)


class TestExpiry(StoreTestCase):
    def test_expired_attempt_rejected_with_correct_response(self) -> None:
        auth_id, _, s = self.begin()
        self.clock.advance(30.0)
        with self.assertRaises(UnknownOrExpiredAttempt):
            self.sessions.complete_attempt(auth_id, s)
        self.assertEqual(self.sessions.pending_attempts, 0)

    def test_attempt_within_ttl_accepted(self) -> None:
        auth_id, _, s = self.begin()
        self.clock.advance(29.0)
        self.assertIs(self.sessions.complete_attempt(auth_id, s), VerificationResult.SUCCESS)

    def test_sweep_evicts_only_expired(self) -> None:
        old_id, _, _ = self.begin()
        self.clock.advance(20.0)
        fresh_id, _, fresh_s = self.begin()
        self.clock.advance(15.0)

        with self.assertLogs("cpauth.store", level="INFO") as logs:
            self.assertEqual(self.sessions.sweep_expired(), 1)
        self.assertIn("Evicted 1 expired", logs.output[0])
        self.assertEqual(self.sessions.pending_attempts, 1)

        with self.assertRaises(UnknownOrExpiredAttempt):
            self.sessions.complete_attempt(old_id, 0)
        self.assertIs(self.sessions.complete_attempt(fresh_id, fresh_s), VerificationResult.SUCCESS)

    def test_sweep_with_nothing_expired(self) -> None:
        self.begin()
        self.assertEqual(self.sessions.sweep_expired(), 0)
        self.assertEqual(self.sessions.pending_attempts, 1)

    def test_ttl_must_be_positive(self) -> None:
        with self.assertRaises(ValueError):
            SessionStore(self.params, ttl=0)


class TestCredentialStore(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmpdir.name, "users.json")

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    def test_persists_across_instances(self) -> None:
        store = CredentialStore(self.path)
        store.add(UserRecord(user_id="alice", y1=2, y2=3))

        with open(self.path, "r", encoding="utf-8") as handle:
            payload = json.load(handle)
        self.assertEqual(payload, {"users": [{"user_id": "alice", "y1": "0x2", "y2": "0x3"}]})

        reopened = CredentialStore(self.path)
        self.assertEqual(len(reopened), 1)
        self.assertEqual(reopened.get("alice"), UserRecord(user_id="alice", y1=2, y2=3))
        with self.assertRaises(AlreadyRegistered):
            reopened.add(UserRecord(user_id="alice", y1=8, y2=4))

    def test_creates_empty_file(self) -> None:
        store = CredentialStore(self.path)
        self.assertEqual(len(store), 0)
        self.assertTrue(os.path.exists(self.path))

    def test_duplicate_entries_in_file_rejected(self) -> None:
        entry = {"user_id": "alice", "y1": "0x2", "y2": "0x3"}
        with open(self.path, "w", encoding="utf-8") as handle:
            json.dump({"users": [entry, dict(entry, y1="0x8")]}, handle)
        with self.assertRaises(ValueError):
            CredentialStore(self.path)

    def test_in_memory_store(self) -> None:
        store = CredentialStore()
        store.add(UserRecord(user_id="alice", y1=2, y2=3))
        self.assertIn("alice", store)
        self.assertIsNone(store.get("bob"))


if __name__ == "__main__":
    unittest.main()
