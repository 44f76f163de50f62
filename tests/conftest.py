import os
import threading

import pytest

import sys
target_path = os.path.abspath(os.path.join(os.path.dirname(os.path.abspath(__file__)), ".."))
if target_path not in sys.path:
    sys.path.insert(0, target_path)

from courier.crypto_utils import generate_key_pair
from courier.messaging import Credentials, Identity, InMemoryEntityStore, InMemoryNonceStore, LocalBackend


# -----------------------------------------------------------------------------
# Test doubles: randomness, clock, notifier
# -----------------------------------------------------------------------------

class CountingRandom:
    """Real randomness, but counts how many draws were made."""
    def __init__(self):
        self.calls = 0

    def token_bytes(self, n: int) -> bytes:
        self.calls += 1
        return os.urandom(n)


class FixedRandom:
    """Deterministic bytes: 0x00, 0x01, ... repeated. Never use outside tests."""
    def token_bytes(self, n: int) -> bytes:
        return bytes(i % 256 for i in range(n))


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self._lock = threading.Lock()

    def __call__(self) -> float:
        with self._lock:
            return self.now

    def advance(self, seconds: float) -> None:
        with self._lock:
            self.now += seconds


class RecordingNotifier:
    def __init__(self):
        self.notified = []

    def notify(self, message_id: str) -> None:
        self.notified.append(message_id)


def make_credentials() -> Credentials:
    sign_pair = generate_key_pair("sign")
    encrypt_pair = generate_key_pair("encrypt")
    return Credentials(
        public_sign_key=sign_pair.public_key,
        private_sign_key=sign_pair.private_key,
        public_encrypt_key=encrypt_pair.public_key,
        private_encrypt_key=encrypt_pair.private_key,
    )


def identity_of(creds: Credentials, name: str) -> Identity:
    return Identity(
        public_sign_key=creds.public_sign_key,
        public_encrypt_key=creds.public_encrypt_key,
        name=name,
    )


# -----------------------------------------------------------------------------
# Fixtures: RSA identities are expensive, generate them once per session
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def alice() -> Credentials:
    return make_credentials()


@pytest.fixture(scope="session")
def bob() -> Credentials:
    return make_credentials()


@pytest.fixture(scope="session")
def carol() -> Credentials:
    return make_credentials()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def store(alice, bob, carol) -> InMemoryEntityStore:
    s = InMemoryEntityStore()
    s.add_identity(identity_of(alice, "alice"))
    s.add_identity(identity_of(bob, "bob"))
    s.add_identity(identity_of(carol, "carol"))
    return s


@pytest.fixture
def backend(store, clock, notifier) -> LocalBackend:
    return LocalBackend(
        store,
        InMemoryNonceStore(ttl_seconds=120, clock=clock),
        notifier,
        clock=clock,
    )
