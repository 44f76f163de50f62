import threading

import pytest

from courier.messaging import InMemoryEntityStore, InMemoryNonceStore

from conftest import FixedRandom, identity_of


def test_nonce_is_single_use(clock):
    store = InMemoryNonceStore(ttl_seconds=10, clock=clock)
    token = store.issue("alice")
    assert store.consume("alice", token) is True
    assert store.consume("alice", token) is False


def test_expired_nonces_are_swept(clock):
    store = InMemoryNonceStore(ttl_seconds=10, clock=clock)
    store.issue("alice")
    store.issue("bob")
    assert len(store) == 2
    clock.advance(10)
    assert len(store) == 0


def test_nonce_drawn_from_injected_random_source(clock):
    store = InMemoryNonceStore(rng=FixedRandom(), clock=clock)
    # 00 01 02 ... with the uuid4 version and variant bits applied
    assert store.issue("alice") == "00010203-0405-4607-8809-0a0b0c0d0e0f"


def test_concurrent_consume_succeeds_exactly_once(clock):
    store = InMemoryNonceStore(clock=clock)
    token = store.issue("alice")
    results = []
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        results.append(store.consume("alice", token))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 1
    assert results.count(False) == 7


def test_entity_store_records_are_copies(alice):
    store = InMemoryEntityStore()
    store.add_identity(identity_of(alice, "alice"))
    found = store.find_identities([alice.public_sign_key])[0]
    found.name = "mallory"
    assert store.find_identities([alice.public_sign_key])[0].name == "alice"


def test_find_identities_skips_unknown_and_duplicates(alice, bob):
    store = InMemoryEntityStore()
    store.add_identity(identity_of(alice, "alice"))
    found = store.find_identities([alice.public_sign_key, "nobody", alice.public_sign_key])
    assert [i.public_sign_key for i in found] == [alice.public_sign_key]


def test_messages_for_unknown_conversation_rejected():
    store = InMemoryEntityStore()
    with pytest.raises(KeyError):
        store.add_message("nope", "blob", 1)
    with pytest.raises(KeyError):
        store.add_wrapped_keys("nope", {"pk": "wrapped"})


def test_list_messages_ordered_by_timestamp_then_insertion():
    store = InMemoryEntityStore()
    cid = store.add_conversation("t", ["pk"])
    late = store.add_message(cid, "late", 20)
    first_tie = store.add_message(cid, "tie-1", 10)
    second_tie = store.add_message(cid, "tie-2", 10)
    assert [m.id for m in store.list_messages(cid)] == [first_tie, second_tie, late]


def test_alias_lookup(alice):
    store = InMemoryEntityStore()
    store.add_identity(identity_of(alice, "alice"))
    assert store.find_identity_by_alias("al") is None
    assert store.update_identity(alice.public_sign_key, alias="al") is True
    assert store.find_identity_by_alias("al").public_sign_key == alice.public_sign_key
    assert store.update_identity("nobody", alias="x") is False
