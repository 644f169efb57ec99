"""
Content-addressed cache of raw analysis responses.
"""
import pytest

from receiptbook.cache import file_digest
from receiptbook.errors import CacheError

HASH = file_digest(b"receipt image bytes")


def test_file_digest_is_sha256_hex():
    assert file_digest(b"abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


class TestReserve:
    def test_first_reservation_wins(self, cache):
        assert cache.reserve(HASH) is True
        assert cache.reserve(HASH) is False

    def test_placeholder_is_known_but_not_complete(self, cache):
        cache.reserve(HASH)
        assert cache.is_known(HASH)
        assert not cache.is_complete(HASH)
        assert cache.load(HASH) == ""

    def test_unknown_hash(self, cache):
        assert not cache.is_known(HASH)
        assert not cache.is_complete(HASH)


class TestStore:
    def test_store_overwrites_placeholder(self, cache):
        cache.reserve(HASH)
        cache.store(HASH, '{"status": "succeeded"}')
        assert cache.is_complete(HASH)
        assert cache.load(HASH) == '{"status": "succeeded"}'

    def test_store_without_reservation(self, cache):
        cache.store(HASH, "payload")
        assert cache.load(HASH) == "payload"
        assert cache.reserve(HASH) is False

    def test_load_missing(self, cache):
        with pytest.raises(CacheError):
            cache.load(HASH)

    def test_list_hashes(self, cache):
        other = file_digest(b"another receipt")
        cache.reserve(HASH)
        cache.store(other, "payload")
        assert sorted(cache.list_hashes()) == sorted([HASH, other])


class TestRelease:
    def test_release_drops_placeholder(self, cache):
        cache.reserve(HASH)
        cache.release(HASH)
        assert not cache.is_known(HASH)
        assert cache.reserve(HASH) is True

    def test_release_keeps_completed_entry(self, cache):
        cache.store(HASH, "payload")
        cache.release(HASH)
        assert cache.load(HASH) == "payload"
