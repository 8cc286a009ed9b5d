"""Tests for the file-backed response cache."""

import os
import tempfile
from mempoolscope.cache import CacheStore, cache_key


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_cache_key_is_filesystem_safe():
    assert cache_key("/mempool") == "_mempool"
    assert cache_key("/address/bc1qxyz/utxo") == "_address_bc1qxyz_utxo"
    assert cache_key("/v1/fees/recommended") == "_v1_fees_recommended"
    assert cache_key("/a?b=c&d") == "_a_b_c_d"
    # Never collides with a timestamp sidecar
    assert not cache_key("/block.ts").endswith(".ts")


def test_put_then_get_round_trip():
    with tempfile.TemporaryDirectory() as temp_dir:
        cache = CacheStore(temp_dir, 5)
        cache.put("_mempool", b'{"count": 1}')
        assert cache.get("_mempool") == b'{"count": 1}'
        assert cache.is_valid("_mempool")


def test_get_missing_key():
    with tempfile.TemporaryDirectory() as temp_dir:
        cache = CacheStore(temp_dir, 5)
        assert cache.get("_nothing") is None
        assert not cache.is_valid("_nothing")


def test_entry_expires_after_duration():
    clock = FakeClock()
    with tempfile.TemporaryDirectory() as temp_dir:
        cache = CacheStore(temp_dir, 5, clock=clock)
        cache.put("_blocks", b"[]")

        clock.now += 5 * 60  # exactly the duration: still valid
        assert cache.get("_blocks") == b"[]"

        clock.now += 1
        assert not cache.is_valid("_blocks")
        assert cache.get("_blocks") is None
        # Expired entries are evicted on access
        assert not os.path.exists(os.path.join(temp_dir, "_blocks"))
        assert not os.path.exists(os.path.join(temp_dir, "_blocks.ts"))


def test_put_overwrites_and_refreshes_timestamp():
    clock = FakeClock()
    with tempfile.TemporaryDirectory() as temp_dir:
        cache = CacheStore(temp_dir, 1, clock=clock)
        cache.put("_fees", b"old")
        clock.now += 50
        cache.put("_fees", b"new")
        clock.now += 50
        assert cache.get("_fees") == b"new"


def test_missing_timestamp_is_a_miss():
    with tempfile.TemporaryDirectory() as temp_dir:
        cache = CacheStore(temp_dir, 5)
        cache.put("_mempool", b"data")
        os.unlink(os.path.join(temp_dir, "_mempool.ts"))

        assert cache.get("_mempool") is None
        assert not os.path.exists(os.path.join(temp_dir, "_mempool"))


def test_corrupt_timestamp_is_a_miss():
    with tempfile.TemporaryDirectory() as temp_dir:
        cache = CacheStore(temp_dir, 5)
        cache.put("_mempool", b"data")
        with open(os.path.join(temp_dir, "_mempool.ts"), "w") as f:
            f.write("not a number")

        assert cache.get("_mempool") is None
        assert not cache.is_valid("_mempool")


def test_unwritable_directory_is_silent():
    with tempfile.NamedTemporaryFile() as f:
        # A regular file where the cache directory should be
        cache = CacheStore(os.path.join(f.name, "cache"), 5)
        cache.put("_mempool", b"data")
        assert cache.get("_mempool") is None


def test_clear_removes_all_entries():
    with tempfile.TemporaryDirectory() as temp_dir:
        cache = CacheStore(temp_dir, 5)
        cache.put("_a", b"1")
        cache.put("_b", b"2")

        cache.clear()
        assert cache.get("_a") is None
        assert cache.get("_b") is None
        assert os.listdir(temp_dir) == []


def test_clear_leaves_foreign_files():
    with tempfile.TemporaryDirectory() as temp_dir:
        cache = CacheStore(temp_dir, 5)
        cache.put("_mempool", b"1")
        for name in ("notes.txt", ".ts", "orphan"):
            with open(os.path.join(temp_dir, name), "w") as f:
                f.write("keep")

        cache.clear()
        assert cache.get("_mempool") is None
        assert sorted(os.listdir(temp_dir)) == [".ts", "notes.txt", "orphan"]


def test_clear_missing_directory():
    with tempfile.TemporaryDirectory() as temp_dir:
        cache = CacheStore(os.path.join(temp_dir, "never-created"), 5)
        cache.clear()
