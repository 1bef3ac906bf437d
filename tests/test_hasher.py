"""
Hasher Tests - Verify cache key derivation.

Tests:
- Keys are fixed-length lower-case hex
- Same path, same key (independent of str/Path and relative spelling)
- Different paths, different keys
"""

import os
import re
from pathlib import Path

from bundle_index.hasher import KEY_LENGTH, cache_key, checksum


class TestCacheKey:
    """Tests for cache_key."""

    def test_fixed_length_hex(self):
        key = cache_key("/var/log/puppetlabs/puppetserver/puppetserver.log")
        assert re.fullmatch(r"[0-9a-f]+", key)
        assert len(key) == KEY_LENGTH

    def test_same_path_same_key(self):
        path = "/opt/bundle/logs/puppetserver.log"
        assert cache_key(path) == cache_key(path)
        assert cache_key(path) == cache_key(Path(path))

    def test_many_paths_unique_keys(self):
        """Distinct paths never collide in a realistic sample."""
        assert len(set(cache_key(f"/stable/path{i}.log") for i in range(200))) == 200

    def test_different_paths_different_keys(self):
        assert cache_key("/bundle/a.log") != cache_key("/bundle/b.log")

    def test_relative_path_resolved_against_cwd(self, temp_dir, monkeypatch):
        monkeypatch.chdir(temp_dir)
        assert cache_key("app.log") == cache_key(temp_dir / "app.log")

    def test_unicode_paths(self):
        assert len(cache_key("/bundle/журнал.log")) == KEY_LENGTH

    def test_undecodable_name_bytes(self):
        """Names carrying non-UTF-8 bytes still hash, and distinctly."""
        odd = os.fsdecode(b"/bundle/node\xff.log")
        assert len(cache_key(odd)) == KEY_LENGTH
        assert cache_key(odd) != cache_key(os.fsdecode(b"/bundle/node\xfe.log"))


class TestChecksum:
    """Tests for the payload checksum."""

    def test_eight_bytes(self):
        assert len(checksum(b"payload")) == 8

    def test_detects_single_byte_change(self):
        assert checksum(b"payload") != checksum(b"paylaod")
