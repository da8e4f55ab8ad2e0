"""Unit tests for the client key-value caches."""

from kleinewelt.client import FileCache, MemoryCache


class TestMemoryCache:
    """Test MemoryCache."""

    def test_set_get_delete(self):
        cache = MemoryCache()
        assert cache.get("k") is None

        cache.set("k", "v")
        assert cache.get("k") == "v"

        cache.delete("k")
        cache.delete("k")
        assert cache.get("k") is None


class TestFileCache:
    """Test FileCache."""

    def test_persists_across_instances(self, tmp_path):
        """Values survive a new cache object on the same directory."""
        FileCache(tmp_path).set("kleinewelt:caregroup:v1", '{"a": 1}')

        assert FileCache(tmp_path).get("kleinewelt:caregroup:v1") == '{"a": 1}'

    def test_key_is_not_used_as_file_name(self, tmp_path):
        """Keys with separators map to a single flat file."""
        cache = FileCache(tmp_path / "cache")
        cache.set("../outside:key/with/slashes", "x")

        files = list((tmp_path / "cache").iterdir())
        assert len(files) == 1
        assert files[0].suffix == ".json"
        assert cache.get("../outside:key/with/slashes") == "x"

    def test_delete_missing_key(self, tmp_path):
        cache = FileCache(tmp_path)
        cache.delete("missing")
        assert cache.get("missing") is None
