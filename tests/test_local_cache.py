import io
from collections import namedtuple

from streamcast_player import constants, local_cache as local_cache_module
from streamcast_player.local_cache import LocalCache
from tests.helpers import make_bundle

DiskUsage = namedtuple("DiskUsage", "total used free")


# =============================================================================
# Key/value and bundle
# =============================================================================


class TestValues:

    def test_get_missing_key_returns_none(self, local_cache):
        assert local_cache.get("nothing-here") is None

    def test_set_get_remove(self, local_cache):
        assert local_cache.set("greeting", "olá")
        assert local_cache.get("greeting") == "olá"

        local_cache.remove("greeting")

        assert local_cache.get("greeting") is None

    def test_values_survive_a_new_instance(self, tmp_path):
        LocalCache(tmp_path).set("k", "v")

        assert LocalCache(tmp_path).get("k") == "v"

    def test_bundle_round_trip(self, local_cache):
        bundle = make_bundle(["a", "b"], last_update=42, current_item_id="b")

        assert local_cache.save_bundle(bundle)

        assert local_cache.load_bundle() == bundle

    def test_corrupt_bundle_is_absent(self, local_cache):
        local_cache.set(constants.BUNDLE_CACHE_KEY, "{truncated")

        assert local_cache.load_bundle() is None

    def test_no_bundle_is_absent(self, local_cache):
        assert local_cache.load_bundle() is None


# =============================================================================
# Blobs
# =============================================================================


class TestBlobs:

    def test_put_bytes_and_get_url(self, local_cache):
        progress = []

        assert local_cache.put_blob("u1", b"x" * 1000, on_progress=progress.append, file_name="clip.mp4")

        url = local_cache.get_blob_url("u1")
        assert url.startswith("file://")
        assert progress[-1] == 100
        assert progress == sorted(progress)

    def test_put_from_path_and_file_object(self, local_cache, tmp_path):
        source = tmp_path / "promo.mp4"
        source.write_bytes(b"frames")

        assert local_cache.put_blob("from-path", source)
        assert local_cache.put_blob("from-file", io.BytesIO(b"frames"))

        assert local_cache.get_blob_url("from-path") is not None
        assert local_cache.get_blob_url("from-file") is not None

    def test_missing_source_path_fails(self, local_cache, tmp_path):
        assert local_cache.put_blob("u1", tmp_path / "missing.mp4") is False

    def test_unknown_or_empty_blob_has_no_url(self, local_cache):
        assert local_cache.get_blob_url("never-uploaded") is None

        local_cache.put_blob("empty", b"")

        assert local_cache.get_blob_url("empty") is None

    def test_list_and_delete(self, local_cache):
        local_cache.put_blob("u1", b"abc", file_name="one.mp4")
        local_cache.put_blob("u2", b"defg", file_name="two.webm")

        blobs = {meta["key"]: meta for meta in local_cache.list_blobs()}

        assert set(blobs) == {"u1", "u2"}
        assert blobs["u1"]["fileSize"] == 3
        assert blobs["u1"]["mimeType"] == "video/mp4"

        assert local_cache.delete_blob("u1")
        assert local_cache.get_blob_url("u1") is None
        assert [meta["key"] for meta in local_cache.list_blobs()] == ["u2"]
        assert local_cache.delete_blob("u1") is False

    def test_storage_usage_counts_blob_bytes(self, local_cache):
        local_cache.put_blob("u1", b"x" * 2048)

        usage = local_cache.get_storage_usage()

        assert usage["used"] >= 2048
        assert usage["total"] > 0

    def test_refuses_blob_larger_than_free_space(self, local_cache, monkeypatch):
        free = 300 * 1024 * 1024
        monkeypatch.setattr(local_cache_module.shutil, "disk_usage", lambda path: DiskUsage(10 * free, 9 * free, free))

        assert local_cache.has_enough_space(10 * 1024 * 1024)
        assert not local_cache.has_enough_space(100 * 1024 * 1024)
        assert local_cache.put_blob("big", b"x" * (50 * 1024 * 1024)) is False
