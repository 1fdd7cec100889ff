import argparse

import pytest

from streamcast_player.local_cache import LocalCache
from streamcast_player.services import streamcast_admin
from streamcast_player.streamcast_enums import ContentKind


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    data_dir = tmp_path / "app_data"
    monkeypatch.setenv("STREAMCAST_DATA_DIR", str(data_dir))
    monkeypatch.setenv("STREAMCAST_CONFIG_FILE", str(tmp_path / "missing.json"))
    monkeypatch.setenv("STREAMCAST_ORIGIN_ID", "test")
    monkeypatch.delenv("STREAMCAST_DATABASE_URL", raising=False)
    monkeypatch.delenv("STREAMCAST_TMDB_API_KEY", raising=False)
    return data_dir


def run(*argv):
    with pytest.raises(SystemExit) as exc_info:
        streamcast_admin.main(list(argv))
    return exc_info.value.code


def saved_bundle(data_dir):
    return LocalCache(data_dir).load_bundle()


# =============================================================================
# Argument parsing
# =============================================================================


class TestArgumentTypes:

    def test_days_by_number_and_name(self):
        assert streamcast_admin._days("1,2,3") == frozenset({1, 2, 3})
        assert streamcast_admin._days("sun,Sat") == frozenset({0, 6})

    @pytest.mark.parametrize("value", ["7", "t", "funday", ","])
    def test_bad_days(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            streamcast_admin._days(value)

    def test_hhmm(self):
        assert streamcast_admin._hhmm(" 09:30") == "09:30"
        with pytest.raises(argparse.ArgumentTypeError):
            streamcast_admin._hhmm("24:00")

    def test_on_off(self):
        assert streamcast_admin._on_off("ON") is True
        assert streamcast_admin._on_off("0") is False
        with pytest.raises(argparse.ArgumentTypeError):
            streamcast_admin._on_off("maybe")


# =============================================================================
# Commands (local only, no remote store configured)
# =============================================================================


class TestCommands:

    def test_add_url(self, data_dir):
        assert run("add-url", "https://www.youtube.com/watch?v=dQw4w9WgXcQ", "--title", "Intro") == 0

        bundle = saved_bundle(data_dir)
        assert [i.title for i in bundle.playlist] == ["Intro"]
        assert bundle.playlist[0].id.startswith("test-")
        assert bundle.last_update > 0

    def test_each_edit_bumps_last_update(self, data_dir):
        run("add-url", "https://cdn.example.com/a.mp4")
        first = saved_bundle(data_dir).last_update

        run("add-url", "https://cdn.example.com/b.mp4")

        bundle = saved_bundle(data_dir)
        assert bundle.last_update > first
        assert len(bundle.playlist) == 2

    def test_add_episode(self, data_dir):
        assert run("add-episode", "--imdb", "tt0903747", "--season", "2", "--episode", "3", "--title", "BB") == 0

        item = saved_bundle(data_dir).playlist[0]
        assert item.kind == ContentKind.CATALOG_EPISODE
        assert (item.imdb_id, item.season, item.episode) == ("tt0903747", 2, 3)

    def test_catalog_item_needs_an_id(self, data_dir):
        assert run("add-movie", "--title", "Nothing") == 2

    def test_schedule_add_and_remove(self, data_dir):
        run("add-url", "https://cdn.example.com/a.mp4")
        item_id = saved_bundle(data_dir).playlist[0].id

        assert run("schedule-add", item_id, "--days", "mon,tue", "--start", "09:00", "--end", "18:00") == 0
        rule = saved_bundle(data_dir).schedules[0]
        assert rule.target_item_id == item_id
        assert rule.days_of_week == frozenset({1, 2})

        assert run("schedule-remove", rule.id) == 0
        assert saved_bundle(data_dir).schedules == ()

    def test_remove_unknown_item(self, data_dir):
        assert run("remove", "nope") == 1

    def test_upload_stores_blob(self, data_dir, tmp_path):
        media = tmp_path / "promo.mp4"
        media.write_bytes(b"\x00" * 2048)

        assert run("upload", str(media)) == 0

        item = saved_bundle(data_dir).playlist[0]
        assert item.kind == ContentKind.LOCAL_UPLOAD
        assert item.title == "promo"
        assert LocalCache(data_dir).get_blob_url(item.effective_blob_key).startswith("file://")

    def test_config(self, data_dir):
        assert run("config", "--muted", "off", "--language", "en-US", "--use-schedule", "no") == 0

        config = saved_bundle(data_dir).config
        assert config.muted is False
        assert config.language_tag == "en-US"
        assert config.use_schedule is False

    def test_show(self, data_dir, capsys):
        run("add-url", "https://cdn.example.com/a.mp4", "--title", "Lobby loop")
        capsys.readouterr()

        assert run("show") == 0

        out = capsys.readouterr().out
        assert "Lobby loop" in out
        assert "now playing:" in out

    def test_search_without_api_key(self, data_dir):
        assert "tmdb_api_key" in str(run("search", "matrix"))
