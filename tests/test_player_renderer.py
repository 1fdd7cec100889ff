from PIL import Image

from streamcast_player.exceptions.blob_not_found_exception import BlobNotFoundException
from streamcast_player.services import player_renderer, status_screen
from streamcast_player.services.player_renderer import KioskRenderer, LoggingRenderer, create_renderer
from streamcast_player.services.common.settings import StreamcastSettings
from streamcast_player.source_resolver import RenderInstruction
from streamcast_player.streamcast_enums import InstructionKind


class FakeMpv:
    def __init__(self):
        self.loaded = []
        self.properties = {}
        self.eof = False
        self.stopped = 0
        self.running = True

    def start_mpv(self, loop=True, muted=True):
        self.running = True
        return True

    def is_running(self):
        return self.running

    def load_file(self, url):
        self.loaded.append(url)
        return True

    def stop_playback(self):
        self.stopped += 1
        return True

    def set_loop(self, loop):
        self.properties["loop"] = loop

    def set_muted(self, muted):
        self.properties["muted"] = muted

    def set_paused(self, paused):
        self.properties["paused"] = paused

    def is_eof(self):
        return self.eof

    def quit(self):
        self.running = False


class FakePopen:
    launched = []

    def __init__(self, args, **kwargs):
        self.args = args
        self.terminated = False
        FakePopen.launched.append(self)

    def terminate(self):
        self.terminated = True

    def wait(self, timeout=None):
        return 0

    def kill(self):
        pass


def stream(item_id="a", loop=True, autoplay=True):
    return RenderInstruction(
        kind=InstructionKind.STREAM,
        item_id=item_id,
        title=f"Item {item_id}",
        url=f"https://cdn.example.com/{item_id}.mp4",
        loop=loop,
        autoplay=autoplay,
        muted=True,
    )


def make_renderer(tmp_path, mpv=None):
    return KioskRenderer(mpv or FakeMpv(), "chromium-browser --kiosk", screen_size=(320, 180), status_dir=tmp_path)


# =============================================================================
# Status screens
# =============================================================================


class TestStatusScreens:

    def test_idle_screen_size(self):
        img = status_screen.create_idle_screen(320, 180)

        assert img.size == (320, 180)

    def test_saved_as_png(self, tmp_path):
        img = status_screen.create_unavailable_screen(320, 180, "Promo", "Not on this device.")

        path = status_screen.save_status_screen(img, "unavailable", tmp_path)

        assert path == tmp_path / "unavailable.png"
        assert Image.open(path).size == (320, 180)


# =============================================================================
# Kiosk renderer
# =============================================================================


class TestKioskRenderer:

    def test_nothing_to_play_shows_idle_screen(self, tmp_path):
        mpv = FakeMpv()
        renderer = make_renderer(tmp_path, mpv)

        renderer.present(None)

        assert mpv.loaded == [str(tmp_path / "streamcast_idle.png")]

    def test_stream_plays_in_mpv(self, tmp_path):
        mpv = FakeMpv()
        renderer = make_renderer(tmp_path, mpv)

        renderer.present(stream(autoplay=False))

        assert mpv.loaded == ["https://cdn.example.com/a.mp4"]
        assert mpv.properties == {"loop": True, "muted": True, "paused": True}

    def test_finished_is_reported_once(self, tmp_path):
        mpv = FakeMpv()
        renderer = make_renderer(tmp_path, mpv)
        renderer.present(stream(loop=False))
        mpv.eof = True

        assert renderer.is_finished() is True
        assert renderer.is_finished() is False

    def test_looping_item_never_finishes(self, tmp_path):
        mpv = FakeMpv()
        renderer = make_renderer(tmp_path, mpv)
        renderer.present(stream(loop=True))
        mpv.eof = True

        assert renderer.is_finished() is False

    def test_unavailable_screen(self, tmp_path):
        mpv = FakeMpv()
        renderer = make_renderer(tmp_path, mpv)
        blob = RenderInstruction(kind=InstructionKind.LOCAL_BLOB, item_id="u1", title="Promo", blob_key="u1")

        renderer.show_unavailable(blob, BlobNotFoundException("u1"))

        assert mpv.loaded == [str(tmp_path / "streamcast_unavailable.png")]
        assert renderer.current is None

    def test_embed_page_opens_browser(self, tmp_path, monkeypatch):
        monkeypatch.setattr(player_renderer.subprocess, "Popen", FakePopen)
        FakePopen.launched = []
        mpv = FakeMpv()
        renderer = make_renderer(tmp_path, mpv)
        embed = RenderInstruction(kind=InstructionKind.EMBED, item_id="m", url="https://embedmaster.link/movie/tt0133093")

        renderer.present(embed)
        renderer.present(stream("b"))

        browser = FakePopen.launched[0]
        assert browser.args == ["chromium-browser", "--kiosk", "https://embedmaster.link/movie/tt0133093"]
        assert browser.terminated is True
        assert mpv.loaded == ["https://cdn.example.com/b.mp4"]

    def test_youtube_embed_plays_in_mpv(self, tmp_path):
        mpv = FakeMpv()
        renderer = make_renderer(tmp_path, mpv)
        embed = RenderInstruction(kind=InstructionKind.EMBED, item_id="y", url="https://www.youtube.com/embed/dQw4w9WgXcQ")

        renderer.present(embed)

        assert mpv.loaded == ["https://www.youtube.com/embed/dQw4w9WgXcQ"]


class TestCreateRenderer:

    def test_log_renderer(self):
        assert isinstance(create_renderer(StreamcastSettings(renderer="log")), LoggingRenderer)

    def test_kiosk_renderer_keeps_screens_in_data_dir(self, tmp_path, monkeypatch):
        monkeypatch.setattr(status_screen, "get_screen_size", lambda: (320, 180))

        renderer = create_renderer(StreamcastSettings(data_dir=str(tmp_path)))

        assert renderer.status_dir == tmp_path / "status"
