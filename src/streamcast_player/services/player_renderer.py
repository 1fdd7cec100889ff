"""
Streamcast - Renderers

A renderer receives RenderInstructions from the sync engine:

    present(instruction)                 play it (None = nothing to play)
    show_unavailable(instruction, error) the item cannot be played here
    is_finished()                        the current non-looping item reached its end

KioskRenderer drives the screen of a player device: one idle mpv window plays
streams, stored uploads and YouTube links; other embed pages open in a kiosk
browser on top; status screens are Pillow images loaded into mpv.
LoggingRenderer only logs, for headless runs.
"""

import logging
import shlex
import subprocess
import threading
from pathlib import Path
from typing import Optional, Tuple

from streamcast_player.source_resolver import RenderInstruction
from streamcast_player.streamcast_enums import InstructionKind
from streamcast_player.exceptions.streamcast_exception import StreamcastException
from streamcast_player.services import status_screen
from streamcast_player.utils.mpv_ipc import MpvIpcClient
from streamcast_player.utils.video_detector import is_youtube_url

logger = logging.getLogger(__name__)

BROWSER_STOP_TIMEOUT = 5  # seconds


class LoggingRenderer:
    """Renderer that only logs what it would show."""

    def __init__(self):
        self.current: Optional[RenderInstruction] = None

    def start(self) -> bool:
        logger.info("Logging renderer started, nothing will be shown on screen")
        return True

    def present(self, instruction: Optional[RenderInstruction]) -> None:
        self.current = instruction
        if instruction is None:
            logger.info("[render] idle screen")
        else:
            logger.info(f"[render] {instruction.kind.value} {instruction.item_id}: {instruction.url}")

    def show_unavailable(self, instruction: RenderInstruction, error: StreamcastException) -> None:
        self.current = None
        logger.warning(f"[render] unavailable {instruction.item_id}: {error.message}")

    def is_finished(self) -> bool:
        return False

    def stop(self) -> None:
        self.current = None


class KioskRenderer:

    def __init__(
            self,
            mpv: MpvIpcClient,
            browser_command: str,
            screen_size: Optional[Tuple[int, int]] = None,
            status_dir: Path = status_screen.STATUS_SCREEN_DIR
    ):
        self.mpv = mpv
        self.browser_command = shlex.split(browser_command)
        self.screen_size = screen_size or status_screen.get_screen_size()
        self.status_dir = status_dir
        self.browser_process: Optional[subprocess.Popen] = None
        self.current: Optional[RenderInstruction] = None
        self._in_mpv = False
        self._finish_reported = False
        self._lock = threading.RLock()

    def start(self) -> bool:
        if not self.mpv.start_mpv():
            logger.error("Could not start MPV, nothing can be shown")
            return False
        self.present(None)
        return True

    def present(self, instruction: Optional[RenderInstruction]) -> None:
        with self._lock:
            self.current = instruction
            if instruction is None:
                self._show_status(status_screen.create_idle_screen(*self.screen_size), "idle")
                return

            if instruction.kind == InstructionKind.EMBED and not is_youtube_url(instruction.url):
                self._open_browser(instruction.url)
                return

            self._close_browser()
            self._play_in_mpv(instruction)

    def show_unavailable(self, instruction: RenderInstruction, error: StreamcastException) -> None:
        with self._lock:
            logger.warning(f"Showing unavailable screen for {instruction.item_id}: {error.message}")
            self.current = None
            img = status_screen.create_unavailable_screen(*self.screen_size, instruction.title, error.message)
            self._show_status(img, "unavailable")

    def is_finished(self) -> bool:
        """Only non-looping items played by mpv can finish. Reported once per item."""
        with self._lock:
            if self.current is None or self.current.loop or not self._in_mpv or self._finish_reported:
                return False
            self._finish_reported = self.mpv.is_eof()
            return self._finish_reported

    def stop(self) -> None:
        with self._lock:
            self._close_browser()
            self.mpv.quit()
            self.current = None

    def _play_in_mpv(self, instruction: RenderInstruction) -> None:
        if not self.mpv.is_running() and not self.mpv.start_mpv(loop=instruction.loop, muted=instruction.muted):
            logger.error(f"MPV is not running, cannot play {instruction.item_id}")
            return
        self.mpv.set_loop(instruction.loop)
        self.mpv.set_muted(instruction.muted)
        if not self.mpv.load_file(instruction.url):
            logger.error(f"MPV refused {instruction.url}")
            return
        self.mpv.set_paused(not instruction.autoplay)
        self._in_mpv = True
        self._finish_reported = False

    def _show_status(self, img, name: str) -> None:
        self._close_browser()
        self._in_mpv = False
        path = status_screen.save_status_screen(img, f"streamcast_{name}", self.status_dir)
        if path is None:
            self.mpv.stop_playback()
            return
        self.mpv.set_loop(True)
        self.mpv.load_file(str(path))

    def _open_browser(self, url: str) -> None:
        self._close_browser()
        self._in_mpv = False
        self.mpv.stop_playback()
        try:
            logger.info(f"Opening embed page {url}")
            self.browser_process = subprocess.Popen(
                self.browser_command + [url],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True
            )
        except OSError as e:
            logger.error(f"Failed to start browser: {e}")
            self.browser_process = None

    def _close_browser(self) -> None:
        if self.browser_process is None:
            return
        try:
            self.browser_process.terminate()
            self.browser_process.wait(timeout=BROWSER_STOP_TIMEOUT)
        except subprocess.TimeoutExpired:
            self.browser_process.kill()
            self.browser_process.wait()
        self.browser_process = None


def create_renderer(settings):
    if settings.renderer == "log":
        return LoggingRenderer()
    return KioskRenderer(
        MpvIpcClient(settings.mpv_socket_path),
        settings.browser_command,
        status_dir=Path(settings.data_dir) / "status",
    )
