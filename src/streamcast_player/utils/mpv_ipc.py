"""
Remote control for one long-lived mpv window over its JSON IPC socket.

The player keeps a single idle, fullscreen mpv open and swaps what it shows
through the Unix socket, so changing items never flashes the desktop. mpv
plays raw stream URLs, local blob files and (through its ytdl hook) YouTube
links; status screens are PNGs shown with an infinite image duration.
"""

import json
import logging
import os
import socket
import subprocess
import time
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_SOCKET_PATH = "/tmp/streamcast-mpv-socket"

SOCKET_WAIT_SECONDS = 5
SOCKET_TIMEOUT_SECONDS = 5.0
STOP_TIMEOUT_SECONDS = 3

# Reply to a command that succeeded without returning data
_NO_DATA = True


def build_mpv_args(socket_path: str, loop: bool = True, muted: bool = True) -> List[str]:
    return [
        'mpv',
        '--idle=yes',
        '--force-window=yes',
        '--fullscreen',
        '--no-terminal',
        '--no-osc',
        '--no-osd-bar',
        '--no-input-default-bindings',
        '--input-conf=/dev/null',
        '--keep-open=yes',  # eof-reached stays readable after the last frame
        '--ytdl=yes',
        '--image-display-duration=inf',
        f"--loop-file={'inf' if loop else 'no'}",
        f"--mute={'yes' if muted else 'no'}",
        f'--input-ipc-server={socket_path}',
    ]


class MpvIpcClient:

    def __init__(self, socket_path: str = DEFAULT_SOCKET_PATH):
        self.socket_path = socket_path
        self.process: Optional[subprocess.Popen] = None
        self.conn: Optional[socket.socket] = None
        self._last_request_id = 0

    # =========================================================================
    # Process
    # =========================================================================

    def start_mpv(self, loop: bool = True, muted: bool = True) -> bool:
        """Launch mpv and wait for its IPC socket. False if it never shows up."""
        self.stop_mpv()

        logger.info(f"Starting MPV with IPC socket at {self.socket_path}")
        try:
            self.process = subprocess.Popen(
                build_mpv_args(self.socket_path, loop=loop, muted=muted),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL
            )
        except OSError as e:
            logger.error(f"Failed to start MPV: {e}")
            return False

        deadline = time.monotonic() + SOCKET_WAIT_SECONDS
        while time.monotonic() < deadline:
            if os.path.exists(self.socket_path):
                # The socket file appears slightly before mpv accepts on it
                time.sleep(0.1)
                return True
            time.sleep(0.1)

        logger.error(f"MPV did not create {self.socket_path} within {SOCKET_WAIT_SECONDS}s")
        return False

    def is_running(self) -> bool:
        return self.process is not None and self.process.poll() is None

    def stop_mpv(self) -> None:
        self._disconnect()
        if self.process is not None:
            self.process.terminate()
            try:
                self.process.wait(timeout=STOP_TIMEOUT_SECONDS)
            except subprocess.TimeoutExpired:
                logger.warning("MPV did not exit, killing it")
                self.process.kill()
                self.process.wait()
            self.process = None
        self._unlink_socket()

    def quit(self) -> None:
        self._send_command(['quit'], wait_response=False)
        self.stop_mpv()

    def _unlink_socket(self) -> None:
        try:
            os.unlink(self.socket_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug(f"Could not remove MPV socket {self.socket_path}: {e}")

    # =========================================================================
    # Socket
    # =========================================================================

    def _disconnect(self) -> None:
        if self.conn is None:
            return
        try:
            self.conn.close()
        except OSError as e:
            logger.debug(f"Error closing MPV socket: {e}")
        self.conn = None

    def _ensure_connected(self) -> bool:
        if self.conn is not None:
            return True
        conn = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            conn.connect(self.socket_path)
        except OSError as e:
            logger.error(f"Failed to connect to MPV socket: {e}")
            conn.close()
            return False
        conn.settimeout(SOCKET_TIMEOUT_SECONDS)
        self.conn = conn
        return True

    def _read_reply(self, request_id: int) -> Optional[Any]:
        """Read lines until the reply to request_id; mpv interleaves events with replies."""
        pending = b''
        while True:
            chunk = self.conn.recv(4096)
            if not chunk:
                return None
            pending += chunk
            *lines, pending = pending.split(b'\n')
            for line in lines:
                try:
                    message = json.loads(line)
                except ValueError:
                    continue
                if message.get('request_id') != request_id:
                    continue
                if message.get('error') != 'success':
                    logger.debug(f"MPV request {request_id} failed: {message.get('error')}")
                    return None
                return message.get('data', _NO_DATA)

    def _send_command(self, command: list, wait_response: bool = True) -> Optional[Any]:
        """
        Send one IPC command.

        Returns:
            The reply's data (True for commands without data), or None on any
            failure or when wait_response is False.
        """
        if not self._ensure_connected():
            return None

        self._last_request_id += 1
        request_id = self._last_request_id
        payload = json.dumps({'command': command, 'request_id': request_id}) + '\n'
        try:
            self.conn.sendall(payload.encode('utf-8'))
            return self._read_reply(request_id) if wait_response else None
        except OSError as e:
            logger.error(f"MPV command {command[0]} failed: {e}")
            self._disconnect()
            return None

    # =========================================================================
    # Playback
    # =========================================================================

    def load_file(self, url: str) -> bool:
        """Replace whatever is showing with a path, file:// URL or network URL."""
        return self._send_command(['loadfile', url, 'replace']) is not None

    def stop_playback(self) -> bool:
        return self._send_command(['stop']) is not None

    def get_property(self, name: str) -> Optional[Any]:
        return self._send_command(['get_property', name])

    def set_property(self, name: str, value: Any) -> bool:
        return self._send_command(['set_property', name, value]) is not None

    def set_loop(self, loop: bool) -> bool:
        return self.set_property('loop-file', 'inf' if loop else 'no')

    def set_muted(self, muted: bool) -> bool:
        return self.set_property('mute', muted)

    def set_paused(self, paused: bool) -> bool:
        return self.set_property('pause', paused)

    def is_eof(self) -> bool:
        """True once a non-looping file has played to its end."""
        return self.get_property('eof-reached') is True
