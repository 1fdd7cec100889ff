import json

from streamcast_player.utils.mpv_ipc import MpvIpcClient, build_mpv_args


class FakeConn:
    def __init__(self, chunks):
        self.chunks = list(chunks)
        self.sent = []

    def sendall(self, data):
        self.sent.append(json.loads(data))

    def recv(self, size):
        return self.chunks.pop(0) if self.chunks else b''

    def close(self):
        pass


def client_with(chunks):
    client = MpvIpcClient("/tmp/test-mpv-socket")
    client.conn = FakeConn(chunks)
    return client


class TestMpvIpc:

    def test_args(self):
        args = build_mpv_args("/tmp/sock", loop=False, muted=True)

        assert args[0] == "mpv"
        assert "--loop-file=no" in args
        assert "--mute=yes" in args
        assert "--input-ipc-server=/tmp/sock" in args

    def test_reply_is_found_among_events(self):
        client = client_with([
            b'{"event":"playback-restart"}\n{"request',
            b'_id":1,"error":"success","data":true}\n',
        ])

        assert client.is_eof() is True
        assert client.conn.sent == [{"command": ["get_property", "eof-reached"], "request_id": 1}]

    def test_command_without_data_succeeds(self):
        client = client_with([b'{"request_id":1,"error":"success"}\n'])

        assert client.load_file("https://cdn.example.com/a.mp4") is True
        assert client.conn.sent[0]["command"] == ["loadfile", "https://cdn.example.com/a.mp4", "replace"]

    def test_error_reply(self):
        client = client_with([b'{"request_id":1,"error":"property unavailable"}\n'])

        assert client.get_property("eof-reached") is None

    def test_closed_socket(self):
        assert client_with([]).set_paused(True) is False
