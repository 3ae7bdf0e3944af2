import json
import queue
import threading

import pytest
from werkzeug.serving import make_server

from signal_hub.app import create_app
from signal_hub.hub import SignalHub


class FakeHandle:
    """In-memory stand-in for a flask-sock WebSocket."""

    def __init__(self, fail_send=False):
        self.sent = []
        self.inbox = queue.Queue()
        self.fail_send = fail_send
        self.close_count = 0

    def send(self, data):
        if self.fail_send:
            raise ConnectionResetError("broken pipe")
        self.sent.append(json.loads(data))

    def receive(self):
        item = self.inbox.get(timeout=5)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.close_count += 1

    # helpers for tests
    def push(self, frame):
        self.inbox.put(frame)

    def hang_up(self):
        self.inbox.put(None)

    def of_type(self, type_):
        return [m for m in self.sent if m["type"] == type_]


@pytest.fixture
def hub():
    return SignalHub()


@pytest.fixture
def make_handle():
    def factory(**kwargs):
        return FakeHandle(**kwargs)
    return factory


@pytest.fixture
def static_dir(tmp_path):
    (tmp_path / "index.html").write_text("<h1>hub</h1>")
    (tmp_path / "app.js").write_text("console.log('hub');")
    return tmp_path


@pytest.fixture
def app(static_dir):
    return create_app({"TESTING": True, "STATIC_DIR": str(static_dir)})


@pytest.fixture
def live_server(app):
    """Runs the app on an ephemeral port and yields its ws:// URL."""
    server = make_server("127.0.0.1", 0, app, threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"ws://127.0.0.1:{server.server_port}{app.config['WS_PATH']}"
    finally:
        server.shutdown()
        thread.join(timeout=5)
