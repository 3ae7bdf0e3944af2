"""
Flask application for the signaling hub.

Sets up the WebSocket upgrade endpoint (Flask-Sock) that hands every
connection to the `SignalHub`, and serves the static front-end files from a
directory. The Werkzeug server runs each connection on its own thread, which
is the worker model the hub expects.
"""
import argparse
import functools
import logging
import os

from flask import Flask, abort, request, send_from_directory
from flask_sock import Sock

from .hub import DEFAULT_ID_BYTES, SignalHub, new_client_id

logger = logging.getLogger(__name__)

APP_ROOT = os.path.dirname(os.path.abspath(__file__))
DEFAULT_STATIC_DIR = os.path.join(APP_ROOT, "front")

DEFAULTS = {
    "STATIC_DIR": DEFAULT_STATIC_DIR,
    "WS_PATH": "/ws",
    "CLIENT_ID_BYTES": DEFAULT_ID_BYTES,
    "SOCK_SERVER_OPTIONS": {},
}


def create_app(config=None):
    """
    Builds the Flask app.

    Configuration is read from `DEFAULTS`, then from `SIGNAL_HUB_*`
    environment variables, then from `config`.

    Args:
        config: Optional mapping of config overrides.

    Returns:
        The Flask app. The hub instance is stored in
        `app.extensions["signal_hub"]`.
    """
    app = Flask(__name__, static_folder=None)
    app.config.from_mapping(DEFAULTS)
    app.config.from_prefixed_env("SIGNAL_HUB")
    if config:
        app.config.update(config)

    hub = SignalHub(id_factory=functools.partial(new_client_id, int(app.config["CLIENT_ID_BYTES"])))
    app.extensions["signal_hub"] = hub
    sock = Sock(app)

    # --- WebSocket Route ---
    @sock.route(app.config["WS_PATH"])
    def signal_socket(ws):
        """Runs the hub protocol for one client until its connection fails."""
        hub.serve(ws, remote_addr=request.remote_addr)

    # --- Static files ---
    @app.route("/")
    def index():
        return static_file("index.html")

    @app.route("/<path:filename>")
    def static_file(filename):
        # send_from_directory refuses paths that escape STATIC_DIR
        static_dir = app.config["STATIC_DIR"]
        if not os.path.isdir(static_dir):
            abort(404)
        return send_from_directory(static_dir, filename)

    return app


def main(argv=None):
    parser = argparse.ArgumentParser(description="WebRTC signaling hub")
    parser.add_argument("--host", default="0.0.0.0", help="Interface to bind")
    parser.add_argument("--port", type=int, default=8080, help="Port to run the server on")
    parser.add_argument("--static-dir", help="Directory served on / (default: bundled front-end)")
    parser.add_argument("--debug", action="store_true", help="Enable Flask debug mode")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, ...)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = {}
    if args.static_dir:
        config["STATIC_DIR"] = os.path.abspath(args.static_dir)
    app = create_app(config)

    logger.info("Server started on port %d", args.port)
    logger.info("Serving static files from %s", app.config["STATIC_DIR"])
    # The reloader would fork a second process with its own in-memory registry.
    app.run(host=args.host, port=args.port, debug=args.debug, use_reloader=False, threaded=True)


if __name__ == "__main__":
    main()
