"""
Daxue Reader - HTTP API
Flask app serving the reader's static files, the analytics endpoints
and the interpretation proxy.
"""

import json
import logging
import os
import threading
from datetime import datetime
from typing import Any, Optional, Tuple

import requests
from flask import Flask, Response, jsonify, render_template, request, send_file
from werkzeug.security import safe_join

import config
from analytics.backends import JsonFileBackend
from analytics.store import AnalyticsStore
from config import ReaderConfig
from core.logger import log_error, log_info, log_warning
from llm.gemini_client import GeminiProxy

CORS_PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _read_json_body() -> Any:
    """Parse the raw request body as JSON; raises ValueError when it is not."""
    return json.loads(request.get_data(as_text=True))


def _not_found() -> Tuple[str, int, dict]:
    return "Not Found", 404, {"Content-Type": "text/plain"}


def zh_datetime(iso_value: str) -> str:
    """Render an ISO-8601 UTC timestamp in local time, zh-CN style."""
    try:
        dt = datetime.fromisoformat(iso_value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return str(iso_value)
    return dt.astimezone().strftime("%Y/%m/%d %H:%M:%S")


def create_app(
    reader_config: ReaderConfig,
    store: Optional[AnalyticsStore] = None,
    proxy: Optional[GeminiProxy] = None
) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        reader_config: Process configuration (credential, model, paths)
        store: Analytics store (defaults to the JSON file at analytics_path)
        proxy: Generation proxy (defaults to one built from reader_config)
    """
    app = Flask(__name__, static_folder=None)
    app.json.ensure_ascii = False
    app.jinja_env.filters["zh_datetime"] = zh_datetime

    if store is None:
        store = AnalyticsStore(JsonFileBackend(reader_config.analytics_path))
    if proxy is None:
        proxy = GeminiProxy.from_config(reader_config)

    static_dir = str(reader_config.static_dir)

    @app.before_request
    def cors_preflight():
        """Acknowledge every CORS preflight."""
        if request.method == "OPTIONS":
            return Response(status=200, headers=CORS_PREFLIGHT_HEADERS)
        return None

    @app.route("/api/analytics", defaults={"action": ""}, methods=["GET", "POST"])
    @app.route("/api/analytics/", defaults={"action": ""}, methods=["GET", "POST"])
    @app.route("/api/analytics/<path:action>", methods=["GET", "POST"])
    def analytics(action: str):
        """
        Analytics endpoints.

        POST pageview  {"userId": "...", "chapter": "..."}
        POST ai        {"userId": "...", "chapter": "..."}
        GET  summary   -> summary JSON
        GET  dashboard -> HTML
        """
        try:
            if request.method == "POST" and action in ("pageview", "ai"):
                data = _read_json_body()
                user_id = data.get("userId") if isinstance(data, dict) else None
                chapter = data.get("chapter") if isinstance(data, dict) else None

                if not isinstance(user_id, str) or not user_id:
                    log_warning(f"Analytics {action} without userId ignored")
                    return jsonify({"success": True})

                if action == "pageview":
                    result = store.record_page_view(user_id, chapter)
                else:
                    result = store.record_ai_usage(user_id, chapter)
                return jsonify(result)

            if request.method == "GET" and action == "summary":
                return jsonify(store.compute_summary())

            if request.method == "GET" and action == "dashboard":
                html = render_template("dashboard.html", summary=store.compute_summary(),
                                       project_name=config.PROJECT_NAME)
                return Response(html, status=200, content_type="text/html; charset=utf-8")

            return jsonify({"error": "Not found"}), 404

        except Exception as e:
            log_error(f"Analytics API error: {e}")
            return jsonify({"error": str(e)}), 500

    @app.route("/api/interpret", methods=["POST"])
    def interpret():
        """
        Relay a generateContent request upstream.

        Request body is passed through untouched:
        {"contents": [...], "generationConfig": {...}}
        """
        try:
            payload = _read_json_body()
            result = proxy.forward(payload)
            response = jsonify(result.body)
            response.status_code = result.status_code
            response.headers["Access-Control-Allow-Origin"] = "*"
            return response

        except ValueError as e:
            log_error(f"API proxy error: invalid request body: {e}")
            return jsonify({"error": str(e)}), 500
        except requests.RequestException as e:
            log_error(f"API proxy error: {e}")
            return jsonify({"error": str(e)}), 500

    @app.route("/", defaults={"filename": "index.html"}, methods=["GET"])
    @app.route("/<path:filename>", methods=["GET"])
    def static_files(filename: str):
        """Serve files from the static directory, never the secret or data files."""
        if any(name in request.path for name in config.PROTECTED_FILE_NAMES):
            return "Forbidden", 403, {"Content-Type": "text/plain"}

        full_path = safe_join(static_dir, filename)
        if full_path is None or not os.path.isfile(full_path):
            return _not_found()
        return send_file(full_path)

    @app.errorhandler(404)
    @app.errorhandler(405)
    def not_found(error):
        return _not_found()

    return app


class HTTPServer:
    """
    HTTP server manager.

    Runs Flask in a background thread.
    """

    def __init__(self, reader_config: ReaderConfig):
        self.reader_config = reader_config
        self.host = reader_config.host
        self.port = reader_config.port
        self._app: Optional[Flask] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the HTTP server in a background thread."""
        self._app = create_app(self.reader_config)

        self._thread = threading.Thread(
            target=self._run_server,
            daemon=True,
            name="HTTPServer"
        )
        self._thread.start()

        log_info(f"HTTP server started on http://{self.host}:{self.port}", prefix="🌐")

    def _run_server(self) -> None:
        """Run the Flask server."""
        # Suppress Flask's default request logging
        logging.getLogger("werkzeug").setLevel(logging.ERROR)

        self._app.run(
            host=self.host,
            port=self.port,
            debug=False,
            use_reloader=False,
            threaded=True
        )

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


# Global HTTP server instance
_http_server: Optional[HTTPServer] = None


def init_http_server(reader_config: ReaderConfig) -> HTTPServer:
    """Initialize the global HTTP server."""
    global _http_server
    _http_server = HTTPServer(reader_config)
    return _http_server
