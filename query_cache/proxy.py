"""HTTP proxy server for caching query engine results."""

import asyncio
import json
import logging
import os
import threading
from typing import Any, Dict, Optional

import requests
from flask import Flask, Response, jsonify, request

from .cache import Cache
from .retriever import retrieve

logger = logging.getLogger(__name__)

DEFAULT_TARGET_URL = "http://127.0.0.1:3000"


class UpstreamError(Exception):
    """The query engine answered with a non-success status."""

    def __init__(self, status_code: int, content: bytes, content_type: str):
        super().__init__(f"Upstream returned HTTP {status_code}")
        self.status_code = status_code
        self.content = content
        self.content_type = content_type


class CacheProxy:
    """
    HTTP proxy that caches query engine results.

    Sits between clients and the query engine. ``arrow`` and ``json``
    queries are answered from the cache when possible; ``exec`` queries
    always go upstream.
    """

    CONTENT_TYPES = {
        "arrow": "application/vnd.apache.arrow.stream",
        "json": "application/json",
    }
    COMMANDS = ("exec", "arrow", "json")

    def __init__(
        self,
        cache: Optional[Cache] = None,
        target_url: str = DEFAULT_TARGET_URL,
        persist: bool = False,
        timeout: float = 120,
    ):
        """
        Initialize the proxy.

        Args:
            cache: Cache instance. Creates default if None.
            target_url: Base URL of the query engine
            persist: Default for requests that don't say whether to cache
            timeout: Upstream request timeout in seconds
        """
        self.cache = cache if cache is not None else Cache()
        self.target_url = target_url.rstrip("/")
        self.persist = persist
        self.timeout = timeout

        # All cache access happens on one loop per process so the cache
        # lock is never shared between event loops. The loop thread starts
        # on first use, after any pre-fork by the WSGI server.
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._pid: Optional[int] = None
        self._loop_lock = threading.Lock()

        self.app = Flask(__name__)
        self._setup_routes()

    def _setup_routes(self):
        """Set up Flask routes."""

        @self.app.route("/", methods=["GET", "POST"])
        def query():
            return self._handle_query()

        @self.app.route("/cache/stats", methods=["GET"])
        def cache_stats():
            stats = self._run(self._locked(self.cache.stats))
            return jsonify(stats.to_dict())

        @self.app.route("/cache/clear", methods=["POST"])
        def cache_clear():
            self._run(self._locked(self.cache.clear))
            return jsonify({"status": "cleared"})

        @self.app.route("/health", methods=["GET"])
        def health():
            return jsonify({"status": "ok"})

    def _parse_query(self) -> Optional[Dict[str, Any]]:
        """Read the query from ``?query=`` or the JSON body."""
        raw = request.args.get("query")
        if raw is not None:
            try:
                data = json.loads(raw)
            except ValueError:
                return None
        else:
            data = request.get_json(silent=True)
        return data if isinstance(data, dict) else None

    def _handle_query(self) -> Response:
        """Handle a query request."""
        data = self._parse_query()
        if data is None:
            return jsonify({"error": "Expected a JSON object"}), 400

        command = data.get("type")
        sql = data.get("sql")
        if command not in self.COMMANDS:
            return jsonify({"error": f"Unknown query type: {command!r}"}), 400
        if not isinstance(sql, str):
            return jsonify({"error": "Missing sql"}), 400

        # Statements have side effects and no result worth caching
        if command == "exec":
            return self._forward_request(data)

        persist = data.get("persist", self.persist)
        if not isinstance(persist, bool):
            return jsonify({"error": f"persist must be a boolean, got {persist!r}"}), 400
        missed = []

        async def compute() -> bytes:
            missed.append(True)
            return await asyncio.to_thread(self._fetch, data)

        try:
            result = self._run(retrieve(self.cache, sql, command, persist, compute))
        except UpstreamError as e:
            logger.info("Upstream error for %s query: HTTP %s", command, e.status_code)
            return Response(
                e.content,
                status=e.status_code,
                headers={"Content-Type": e.content_type},
            )
        except requests.RequestException as e:
            logger.warning("Upstream request failed: %s", e)
            return jsonify({"error": str(e)}), 502

        response = Response(result, status=200, headers={"Content-Type": self.CONTENT_TYPES[command]})
        response.headers["X-Cache"] = "MISS" if missed else "HIT"
        return response

    def _fetch(self, data: dict) -> bytes:
        """Run a query upstream and return the raw result body."""
        resp = requests.post(self.target_url, json=data, timeout=self.timeout)
        if not resp.ok:
            raise UpstreamError(
                resp.status_code,
                resp.content,
                resp.headers.get("Content-Type", "application/json"),
            )
        return resp.content

    def _forward_request(self, data: dict) -> Response:
        """Forward request to the query engine without caching."""
        try:
            resp = requests.post(self.target_url, json=data, timeout=self.timeout)
            return Response(
                resp.content,
                status=resp.status_code,
                headers={"Content-Type": resp.headers.get("Content-Type", "application/json")},
            )
        except requests.RequestException as e:
            logger.warning("Upstream request failed: %s", e)
            return jsonify({"error": str(e)}), 502

    async def _locked(self, fn):
        async with self.cache.lock:
            return fn()

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        """Start the loop thread for this process if it isn't running."""
        with self._loop_lock:
            # A forked worker inherits the loop object but not its thread
            if self._loop is None or self._pid != os.getpid():
                self._loop = asyncio.new_event_loop()
                self._thread = threading.Thread(
                    target=self._loop.run_forever, name="query-cache-loop", daemon=True
                )
                self._thread.start()
                self._pid = os.getpid()
            return self._loop

    def _run(self, coro):
        """Run a coroutine on the proxy loop and wait for its result."""
        return asyncio.run_coroutine_threadsafe(coro, self._ensure_loop()).result()

    def close(self):
        """Stop the background event loop."""
        with self._loop_lock:
            if self._loop is None or self._pid != os.getpid():
                return
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join()
            self._loop.close()
            self._loop = None
            self._thread = None

    def run(self, host: str = "127.0.0.1", port: int = 8080, debug: bool = False):
        """Run the proxy server."""
        try:
            self.app.run(host=host, port=port, debug=debug, threaded=True)
        finally:
            self.close()


def create_app(
    max_entries: int = 1000,
    target_url: str = DEFAULT_TARGET_URL,
    persist: bool = False,
) -> Flask:
    """
    Create a Flask app for the cache proxy.

    Useful for running with gunicorn or other WSGI servers.
    """
    cache = Cache(max_entries=max_entries)
    proxy = CacheProxy(cache=cache, target_url=target_url, persist=persist)
    return proxy.app
