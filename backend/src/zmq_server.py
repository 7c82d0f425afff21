import base64
import json
import logging
import time
import uuid

import sentry_sdk
import zmq

from effects import registry
from effects.sort.config import SortConfigError
from engine.preview import PREVIEW_FORMATS, encode_preview
from engine.sorter import SortEngine
from image.reader import ImageDecodeError, load_image
from security import validate_dimensions, validate_upload

logger = logging.getLogger(__name__)

# Poll timeout when no sort is running; while one is, the loop polls
# without blocking and runs one chunk per iteration.
IDLE_POLL_MS = 500


class ZMQServer:
    def __init__(self):
        self.context = zmq.Context()
        self.socket = self.context.socket(zmq.REP)
        self.socket.setsockopt(zmq.MAXMSGSIZE, 1_048_576)  # 1 MB limit
        self.port = self.socket.bind_to_random_port("tcp://127.0.0.1")
        # Dedicated ping socket — answered even between sort chunks
        self.ping_socket = self.context.socket(zmq.REP)
        self.ping_socket.setsockopt(zmq.MAXMSGSIZE, 4096)  # 4 KB limit (pings only)
        self.ping_port = self.ping_socket.bind_to_random_port("tcp://127.0.0.1")
        # Auth token — prevents unauthorized ZMQ access from other local processes
        self.token = str(uuid.uuid4())
        self.start_time = time.time()
        self.running = False
        self.engine = SortEngine()
        self.last_chunk_ms = 0.0

    def reset_state(self):
        """Drop the loaded image and any run without closing sockets/context.

        Used by session-scoped test fixtures to reset between tests
        while keeping the server running.
        """
        self.engine.close()
        self.engine = SortEngine()
        self.last_chunk_ms = 0.0

    def _validate_token(self, message: dict) -> str | None:
        """Validate auth token. Returns error message or None if valid."""
        msg_token = message.get("_token")
        if msg_token != self.token:
            return "invalid or missing auth token"
        return None

    def _make_ping_response(self, msg_id: str | None) -> dict:
        return {
            "id": msg_id,
            "status": "alive",
            "uptime_s": round(time.time() - self.start_time, 1),
            "last_chunk_ms": self.last_chunk_ms,
            "sorting": self.engine.busy,
        }

    def handle_message(self, message: dict) -> dict:
        cmd = message.get("cmd")
        msg_id = message.get("id")

        # Auth token required on all commands
        token_err = self._validate_token(message)
        if token_err:
            return {"id": msg_id, "ok": False, "error": token_err}

        if cmd == "ping":
            return self._make_ping_response(msg_id)
        elif cmd == "shutdown":
            self.running = False
            return {"id": msg_id, "ok": True}
        elif cmd == "load_image":
            return self._handle_load_image(message, msg_id)
        elif cmd == "rotate":
            return self._handle_rotate(msg_id)
        elif cmd == "sort_start":
            return self._handle_sort_start(message, msg_id)
        elif cmd == "sort_status":
            return {"id": msg_id, "ok": True, **self.engine.get_status()}
        elif cmd == "sort_frame":
            return self._handle_sort_frame(message, msg_id)
        elif cmd == "list_effects":
            return {"id": msg_id, "ok": True, "effects": registry.list_all()}
        else:
            return {"id": msg_id, "ok": False, "error": f"unknown: {cmd}"}

    def _handle_load_image(self, message: dict, msg_id: str | None) -> dict:
        path = message.get("path")
        if not path:
            return {"id": msg_id, "ok": False, "error": "missing path"}

        # SEC-5: Validate upload
        errors = validate_upload(path)
        if errors:
            return {"id": msg_id, "ok": False, "error": "; ".join(errors)}

        try:
            frame = load_image(path)
        except ImageDecodeError as e:
            # Engine keeps whatever image it had before
            return {"id": msg_id, "ok": False, "error": str(e)}

        height, width = frame.shape[:2]
        # SEC-6: Validate decoded size
        errors = validate_dimensions(width, height)
        if errors:
            return {"id": msg_id, "ok": False, "error": "; ".join(errors)}

        try:
            self.engine.load(frame)
        except Exception as e:
            sentry_sdk.capture_exception(e)
            logger.error("Load image error: %s", type(e).__name__)
            return {"id": msg_id, "ok": False, "error": "Internal processing error"}
        return {"id": msg_id, "ok": True, "width": width, "height": height}

    def _handle_rotate(self, msg_id: str | None) -> dict:
        if not self.engine.rotate():
            return {"id": msg_id, "ok": False, "error": "no image loaded"}
        height, width = self.engine.source.shape[:2]
        return {"id": msg_id, "ok": True, "width": width, "height": height}

    def _handle_sort_start(self, message: dict, msg_id: str | None) -> dict:
        params = message.get("params", {})
        if not isinstance(params, dict):
            return {"id": msg_id, "ok": False, "error": "params must be an object"}
        try:
            run = self.engine.start(params)
        except SortConfigError as e:
            return {"id": msg_id, "ok": False, "error": str(e)}
        except Exception as e:
            sentry_sdk.capture_exception(e)
            logger.error("Sort start error: %s", type(e).__name__)
            return {"id": msg_id, "ok": False, "error": "Internal processing error"}

        if run is None:
            return {"id": msg_id, "ok": True, "started": False}
        return {
            "id": msg_id,
            "ok": True,
            "started": True,
            "generation": run.generation,
            "total_lines": run.total_lines,
        }

    def _handle_sort_frame(self, message: dict, msg_id: str | None) -> dict:
        fmt = str(message.get("format", "jpeg")).lower()
        if fmt not in PREVIEW_FORMATS:
            return {"id": msg_id, "ok": False, "error": f"unsupported format: {fmt}"}

        frame = self.engine.working
        if frame is None:
            frame = self.engine.source
        if frame is None:
            return {"id": msg_id, "ok": False, "error": "no image loaded"}

        try:
            data = encode_preview(frame, fmt)
        except Exception as e:
            sentry_sdk.capture_exception(e)
            logger.error("Sort frame error: %s", type(e).__name__)
            return {"id": msg_id, "ok": False, "error": "Internal processing error"}

        height, width = frame.shape[:2]
        return {
            "id": msg_id,
            "ok": True,
            "format": fmt,
            "frame_data": base64.b64encode(data).decode("ascii"),
            "width": width,
            "height": height,
            "progress": round(self.engine.progress, 4),
            "complete": self.engine.run is not None and self.engine.run.complete,
        }

    def _advance_sort(self):
        """Run one chunk of the active sort, if any."""
        t0 = time.time()
        try:
            self.engine.step()
        except Exception:
            # Already captured and logged by the engine; the run is in ERROR.
            pass
        self.last_chunk_ms = round((time.time() - t0) * 1000, 2)

    def run(self):
        self.running = True
        poller = zmq.Poller()
        poller.register(self.socket, zmq.POLLIN)
        poller.register(self.ping_socket, zmq.POLLIN)
        while self.running:
            timeout = 0 if self.engine.busy else IDLE_POLL_MS
            events = dict(poller.poll(timeout=timeout))

            # Handle ping socket first (lightweight, never blocked)
            if self.ping_socket in events:
                try:
                    raw = self.ping_socket.recv()
                    message = json.loads(raw)
                    msg_id = message.get("id")
                    token_err = self._validate_token(message)
                    if token_err:
                        self.ping_socket.send_json(
                            {"id": msg_id, "ok": False, "error": token_err}
                        )
                    else:
                        self.ping_socket.send_json(self._make_ping_response(msg_id))
                except json.JSONDecodeError:
                    self.ping_socket.send_json(
                        {"ok": False, "error": "Invalid message format"}
                    )
                except zmq.ZMQError:
                    logger.error("ZMQ error on ping socket")
                    break  # socket state is unrecoverable

            # Handle main command socket
            if self.socket in events:
                try:
                    raw = self.socket.recv()
                    message = json.loads(raw)
                except json.JSONDecodeError:
                    # MUST send reply before next recv (REP protocol)
                    self.socket.send_json(
                        {"ok": False, "error": "Invalid message format"}
                    )
                    continue
                except zmq.ZMQError:
                    logger.error("ZMQ error on main socket")
                    break

                try:
                    response = self.handle_message(message)
                except Exception as e:
                    sentry_sdk.capture_exception(e)
                    logger.error("Unhandled handler error: %s", type(e).__name__)
                    response = {"ok": False, "error": "Internal processing error"}

                self.socket.send_json(response)

            if self.engine.busy:
                self._advance_sort()
        self.close()

    def close(self):
        self.engine.close()
        self.ping_socket.close()
        self.socket.close()
        self.context.term()
