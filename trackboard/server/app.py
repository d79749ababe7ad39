"""Tracker application surface with a minimal ASGI HTTP layer."""

from __future__ import annotations

import argparse
import json
import logging
from typing import Any

from trackboard.server.gateway import MutationGateway
from trackboard.server.records import RecordStore
from trackboard.server.sheets import TabularBackend, build_backend_from_settings
from trackboard.shared.settings import (
    StorageSettings,
    configure_logging,
    get_storage_settings,
)

logger = logging.getLogger(__name__)


class ServerApp:
    """Thin callable facade over the mutation gateway."""

    def __init__(
        self,
        backend: TabularBackend | None = None,
        settings: StorageSettings | None = None,
    ) -> None:
        self.settings = settings or StorageSettings.from_env({"TRACKBOARD_BACKEND": "memory"})
        self.backend = backend or build_backend_from_settings(self.settings)
        self.store = RecordStore(self.backend)
        self.store.ensure_schema(self.settings.seed)
        self.gateway = MutationGateway(
            self.backend,
            store=self.store,
            lock_timeout_ms=self.settings.lock_timeout_ms,
        )

    def dispatch(self, request: dict[str, Any]) -> dict[str, Any]:
        return self.gateway.dispatch(request)

    def execute(self, action: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        return self.gateway.execute(action, data)

    def load_initial_data(self) -> dict[str, Any]:
        return self.gateway.load_initial_data()


class ASGIServer:
    """Minimal ASGI adapter: one POST dispatch route plus read-only helpers."""

    def __init__(self, service: ServerApp | None = None) -> None:
        self.service = service or create_app_from_env()

    async def __call__(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope.get("type") != "http":
            await self._send_json(send, 500, {"error": "unsupported_scope"})
            return

        method = scope.get("method", "GET")
        path = scope.get("path", "")
        body = await self._read_body(receive)

        try:
            if method == "GET" and path == "/health":
                await self._send_json(send, 200, {"status": "ok"})
                return

            if method == "GET" and path == "/data":
                await self._send_json(
                    send,
                    200,
                    {"status": "success", "data": self.service.load_initial_data()},
                )
                return

            if method == "POST" and path == "/api":
                payload = self._parse_json(body)
                if payload is None:
                    await self._send_json(
                        send, 400, {"status": "error", "message": "invalid_json"}
                    )
                    return
                await self._send_json(send, 200, self.service.dispatch(payload))
                return

            await self._send_json(send, 404, {"error": "not_found"})
        except Exception as exc:  # pragma: no cover - defensive response mapping
            logger.exception("Unhandled error serving %s %s", method, path)
            await self._send_json(send, 500, {"status": "error", "message": str(exc)})

    async def _read_body(self, receive: Any) -> bytes:
        chunks: list[bytes] = []
        while True:
            message = await receive()
            if message["type"] != "http.request":
                continue
            chunks.append(message.get("body", b""))
            if not message.get("more_body", False):
                break
        return b"".join(chunks)

    def _parse_json(self, body: bytes) -> dict[str, Any] | None:
        if not body:
            return {}
        try:
            parsed = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return None
        if not isinstance(parsed, dict):
            return None
        return parsed

    async def _send_json(self, send: Any, status: int, payload: dict[str, Any]) -> None:
        body = json.dumps(payload).encode("utf-8")
        await send(
            {
                "type": "http.response.start",
                "status": status,
                "headers": [(b"content-type", b"application/json")],
            }
        )
        await send({"type": "http.response.body", "body": body})


def create_app(
    backend: TabularBackend | None = None, settings: StorageSettings | None = None
) -> ServerApp:
    return ServerApp(backend=backend, settings=settings)


def create_app_from_env(env: dict[str, str] | None = None) -> ServerApp:
    settings = get_storage_settings(env)
    configure_logging(settings.log_level)
    return ServerApp(settings=settings)


class _LazyASGIApp:
    """Defer opening the store until the first request reaches the server."""

    def __init__(self) -> None:
        self._server: ASGIServer | None = None

    async def __call__(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        if self._server is None:
            self._server = ASGIServer()
        await self._server(scope, receive, send)


app = _LazyASGIApp()


def main() -> int:
    parser = argparse.ArgumentParser(description="trackboard ASGI server entrypoint")
    parser.add_argument(
        "--print-startup",
        action="store_true",
        help="print the supported uvicorn startup command and exit",
    )
    args = parser.parse_args()

    if args.print_startup:
        print("uvicorn trackboard.server.app:app --host 127.0.0.1 --port 8000")
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
