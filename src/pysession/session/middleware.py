# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""SessionMiddleware — pure ASGI middleware loading and persisting sessions."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from fnmatch import fnmatch
from pathlib import Path
from typing import Any

import structlog
from starlette.requests import HTTPConnection
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from pysession.logging.settings import session_log_context
from pysession.session.codec import SessionCodec
from pysession.session.configuration import Configuration
from pysession.session.cookie import build_expired_cookie, build_session_cookie
from pysession.session.events import SessionEventBus
from pysession.session.manager import SessionManager
from pysession.session.ports.outbound import SessionHandler
from pysession.session.session import Session

logger = structlog.get_logger("pysession.session")

SESSION_STATE_KEY = "session"


def get_session(request: HTTPConnection) -> Session:
    """Return the session attached to *request* by :class:`SessionMiddleware`.

    Raises:
        KeyError: If the middleware did not run for this request.
    """
    state: dict[str, Any] = request.scope.get("state", {})
    return state[SESSION_STATE_KEY]


class SessionMiddleware:
    """Manages server-side sessions via the configured cookie.

    For every HTTP request not matched by ``exclude_patterns`` it binds the
    identifier from the request cookie, starts the session, exposes it as
    ``request.state.session`` and runs the application with its response
    buffered. Once the application returns, the session is persisted and a
    ``Set-Cookie`` header is appended to the buffered response; a destroyed
    session gets an expiring cookie instead.

    A new :class:`SessionManager` is created per request; *handler*, *codec*
    and *events* are shared.
    """

    def __init__(
        self,
        app: ASGIApp,
        configuration: Configuration,
        handler: SessionHandler,
        *,
        codec: SessionCodec | None = None,
        events: SessionEventBus | None = None,
        exclude_patterns: Sequence[str] = (),
    ) -> None:
        self.app = app
        self._configuration = configuration
        self._handler = handler
        self._codec = codec if codec is not None else SessionCodec(configuration.encryption_key)
        self._events = events
        self._exclude_patterns = list(exclude_patterns)

    def should_not_filter(self, path: str) -> bool:
        """Return ``True`` if *path* matches one of the exclude patterns."""
        return any(fnmatch(path, p) for p in self._exclude_patterns)

    def create_manager(self) -> SessionManager:
        return SessionManager(self._configuration, self._handler, codec=self._codec, events=self._events)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or self.should_not_filter(scope.get("path", "")):
            await self.app(scope, receive, send)
            return

        manager = self.create_manager()
        cookie_value = HTTPConnection(scope).cookies.get(self._configuration.name)
        if cookie_value:
            manager.set_id(cookie_value)

        session = await manager.start()
        scope.setdefault("state", {})[SESSION_STATE_KEY] = session

        status_code = 200
        raw_headers: list[tuple[bytes, bytes]] = []
        body_parts: list[bytes] = []

        async def _intercept(message: Message) -> None:
            nonlocal status_code, raw_headers
            if message["type"] == "http.response.start":
                status_code = message["status"]
                raw_headers = list(message.get("headers", []))
            elif message["type"] == "http.response.body":
                body = message.get("body", b"")
                if body:
                    body_parts.append(body)
            elif message["type"] == "http.response.pathsend":
                # Replayed as a regular body once the cookie is appended.
                body_parts.append(await asyncio.to_thread(Path(message["path"]).read_bytes))

        with session_log_context(manager.id):
            try:
                await self.app(scope, receive, _intercept)
            except Exception:
                if manager.is_started:
                    await manager.end()
                raise

        cookie = await self._finish(manager)
        if cookie is not None:
            raw_headers.append((b"set-cookie", cookie.encode("latin-1")))

        await send({"type": "http.response.start", "status": status_code, "headers": raw_headers})
        await send({"type": "http.response.body", "body": b"".join(body_parts)})

    async def _finish(self, manager: SessionManager) -> str | None:
        """End the session and return the cookie to emit, if any."""
        if manager.is_started:
            await manager.end()

        if manager.is_destroyed:
            logger.debug("session_cookie_expired", name=self._configuration.name)
            return build_expired_cookie(self._configuration)

        # Also covers a session the application ended itself.
        if manager.last_ended is not None:
            session_id, expires_at = manager.last_ended
            return build_session_cookie(self._configuration, session_id, expires_at)

        return None
