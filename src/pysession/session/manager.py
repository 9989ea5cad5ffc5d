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
"""SessionManager — lifecycle state machine binding an identifier to a handler.

States::

    Idle --start()--> Active --end()/destroy()--> Idle

``regenerate_id()`` and ``reset()`` keep the manager Active while replacing
the identifier. A destroyed manager cannot be started again.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from typing import Any

import structlog

from pysession.kernel.exceptions import SessionLifecycleException
from pysession.logging.settings import mask_session_id
from pysession.session.codec import SessionCodec, SessionRecord
from pysession.session.configuration import Configuration
from pysession.session.events import (
    SessionDestroyed,
    SessionEnded,
    SessionEvent,
    SessionEventBus,
    SessionRegenerated,
    SessionReset,
    SessionStarted,
    SessionTimedOut,
)
from pysession.session.identifier import generate_session_id, is_valid_session_id
from pysession.session.ports.outbound import SessionHandler
from pysession.session.session import Session, ensure_record

logger = structlog.get_logger("pysession.session")


class SessionManager:
    """Owns one session's lifecycle for the duration of a single request.

    A manager is not safe to share across concurrently executing requests;
    create one per request. The handler, codec and event bus may be shared.

    Args:
        configuration: Settings shared with the handler.
        handler: Storage backend; receives *configuration* on construction.
        codec: Payload codec. Defaults to one using the configured
            encryption key.
        id_generator: ``length -> identifier`` callable.
        clock: Returns the current Unix time in seconds.
        gc_random: Returns a float in ``[0, 1)`` compared against
            ``configuration.gc_probability``.
        events: Optional bus receiving lifecycle events.
    """

    def __init__(
        self,
        configuration: Configuration,
        handler: SessionHandler,
        *,
        codec: SessionCodec | None = None,
        id_generator: Callable[[int], str] = generate_session_id,
        clock: Callable[[], float] = time.time,
        gc_random: Callable[[], float] = random.random,
        events: SessionEventBus | None = None,
    ) -> None:
        self._configuration = configuration
        handler.set_configuration(configuration)
        self._handler = handler
        self._codec = codec if codec is not None else SessionCodec(configuration.encryption_key)
        self._id_generator = id_generator
        self._clock = clock
        self._gc_random = gc_random
        self._events = events

        self._session_id = ""
        self._record: SessionRecord | None = None
        self._started = False
        self._destroyed = False
        self._last_ended: tuple[str, int] | None = None
        self._session = Session(self)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def configuration(self) -> Configuration:
        return self._configuration

    @property
    def handler(self) -> SessionHandler:
        return self._handler

    @property
    def session(self) -> Session:
        return self._session

    @property
    def id(self) -> str:
        return self._session_id

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    @property
    def record(self) -> SessionRecord:
        """The active session record.

        Raises:
            SessionLifecycleException: If no session is active.
        """
        if not self._started or self._record is None:
            raise SessionLifecycleException("Session has not been started", code="SESSION_LIFECYCLE")
        return self._record

    @property
    def last_ended(self) -> tuple[str, int] | None:
        """Identifier and expiry timestamp of the most recently ended session."""
        return self._last_ended

    @property
    def expires_at(self) -> int:
        """Unix timestamp after which the session is no longer valid."""
        timeout = self.record.get(self._configuration.timeout_key)
        if isinstance(timeout, (int, float)) and not isinstance(timeout, bool):
            return int(timeout)
        return int(self._clock()) + self._configuration.lifetime

    def set_id(self, session_id: str) -> None:
        """Bind an identifier (typically from the request cookie) before start.

        Raises:
            SessionLifecycleException: If the session is already active.
        """
        if self._started:
            raise SessionLifecycleException(
                "Session identifier cannot be manually altered once session is started",
                code="SESSION_LIFECYCLE",
            )
        self._session_id = session_id.strip()

    def should_regenerate(self) -> bool:
        """Return ``True`` when the bound identifier has an unexpected length."""
        return bool(self._session_id) and len(self._session_id) != self._configuration.id_length

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def start(self, *, headers_sent: bool = False) -> Session:
        """Activate the session, loading its record from the handler.

        Identifiers of the wrong length are regenerated (keeping the data)
        and the timeout policy is applied before returning.

        Raises:
            SessionLifecycleException: Already started, previously destroyed,
                or response headers already sent.
        """
        if self._destroyed:
            raise SessionLifecycleException(
                "Cannot start a session that has been previously destroyed", code="SESSION_LIFECYCLE"
            )
        if self._started:
            raise SessionLifecycleException("Session has already been started", code="SESSION_LIFECYCLE")
        if headers_sent:
            raise SessionLifecycleException(
                "Session failed to start because response headers have already been sent",
                code="SESSION_LIFECYCLE",
            )

        await self._handler.open(self._configuration.save_path, self._configuration.name)

        if self._session_id and not is_valid_session_id(self._session_id):
            logger.warning("session_id_rejected", reason="invalid characters")
            self._session_id = ""

        if not self._session_id:
            self._session_id = self._new_id()

        await self._load()
        await self._maybe_collect_garbage()

        self._started = True
        await self._publish(SessionStarted(self._session_id))

        if self.should_regenerate():
            await self.regenerate_id()

        await self._manage_timeout()
        return self._session

    async def regenerate_id(self) -> None:
        """Move the active session's data to a fresh identifier."""
        self._require_started("regenerate id of")
        previous_id = self._session_id
        await self._handler.destroy(previous_id)
        self._session_id = self._new_id()
        logger.info(
            "session_regenerated",
            previous_id=mask_session_id(previous_id),
            session_id=mask_session_id(self._session_id),
        )
        await self._publish(SessionRegenerated(self._session_id, previous_id=previous_id))

    async def reset(self) -> None:
        """Discard the active session and continue with an empty one under a new identifier."""
        previous_id = await self._discard()
        await self._publish(SessionReset(self._session_id, previous_id=previous_id))

    async def end(self, record: SessionRecord | None = None) -> None:
        """Persist the record (or *record* when given) and close the session.

        Raises:
            SessionLifecycleException: If no session is active.
            SessionValueException: If the record holds a non-scalar value or
                a non-string key. Nothing is written and the session stays active.
        """
        self._require_started("end")
        data = self.record if record is None else record
        ensure_record(data)
        session_id, expires_at = self._session_id, self.expires_at

        await self._handler.write(session_id, self._codec.encode(data))
        await self._handler.close()

        self._clear()
        self._last_ended = (session_id, expires_at)
        await self._publish(SessionEnded(session_id))

    async def destroy(self) -> None:
        """Remove the backend record and close the session for good."""
        self._require_started("destroy")
        session_id = self._session_id

        await self._handler.destroy(session_id)
        await self._handler.close()

        self._clear()
        self._destroyed = True
        logger.info("session_destroyed", session_id=mask_session_id(session_id))
        await self._publish(SessionDestroyed(session_id))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _load(self) -> None:
        payload = await self._handler.read(self._session_id)
        self._record = self._codec.decode(payload)

    async def _discard(self) -> str:
        self._require_started("reset")
        previous_id = self._session_id
        await self._handler.destroy(previous_id)
        self._session_id = self._new_id()
        await self._load()
        return previous_id

    async def _manage_timeout(self) -> None:
        timeout_key = self._configuration.timeout_key
        timeout = self.record.get(timeout_key)
        now = self._clock()

        if _is_timestamp(timeout) and timeout < now:
            previous_id = await self._discard()
            logger.info(
                "session_timed_out",
                previous_id=mask_session_id(previous_id),
                session_id=mask_session_id(self._session_id),
            )
            await self._publish(SessionTimedOut(self._session_id, previous_id=previous_id))

        self.record[timeout_key] = int(now) + self._configuration.lifetime

    async def _maybe_collect_garbage(self) -> None:
        probability = self._configuration.gc_probability
        if probability > 0 and self._gc_random() < probability:
            await self._handler.garbage_collect(self._configuration.lifetime)

    async def _publish(self, event: SessionEvent) -> None:
        if self._events is not None:
            await self._events.publish(event)

    def _new_id(self) -> str:
        return self._id_generator(self._configuration.id_length)

    def _require_started(self, action: str) -> None:
        if not self._started:
            raise SessionLifecycleException(f"Cannot {action} a not started session", code="SESSION_LIFECYCLE")

    def _clear(self) -> None:
        self._record = None
        self._session_id = ""
        self._started = False


def _is_timestamp(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
