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
"""Session lifecycle events and an in-process event bus."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog

from pysession.logging.settings import mask_session_id

logger = structlog.get_logger("pysession.session")


@dataclass(frozen=True)
class SessionEvent:
    """Base class for all session lifecycle events."""

    session_id: str


@dataclass(frozen=True)
class SessionStarted(SessionEvent):
    """Published once a session is active and its record loaded."""


@dataclass(frozen=True)
class SessionRegenerated(SessionEvent):
    """Published when the identifier was replaced and the data kept."""

    previous_id: str


@dataclass(frozen=True)
class SessionTimedOut(SessionEvent):
    """Published when an expired session was discarded; ``session_id`` is the new one."""

    previous_id: str


@dataclass(frozen=True)
class SessionReset(SessionEvent):
    """Published when the session was restarted empty under a new identifier."""

    previous_id: str


@dataclass(frozen=True)
class SessionEnded(SessionEvent):
    """Published after the record was persisted and the session closed."""


@dataclass(frozen=True)
class SessionDestroyed(SessionEvent):
    """Published after the backend record was removed."""


SessionListener = Callable[[SessionEvent], Awaitable[None]]


class SessionEventBus:
    """Simple in-process event bus for session lifecycle notifications.

    Listeners run in subscription order. A failing listener propagates its
    exception to the session operation that published the event.
    """

    def __init__(self) -> None:
        self._listeners: dict[type[SessionEvent], list[SessionListener]] = {}

    def subscribe(self, event_type: type[SessionEvent], listener: SessionListener) -> None:
        """Register a listener for a specific event type (and its subclasses)."""
        self._listeners.setdefault(event_type, []).append(listener)

    async def publish(self, event: SessionEvent) -> None:
        """Publish an event to all matching listeners."""
        logger.debug("session_event", event=type(event).__name__, session_id=mask_session_id(event.session_id))
        for event_type, listeners in self._listeners.items():
            if isinstance(event, event_type):
                for listener in listeners:
                    await listener(event)
