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
"""In-memory session handler."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from pysession.session.adapters.base import BaseSessionHandler
from pysession.session.ports.outbound import EMPTY_PAYLOAD


class InMemorySessionHandler(BaseSessionHandler):
    """In-memory session handler guarded by an ``asyncio.Lock``.

    Suitable for development, testing, and single-process applications.
    Each entry remembers when it was last written so that
    :meth:`garbage_collect` can sweep entries older than the lifetime.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        super().__init__()
        self._clock = clock
        self._store: dict[str, tuple[bytes, float]] = {}
        self._lock = asyncio.Lock()

    async def open(self, save_path: str, name: str) -> bool:
        self.ensure_configured()
        return True

    async def close(self) -> bool:
        return True

    async def read(self, session_id: str) -> bytes:
        """Return the stored payload, or ``EMPTY_PAYLOAD`` if none exists."""
        async with self._lock:
            entry = self._store.get(session_id)
            return entry[0] if entry is not None else EMPTY_PAYLOAD

    async def write(self, session_id: str, payload: bytes) -> bool:
        async with self._lock:
            self._store[session_id] = (payload, self._clock())
        return True

    async def destroy(self, session_id: str) -> bool:
        async with self._lock:
            self._store.pop(session_id, None)
        return True

    async def garbage_collect(self, max_lifetime: int) -> bool:
        """Drop entries not written within the configured lifetime."""
        threshold = self._clock() - self.configuration.lifetime
        async with self._lock:
            expired = [sid for sid, (_, written_at) in self._store.items() if written_at < threshold]
            for sid in expired:
                del self._store[sid]
        return True

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._store

    def __len__(self) -> int:
        return len(self._store)
