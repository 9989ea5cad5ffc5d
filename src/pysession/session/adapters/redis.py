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
"""Redis-backed session handler."""

from __future__ import annotations

from typing import Any

from pysession.session.adapters.base import BaseSessionHandler
from pysession.session.ports.outbound import EMPTY_PAYLOAD

_KEY_PREFIX = "pysession:session:"


class RedisSessionHandler(BaseSessionHandler):
    """Session handler backed by ``redis.asyncio``.

    Keys are prefixed with ``pysession:session:`` for namespace isolation.
    Every write and every read of an existing entry resets its TTL to the
    configured lifetime, so expiry is native and :meth:`garbage_collect`
    has nothing to do.
    """

    def __init__(self, client: Any, key_prefix: str = _KEY_PREFIX) -> None:
        super().__init__()
        self._client = client
        self._key_prefix = key_prefix

    def _key(self, session_id: str) -> str:
        return f"{self._key_prefix}{session_id}"

    async def open(self, save_path: str, name: str) -> bool:
        self.ensure_configured()
        return True

    async def close(self) -> bool:
        return True

    async def read(self, session_id: str) -> bytes:
        """Return the stored payload and refresh its TTL."""
        key = self._key(session_id)
        raw = await self._client.get(key)
        if raw is None:
            return EMPTY_PAYLOAD
        await self._client.expire(key, self.configuration.lifetime)
        return raw.encode("utf-8") if isinstance(raw, str) else bytes(raw)

    async def write(self, session_id: str, payload: bytes) -> bool:
        """Store the payload with a TTL of the configured lifetime."""
        await self._client.set(self._key(session_id), payload, ex=self.configuration.lifetime)
        return True

    async def destroy(self, session_id: str) -> bool:
        await self._client.delete(self._key(session_id))
        return True

    async def garbage_collect(self, max_lifetime: int) -> bool:
        return True
