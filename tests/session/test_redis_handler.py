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
"""Tests for RedisSessionHandler using a FakeRedis stub."""

from __future__ import annotations

import pytest

from pysession.kernel.exceptions import SessionConfigurationException
from pysession.session.adapters.redis import RedisSessionHandler
from pysession.session.configuration import Configuration
from pysession.session.ports.outbound import EMPTY_PAYLOAD, SessionHandler


class FakeRedis:
    """Minimal in-memory stub matching the redis.asyncio.Redis interface."""

    def __init__(self) -> None:
        self._store: dict[str, bytes] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str) -> bytes | None:
        return self._store.get(key)

    async def set(self, key: str, value: bytes, ex: int | None = None) -> None:
        self._store[key] = value
        if ex is not None:
            self.ttls[key] = ex

    async def expire(self, key: str, seconds: int) -> bool:
        if key not in self._store:
            return False
        self.ttls[key] = seconds
        return True

    async def delete(self, *keys: str) -> int:
        count = 0
        for k in keys:
            if k in self._store:
                del self._store[k]
                self.ttls.pop(k, None)
                count += 1
        return count


def _handler(redis: FakeRedis, lifetime: int = 900) -> RedisSessionHandler:
    handler = RedisSessionHandler(redis)
    handler.set_configuration(Configuration(lifetime=lifetime))
    return handler


class TestRedisSessionHandler:
    def test_protocol_compliance(self):
        assert isinstance(RedisSessionHandler(FakeRedis()), SessionHandler)

    @pytest.mark.asyncio
    async def test_open_requires_configuration(self):
        with pytest.raises(SessionConfigurationException):
            await RedisSessionHandler(FakeRedis()).open("", "")

    @pytest.mark.asyncio
    async def test_read_missing_returns_empty_payload(self):
        handler = _handler(FakeRedis())
        assert await handler.read("abc") == EMPTY_PAYLOAD

    @pytest.mark.asyncio
    async def test_write_sets_namespaced_key_with_ttl(self):
        redis = FakeRedis()
        handler = _handler(redis, lifetime=900)
        await handler.write("abc", b"payload")
        assert redis._store == {"pysession:session:abc": b"payload"}
        assert redis.ttls["pysession:session:abc"] == 900

    @pytest.mark.asyncio
    async def test_every_write_refreshes_ttl(self):
        redis = FakeRedis()
        handler = _handler(redis, lifetime=300)
        await handler.write("abc", b"one")
        redis.ttls["pysession:session:abc"] = 5
        await handler.write("abc", b"two")
        assert redis.ttls["pysession:session:abc"] == 300

    @pytest.mark.asyncio
    async def test_read_refreshes_ttl(self):
        redis = FakeRedis()
        handler = _handler(redis, lifetime=300)
        await handler.write("abc", b"payload")
        redis.ttls["pysession:session:abc"] = 5
        assert await handler.read("abc") == b"payload"
        assert redis.ttls["pysession:session:abc"] == 300

    @pytest.mark.asyncio
    async def test_destroy_is_idempotent(self):
        redis = FakeRedis()
        handler = _handler(redis)
        await handler.write("abc", b"payload")
        assert await handler.destroy("abc") is True
        assert await handler.destroy("abc") is True
        assert redis._store == {}

    @pytest.mark.asyncio
    async def test_garbage_collect_is_noop(self):
        redis = FakeRedis()
        handler = _handler(redis)
        await handler.write("abc", b"payload")
        assert await handler.garbage_collect(0) is True
        assert await handler.read("abc") == b"payload"

    @pytest.mark.asyncio
    async def test_custom_key_prefix(self):
        redis = FakeRedis()
        handler = RedisSessionHandler(redis, key_prefix="app:")
        handler.set_configuration(Configuration())
        await handler.write("abc", b"payload")
        assert "app:abc" in redis._store
