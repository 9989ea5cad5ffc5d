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
"""Tests for SessionManager — lifecycle transitions, regeneration and timeout policy."""

from __future__ import annotations

import pytest

from pysession.kernel.exceptions import SessionLifecycleException, SessionValueException
from pysession.session.adapters.file import FileSessionHandler
from pysession.session.adapters.memory import InMemorySessionHandler
from pysession.session.codec import SessionCodec
from pysession.session.configuration import Configuration
from pysession.session.events import (
    SessionDestroyed,
    SessionEnded,
    SessionEvent,
    SessionEventBus,
    SessionRegenerated,
    SessionStarted,
    SessionTimedOut,
)
from pysession.session.identifier import generate_session_id
from pysession.session.manager import SessionManager

NOW = 1_700_000_000.0
KEY = bytes(range(32))


def _config(**options) -> Configuration:
    options.setdefault("name", "SESS")
    options.setdefault("lifetime", 900)
    options.setdefault("gc_probability", 0.0)
    return Configuration(**options)


def _manager(handler=None, configuration=None, **kwargs) -> SessionManager:
    kwargs.setdefault("clock", lambda: NOW)
    return SessionManager(configuration or _config(), handler if handler is not None else InMemorySessionHandler(), **kwargs)


async def _store(handler, configuration, session_id, record):
    handler.set_configuration(configuration)
    await handler.open(configuration.save_path, configuration.name)
    await handler.write(session_id, SessionCodec(configuration.encryption_key).encode(record))


class SpyHandler(InMemorySessionHandler):
    def __init__(self) -> None:
        super().__init__()
        self.calls: list[str] = []

    async def open(self, save_path: str, name: str) -> bool:
        self.calls.append("open")
        return await super().open(save_path, name)

    async def close(self) -> bool:
        self.calls.append("close")
        return await super().close()

    async def garbage_collect(self, max_lifetime: int) -> bool:
        self.calls.append(f"gc:{max_lifetime}")
        return await super().garbage_collect(max_lifetime)


class TestStart:
    @pytest.mark.asyncio
    async def test_fresh_session(self):
        manager = _manager()
        session = await manager.start()

        assert manager.is_started
        assert len(manager.id) == 80
        assert session.keys() == []
        assert manager.record[manager.configuration.timeout_key] == int(NOW) + 900

    @pytest.mark.asyncio
    async def test_resumed_session(self):
        handler = InMemorySessionHandler()
        configuration = _config()
        session_id = generate_session_id()
        await _store(handler, configuration, session_id, {"user": "joe"})

        manager = _manager(handler, configuration)
        manager.set_id(session_id)
        session = await manager.start()

        assert manager.id == session_id
        assert session.get("user") == "joe"

    @pytest.mark.asyncio
    async def test_start_twice_is_rejected(self):
        manager = _manager()
        await manager.start()
        with pytest.raises(SessionLifecycleException, match="already been started"):
            await manager.start()

    @pytest.mark.asyncio
    async def test_start_after_headers_sent_is_rejected(self):
        manager = _manager()
        with pytest.raises(SessionLifecycleException, match="headers"):
            await manager.start(headers_sent=True)
        assert not manager.is_started

    @pytest.mark.asyncio
    async def test_opens_handler(self):
        handler = SpyHandler()
        await _manager(handler).start()
        assert handler.calls[0] == "open"

    @pytest.mark.asyncio
    async def test_garbage_collection_by_probability(self):
        handler = SpyHandler()
        await _manager(handler, _config(gc_probability=0.5), gc_random=lambda: 0.1).start()
        assert "gc:900" in handler.calls

        handler = SpyHandler()
        await _manager(handler, _config(gc_probability=0.5), gc_random=lambda: 0.9).start()
        assert not any(c.startswith("gc") for c in handler.calls)

    @pytest.mark.asyncio
    async def test_start_requires_configured_handler_directory(self, tmp_path):
        handler = FileSessionHandler()
        manager = _manager(handler, _config(save_path=str(tmp_path)))
        await manager.start()
        assert (tmp_path / "SESS" / f"sess_{manager.id}").is_file()


class TestSetId:
    def test_strips_whitespace(self):
        manager = _manager()
        manager.set_id("  abc  ")
        assert manager.id == "abc"

    @pytest.mark.asyncio
    async def test_rejected_while_active(self):
        manager = _manager()
        await manager.start()
        with pytest.raises(SessionLifecycleException, match="cannot be manually altered"):
            manager.set_id("x" * 80)


class TestRegeneration:
    def test_should_regenerate_predicate(self):
        manager = _manager()
        assert manager.should_regenerate() is False
        manager.set_id("short")
        assert manager.should_regenerate() is True
        manager.set_id("x" * 80)
        assert manager.should_regenerate() is False

    @pytest.mark.asyncio
    async def test_wrong_length_identifier_is_regenerated_keeping_data(self):
        handler = InMemorySessionHandler()
        configuration = _config()
        await _store(handler, configuration, "short-id", {"user": "joe"})

        manager = _manager(handler, configuration)
        manager.set_id("short-id")
        session = await manager.start()

        assert manager.id != "short-id"
        assert len(manager.id) == 80
        assert session.get("user") == "joe"
        assert "short-id" not in handler

    @pytest.mark.asyncio
    async def test_invalid_characters_are_never_trusted(self):
        handler = InMemorySessionHandler()
        configuration = _config()
        await _store(handler, configuration, "../../etc/passwd", {"user": "root"})

        manager = _manager(handler, configuration)
        manager.set_id("../../etc/passwd")
        session = await manager.start()

        assert len(manager.id) == 80
        assert session.get("user") is None

    @pytest.mark.asyncio
    async def test_explicit_regenerate_keeps_data(self):
        manager = _manager()
        session = await manager.start()
        session.set("user", "joe")
        old_id = manager.id

        await manager.regenerate_id()

        assert manager.id != old_id
        assert session.get("user") == "joe"

    @pytest.mark.asyncio
    async def test_regenerate_requires_active_session(self):
        with pytest.raises(SessionLifecycleException):
            await _manager().regenerate_id()


class TestTimeout:
    @pytest.mark.asyncio
    async def test_expired_session_is_reset(self):
        handler = InMemorySessionHandler()
        configuration = _config()
        session_id = generate_session_id()
        await _store(
            handler, configuration, session_id, {"user": "joe", configuration.timeout_key: int(NOW) - 1}
        )

        manager = _manager(handler, configuration)
        manager.set_id(session_id)
        session = await manager.start()

        assert manager.id != session_id
        assert session.get("user") is None
        assert session.get(configuration.timeout_key) > NOW
        assert session_id not in handler

    @pytest.mark.asyncio
    async def test_valid_session_extends_sliding_window(self):
        handler = InMemorySessionHandler()
        configuration = _config()
        session_id = generate_session_id()
        await _store(
            handler, configuration, session_id, {"user": "joe", configuration.timeout_key: int(NOW) + 10}
        )

        manager = _manager(handler, configuration)
        manager.set_id(session_id)
        session = await manager.start()

        assert manager.id == session_id
        assert session.get("user") == "joe"
        assert session.get(configuration.timeout_key) == int(NOW) + 900
        assert manager.expires_at == int(NOW) + 900

    @pytest.mark.asyncio
    async def test_non_numeric_timeout_is_restamped(self):
        handler = InMemorySessionHandler()
        configuration = _config()
        session_id = generate_session_id()
        await _store(handler, configuration, session_id, {configuration.timeout_key: "soon"})

        manager = _manager(handler, configuration)
        manager.set_id(session_id)
        await manager.start()

        assert manager.id == session_id
        assert manager.expires_at == int(NOW) + 900


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_discards_data_and_identifier(self):
        handler = InMemorySessionHandler()
        manager = _manager(handler)
        session = await manager.start()
        session.set("user", "joe")
        await handler.write(manager.id, b"{}")
        old_id = manager.id

        await manager.reset()

        assert manager.is_started
        assert manager.id != old_id
        assert session.get("user") is None
        assert old_id not in handler

    @pytest.mark.asyncio
    async def test_reset_requires_active_session(self):
        with pytest.raises(SessionLifecycleException, match="not started"):
            await _manager().reset()


class TestEnd:
    @pytest.mark.asyncio
    async def test_end_persists_and_clears_state(self):
        handler = SpyHandler()
        configuration = _config()
        manager = _manager(handler, configuration)
        session = await manager.start()
        session.set("user", "joe")
        session_id = manager.id

        await manager.end()

        assert not manager.is_started
        assert manager.id == ""
        assert handler.calls[-1] == "close"
        assert SessionCodec().decode(await handler.read(session_id))["user"] == "joe"

    @pytest.mark.asyncio
    async def test_end_with_record_override(self):
        handler = InMemorySessionHandler()
        manager = _manager(handler)
        session = await manager.start()
        session.set("user", "joe")
        session_id = manager.id

        await manager.end({"user": "ann"})

        assert SessionCodec().decode(await handler.read(session_id)) == {"user": "ann"}

    @pytest.mark.asyncio
    async def test_end_while_idle_is_rejected(self):
        with pytest.raises(SessionLifecycleException, match="Cannot end a not started session"):
            await _manager().end()

    @pytest.mark.asyncio
    async def test_manager_can_start_again_after_end(self):
        manager = _manager()
        await manager.start()
        await manager.end()
        await manager.start()
        assert manager.is_started

    @pytest.mark.asyncio
    async def test_end_rejects_record_mutated_past_validation(self):
        handler = SpyHandler()
        manager = _manager(handler)
        await manager.start()
        manager.record["items"] = [1, object()]

        with pytest.raises(SessionValueException, match="scalars"):
            await manager.end()

        assert manager.is_started
        assert "close" not in handler.calls

    @pytest.mark.asyncio
    @pytest.mark.parametrize("record", [{"conn": object()}, {1: "one"}, ["user"]])
    async def test_end_rejects_invalid_override_record(self, record):
        handler = InMemorySessionHandler()
        manager = _manager(handler)
        await manager.start()
        session_id = manager.id

        with pytest.raises(SessionValueException):
            await manager.end(record)

        assert manager.is_started
        assert session_id not in handler

    @pytest.mark.asyncio
    async def test_end_records_last_ended_identifier_and_expiry(self):
        manager = _manager()
        assert manager.last_ended is None
        await manager.start()
        session_id = manager.id

        await manager.end()

        assert manager.last_ended == (session_id, int(NOW) + 900)

    @pytest.mark.asyncio
    async def test_string_keyed_values_survive_a_round_trip(self):
        handler = InMemorySessionHandler()
        configuration = _config()
        manager = _manager(handler, configuration)
        session = await manager.start()
        session.set("1", "one").set("nested", {"a": [1, 2.5, True]})
        session_id = manager.id
        await manager.end()

        manager = _manager(handler, configuration)
        manager.set_id(session_id)
        session = await manager.start()

        assert session.get("1") == "one"
        assert session.get("nested") == {"a": [1, 2.5, True]}


class TestDestroy:
    @pytest.mark.asyncio
    async def test_destroy_removes_record(self):
        handler = InMemorySessionHandler()
        manager = _manager(handler)
        await manager.start()
        session_id = manager.id
        await handler.write(session_id, b"{}")

        await manager.destroy()

        assert manager.is_destroyed
        assert not manager.is_started
        assert session_id not in handler

    @pytest.mark.asyncio
    async def test_destroyed_session_cannot_restart(self):
        manager = _manager()
        await manager.start()
        await manager.destroy()
        with pytest.raises(SessionLifecycleException, match="destroyed"):
            await manager.start()

    @pytest.mark.asyncio
    async def test_destroy_while_idle_is_rejected(self):
        with pytest.raises(SessionLifecycleException):
            await _manager().destroy()


class TestEncryptedStorage:
    @pytest.mark.asyncio
    async def test_round_trip_through_file_handler(self, tmp_path):
        configuration = _config(save_path=str(tmp_path), encryption_key=KEY)
        manager = _manager(FileSessionHandler(), configuration)
        session = await manager.start()
        session.set("user", "joe")
        session_id = manager.id
        await manager.end()

        raw = (tmp_path / "SESS" / f"sess_{session_id}").read_bytes()
        assert b"joe" not in raw

        manager = _manager(FileSessionHandler(), configuration)
        manager.set_id(session_id)
        session = await manager.start()
        assert session.get("user") == "joe"

    @pytest.mark.asyncio
    async def test_tampered_ciphertext_starts_fresh(self, tmp_path):
        configuration = _config(save_path=str(tmp_path), encryption_key=KEY)
        manager = _manager(FileSessionHandler(), configuration)
        session = await manager.start()
        session.set("user", "joe")
        session_id = manager.id
        await manager.end()

        session_file = tmp_path / "SESS" / f"sess_{session_id}"
        raw = bytearray(session_file.read_bytes())
        raw[20] ^= 0x01
        session_file.write_bytes(bytes(raw))

        manager = _manager(FileSessionHandler(), configuration)
        manager.set_id(session_id)
        session = await manager.start()
        assert session.get("user") is None
        assert session.keys() == []


class TestEvents:
    @pytest.mark.asyncio
    async def test_lifecycle_events_are_published(self):
        bus = SessionEventBus()
        received: list[SessionEvent] = []

        async def listener(event: SessionEvent) -> None:
            received.append(event)

        bus.subscribe(SessionEvent, listener)
        manager = _manager(events=bus)
        manager.set_id("short")
        await manager.start()
        regenerated_id = manager.id
        await manager.end()

        assert [type(e) for e in received] == [SessionStarted, SessionRegenerated, SessionEnded]
        assert received[0].session_id == "short"
        assert received[1] == SessionRegenerated(regenerated_id, previous_id="short")

    @pytest.mark.asyncio
    async def test_timeout_and_destroy_events(self):
        handler = InMemorySessionHandler()
        configuration = _config()
        session_id = generate_session_id()
        await _store(handler, configuration, session_id, {configuration.timeout_key: 1})

        bus = SessionEventBus()
        received: list[SessionEvent] = []

        async def listener(event: SessionEvent) -> None:
            received.append(event)

        bus.subscribe(SessionTimedOut, listener)
        bus.subscribe(SessionDestroyed, listener)

        manager = _manager(handler, configuration, events=bus)
        manager.set_id(session_id)
        await manager.start()
        new_id = manager.id
        await manager.destroy()

        assert received == [SessionTimedOut(new_id, previous_id=session_id), SessionDestroyed(new_id)]
