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
"""Session handler protocol."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from pysession.session.configuration import Configuration

# Payload returned for sessions that have never been written.
EMPTY_PAYLOAD = b""


@runtime_checkable
class SessionHandler(Protocol):
    """Storage contract for session payloads keyed by session identifier.

    All session backends (in-memory, filesystem, Redis, null) implement this
    protocol. Payloads are opaque bytes produced by the session codec.
    """

    def set_configuration(self, configuration: Configuration) -> None: ...

    async def open(self, save_path: str, name: str) -> bool: ...

    async def close(self) -> bool: ...

    async def read(self, session_id: str) -> bytes: ...

    async def write(self, session_id: str, payload: bytes) -> bool: ...

    async def destroy(self, session_id: str) -> bool: ...

    async def garbage_collect(self, max_lifetime: int) -> bool: ...
