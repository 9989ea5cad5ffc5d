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
"""Null session handler — accepts every operation and stores nothing."""

from __future__ import annotations

from pysession.session.adapters.base import BaseSessionHandler
from pysession.session.ports.outbound import EMPTY_PAYLOAD


class NullSessionHandler(BaseSessionHandler):
    """Handler for stateless deployments and tests: every session starts empty."""

    async def open(self, save_path: str, name: str) -> bool:
        self.ensure_configured()
        return True

    async def close(self) -> bool:
        return True

    async def read(self, session_id: str) -> bytes:
        return EMPTY_PAYLOAD

    async def write(self, session_id: str, payload: bytes) -> bool:
        return True

    async def destroy(self, session_id: str) -> bool:
        return True

    async def garbage_collect(self, max_lifetime: int) -> bool:
        return True
