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
"""PySession Session — server-side session management with pluggable handlers.

Import concrete handler types from the adapter package::

    from pysession.session.adapters.file import FileSessionHandler
    from pysession.session.adapters.memory import InMemorySessionHandler
    from pysession.session.adapters.null import NullSessionHandler
    from pysession.session.adapters.redis import RedisSessionHandler
"""

from pysession.session.codec import SessionCodec
from pysession.session.configuration import Configuration
from pysession.session.events import SessionEventBus
from pysession.session.identifier import generate_session_id
from pysession.session.manager import SessionManager
from pysession.session.middleware import SESSION_STATE_KEY, SessionMiddleware, get_session
from pysession.session.ports.outbound import SessionHandler
from pysession.session.session import Session

__all__ = [
    "SESSION_STATE_KEY",
    "Configuration",
    "Session",
    "SessionCodec",
    "SessionEventBus",
    "SessionHandler",
    "SessionManager",
    "SessionMiddleware",
    "generate_session_id",
    "get_session",
]
