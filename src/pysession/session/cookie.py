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
"""Set-Cookie header values for the session cookie."""

from __future__ import annotations

from email.utils import formatdate
from urllib.parse import quote

from pysession.session.configuration import Configuration

_EPOCH = "Thu, 01 Jan 1970 00:00:00 GMT"


def build_session_cookie(configuration: Configuration, session_id: str, expires_at: int) -> str:
    """Return the ``Set-Cookie`` value carrying *session_id*.

    ``expires`` is formatted as an RFC 1123 GMT date; ``max-age`` is the
    configured lifetime.
    """
    parts = [
        f"{configuration.name}={quote(session_id, safe='')}",
        f"expires={formatdate(expires_at, usegmt=True)}",
        f"max-age={configuration.lifetime}",
    ]
    parts.extend(_attributes(configuration))
    return "; ".join(parts)


def build_expired_cookie(configuration: Configuration) -> str:
    """Return a ``Set-Cookie`` value instructing the client to drop the cookie."""
    parts = [f"{configuration.name}=", f"expires={_EPOCH}", "max-age=0"]
    parts.extend(_attributes(configuration))
    return "; ".join(parts)


def _attributes(configuration: Configuration) -> list[str]:
    attributes: list[str] = []
    if configuration.cookie_path:
        attributes.append(f"path={configuration.cookie_path}")
    if configuration.cookie_domain:
        attributes.append(f"domain={configuration.cookie_domain}")
    if configuration.cookie_secure:
        attributes.append("secure")
    if configuration.cookie_http_only:
        attributes.append("httponly")
    if configuration.cookie_same_site:
        attributes.append(f"SameSite={configuration.cookie_same_site}")
    return attributes
