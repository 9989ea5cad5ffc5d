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
"""Session identifier generation and validation."""

from __future__ import annotations

import base64
import re
import secrets
from collections.abc import Callable

DEFAULT_ID_LENGTH = 80

_DISALLOWED_RE = re.compile(r"[^A-Za-z0-9-]+")
_ALLOWED_RE = re.compile(r"[A-Za-z0-9-]+")

RandomSource = Callable[[int], bytes]


def generate_session_id(
    length: int = DEFAULT_ID_LENGTH,
    random_bytes: RandomSource = secrets.token_bytes,
) -> str:
    """Generate a cryptographically strong session identifier.

    Draws *length* random bytes, base64-encodes them and keeps only
    ``[A-Za-z0-9-]``. Base64 of *n* bytes yields about ``4n/3`` characters,
    so one draw almost always suffices; otherwise more bytes are drawn until
    the identifier is long enough.

    Errors raised by *random_bytes* propagate unchanged.
    """
    if length < 1:
        raise ValueError(f"Session identifier length must be positive, got {length}")

    session_id = ""
    while len(session_id) < length:
        encoded = base64.b64encode(random_bytes(length)).decode("ascii")
        session_id += _DISALLOWED_RE.sub("", encoded)

    return session_id[:length]


def is_valid_session_id(value: str, length: int | None = None) -> bool:
    """Return ``True`` if *value* uses only the identifier alphabet.

    When *length* is given the identifier must also match it exactly.
    """
    if not value or not _ALLOWED_RE.fullmatch(value):
        return False
    return length is None or len(value) == length
