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
"""Session — typed accessor over the manager's active record."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

from pysession.kernel.exceptions import SessionValueException

if TYPE_CHECKING:
    from pysession.session.manager import SessionManager

_SCALAR_TYPES = (bool, int, float, str)


def ensure_scalar(value: Any) -> None:
    """Reject values that cannot be stored durably in every backend.

    Allowed: ``bool``, ``int``, ``float``, ``str``, and lists or string-keyed
    dicts whose members are themselves allowed.

    Raises:
        SessionValueException: On the first disallowed value found.
    """
    if isinstance(value, _SCALAR_TYPES):
        return
    if isinstance(value, list):
        for item in value:
            ensure_scalar(item)
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise SessionValueException(
                    f"Session array keys must be strings, {type(key).__name__} given",
                    code="SESSION_VALUE",
                )
            ensure_scalar(item)
        return
    raise SessionValueException(
        f"Session values must be scalars, {type(value).__name__} given",
        code="SESSION_VALUE",
    )


def ensure_record(record: Any) -> None:
    """Validate a whole record before it is persisted.

    Raises:
        SessionValueException: If *record* is not a dict, or any key or value
            would not survive a round trip through the codec.
    """
    if not isinstance(record, dict):
        raise SessionValueException(
            f"Session record must be a dict, {type(record).__name__} given",
            code="SESSION_VALUE",
        )
    ensure_scalar(record)


class Session:
    """Accessor for the key/value record of the manager's active session.

    The record itself belongs to the :class:`SessionManager`; this object
    holds no state of its own, so it keeps working across identifier
    regeneration and reset. Every accessor raises
    :class:`~pysession.kernel.exceptions.SessionLifecycleException` once the
    session has ended.
    """

    def __init__(self, manager: SessionManager) -> None:
        self._manager = manager

    @property
    def manager(self) -> SessionManager:
        return self._manager

    @property
    def id(self) -> str:
        return self._manager.id

    @property
    def is_active(self) -> bool:
        return self._manager.is_started

    def has(self, key: str) -> bool:
        return key in self._manager.record

    def get(self, key: str, default: Any = None) -> Any:
        """Return a copy of the session value, or *default* if absent.

        Containers are copied so that changes reach the record only through
        :meth:`set`.
        """
        if key not in self._manager.record:
            return default
        return copy.deepcopy(self._manager.record[key])

    def set(self, key: str, value: Any) -> Session:
        """Set a session value after validating the key and value."""
        if not isinstance(key, str):
            raise SessionValueException(
                f"Session keys must be strings, {type(key).__name__} given",
                code="SESSION_VALUE",
            )
        ensure_scalar(value)
        self._manager.record[key] = copy.deepcopy(value)
        return self

    def remove(self, key: str) -> Session:
        """Remove a session value if it exists."""
        self._manager.record.pop(key, None)
        return self

    def clear(self) -> Session:
        """Remove every value except the timeout stamp."""
        record = self._manager.record
        timeout_key = self._manager.configuration.timeout_key
        timeout = record.get(timeout_key)
        record.clear()
        if timeout is not None:
            record[timeout_key] = timeout
        return self

    def keys(self) -> list[str]:
        """Return all keys, excluding the internal timeout stamp."""
        timeout_key = self._manager.configuration.timeout_key
        return [k for k in self._manager.record if k != timeout_key]

    def to_dict(self) -> dict[str, Any]:
        """Return a deep copy of the record."""
        return copy.deepcopy(self._manager.record)

    def __contains__(self, key: object) -> bool:
        return key in self._manager.record

    def __repr__(self) -> str:
        state = "active" if self.is_active else "idle"
        return f"<Session {state} id={self._manager.id[:8]!r}>"
