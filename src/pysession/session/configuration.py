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
"""Session configuration value object."""

from __future__ import annotations

import base64
import binascii
import dataclasses
import os
import re
import tempfile
from dataclasses import dataclass, field
from typing import Any

from pysession.core.config import Config
from pysession.kernel.exceptions import SessionConfigurationException
from pysession.session.identifier import DEFAULT_ID_LENGTH

SESSION_NAME_DEFAULT = "PYSESSID"
TIMEOUT_KEY_DEFAULT = "__PYSESSION_TIMEOUT__"

SAME_SITE_LAX = "Lax"
SAME_SITE_STRICT = "Strict"

LIFETIME_FLASH = 300  # 5 minutes
LIFETIME_SHORT = 600  # 10 minutes
LIFETIME_NORMAL = 900  # 15 minutes
LIFETIME_DEFAULT = 1440  # 24 minutes
LIFETIME_EXTENDED = 3600  # 1 hour

_NAME_RE = re.compile(r"[a-zA-Z0-9._-]+")
_AES_KEY_SIZES = (16, 24, 32)

# Config keys (under ``pysession.session``) mapped to Configuration fields.
_OPTION_KEYS = {
    "name": "name",
    "save-path": "save_path",
    "lifetime": "lifetime",
    "timeout-key": "timeout_key",
    "cookie-path": "cookie_path",
    "cookie-domain": "cookie_domain",
    "cookie-secure": "cookie_secure",
    "cookie-http-only": "cookie_http_only",
    "cookie-same-site": "cookie_same_site",
    "encryption-key": "encryption_key",
    "id-length": "id_length",
    "gc-probability": "gc_probability",
}


@dataclass(frozen=True)
class Configuration:
    """Immutable session settings shared by a manager and its handler.

    Every field is validated on construction; :meth:`with_options` returns a
    validated copy. Invalid values raise
    :class:`~pysession.kernel.exceptions.SessionConfigurationException`.

    ``encryption_key`` accepts raw AES key bytes or their base64 text form.
    """

    name: str = SESSION_NAME_DEFAULT
    save_path: str = field(default_factory=tempfile.gettempdir)
    lifetime: int = LIFETIME_DEFAULT
    timeout_key: str = TIMEOUT_KEY_DEFAULT
    cookie_path: str = "/"
    cookie_domain: str = ""
    cookie_secure: bool = False
    cookie_http_only: bool = True
    cookie_same_site: str = SAME_SITE_LAX
    encryption_key: bytes | None = field(default=None, repr=False)
    id_length: int = DEFAULT_ID_LENGTH
    gc_probability: float = 0.01

    def __post_init__(self) -> None:
        if not self.name.strip() or not _NAME_RE.fullmatch(self.name):
            raise SessionConfigurationException(
                "Session name must be a non empty valid string",
                code="SESSION_CONFIG",
                context={"name": self.name},
            )

        if not self.save_path.strip():
            raise SessionConfigurationException("Session save path must be a non empty string", code="SESSION_CONFIG")
        save_path = self.save_path.strip()
        stripped = save_path.rstrip(os.sep)
        object.__setattr__(self, "save_path", stripped or save_path)

        if isinstance(self.lifetime, bool) or not isinstance(self.lifetime, int) or self.lifetime < 1:
            raise SessionConfigurationException(
                "Session lifetime must be a positive integer",
                code="SESSION_CONFIG",
                context={"lifetime": self.lifetime},
            )

        if not self.timeout_key.strip():
            raise SessionConfigurationException("Session timeout key must be a non empty string", code="SESSION_CONFIG")

        if self.cookie_same_site not in (SAME_SITE_LAX, SAME_SITE_STRICT):
            raise SessionConfigurationException(
                f'"{self.cookie_same_site}" is not a valid cookie SameSite restriction value',
                code="SESSION_CONFIG",
            )

        if isinstance(self.id_length, bool) or not isinstance(self.id_length, int) or self.id_length < 1:
            raise SessionConfigurationException(
                "Session identifier length must be a positive integer",
                code="SESSION_CONFIG",
                context={"id_length": self.id_length},
            )

        if not 0.0 <= self.gc_probability <= 1.0:
            raise SessionConfigurationException(
                "Garbage collection probability must be between 0 and 1",
                code="SESSION_CONFIG",
                context={"gc_probability": self.gc_probability},
            )

        if self.encryption_key is not None:
            object.__setattr__(self, "encryption_key", _coerce_key(self.encryption_key))

    def with_options(self, **options: Any) -> Configuration:
        """Return a copy with *options* replaced, validated like the original."""
        return dataclasses.replace(self, **options)

    @classmethod
    def from_config(cls, config: Config, prefix: str = "pysession.session") -> Configuration:
        """Build a Configuration from a :class:`Config` section.

        Each option is independently overridable; unset options keep their
        defaults. String values coming from environment variables are coerced
        to the field type.
        """
        options: dict[str, Any] = {}
        for key, attr in _OPTION_KEYS.items():
            value = config.get(f"{prefix}.{key}")
            if value is None:
                continue
            options[attr] = _coerce_option(attr, value)
        return cls(**options)


def _coerce_key(key: bytes | str) -> bytes:
    if isinstance(key, str):
        try:
            key = base64.b64decode(key, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SessionConfigurationException(
                "Session encryption key must be valid base64 text", code="SESSION_CONFIG"
            ) from exc

    if len(key) not in _AES_KEY_SIZES:
        raise SessionConfigurationException(
            f"Session encryption key must be 16, 24 or 32 bytes, got {len(key)}",
            code="SESSION_CONFIG",
        )
    return bytes(key)


def _coerce_option(attr: str, value: Any) -> Any:
    if attr in ("lifetime", "id_length"):
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise SessionConfigurationException(
                f"Session option '{attr}' must be an integer, got {value!r}", code="SESSION_CONFIG"
            ) from exc
    if attr == "gc_probability":
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise SessionConfigurationException(
                f"Session option '{attr}' must be a number, got {value!r}", code="SESSION_CONFIG"
            ) from exc
    if attr in ("cookie_secure", "cookie_http_only"):
        if isinstance(value, str):
            return value.lower() in ("true", "1", "yes")
        return bool(value)
    if attr == "encryption_key":
        return value
    return str(value)
