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
"""Session payload codec — JSON serialization with optional AES-GCM encryption.

Format (encrypted):
    nonce (12 bytes) || ciphertext || auth_tag (16 bytes)

Decoding never raises: empty, malformed or tampered payloads become an empty
record, since a brand-new session and a lost one look the same to callers.
"""

from __future__ import annotations

import json
import os
from typing import Any

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from pysession.kernel.exceptions import SessionPayloadCorruptedException

logger = structlog.get_logger("pysession.session")

SessionRecord = dict[str, Any]


class SessionCodec:
    """Encodes session records to storage bytes and back."""

    NONCE_SIZE = 12
    MIN_ENCRYPTED_SIZE = 12 + 16  # nonce + auth tag

    def __init__(self, encryption_key: bytes | None = None) -> None:
        self._aesgcm = AESGCM(encryption_key) if encryption_key else None

    @property
    def encrypted(self) -> bool:
        return self._aesgcm is not None

    def encode(self, record: SessionRecord) -> bytes:
        """Serialize *record*, encrypting it when a key is configured."""
        plaintext = json.dumps(record, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        return self.encrypt(plaintext)

    def decode(self, payload: bytes) -> SessionRecord:
        """Deserialize *payload* into a record, degrading to ``{}`` on corruption."""
        if not payload:
            return {}

        try:
            plaintext = self.decrypt(payload)
        except SessionPayloadCorruptedException as exc:
            logger.warning("session_payload_corrupted", reason=str(exc), size=len(payload))
            return {}

        try:
            record = json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            logger.warning("session_payload_malformed", size=len(payload))
            return {}

        if not isinstance(record, dict):
            logger.warning("session_payload_malformed", size=len(payload), type=type(record).__name__)
            return {}

        return record

    def encrypt(self, plaintext: bytes) -> bytes:
        """Encrypt *plaintext* with a random nonce; passthrough without a key."""
        if self._aesgcm is None:
            return plaintext
        nonce = os.urandom(self.NONCE_SIZE)
        return nonce + self._aesgcm.encrypt(nonce, plaintext, None)

    def decrypt(self, payload: bytes) -> bytes:
        """Authenticate and decrypt *payload*; passthrough without a key.

        Raises:
            SessionPayloadCorruptedException: The payload is truncated or its
                authentication tag does not match.
        """
        if self._aesgcm is None:
            return payload

        if len(payload) < self.MIN_ENCRYPTED_SIZE:
            raise SessionPayloadCorruptedException(
                f"Encrypted payload too short: {len(payload)} bytes",
                code="SESSION_PAYLOAD_CORRUPTED",
            )

        nonce, ciphertext = payload[: self.NONCE_SIZE], payload[self.NONCE_SIZE :]
        try:
            return self._aesgcm.decrypt(nonce, ciphertext, None)
        except InvalidTag as exc:
            raise SessionPayloadCorruptedException(
                "Encrypted payload failed authentication",
                code="SESSION_PAYLOAD_CORRUPTED",
            ) from exc
