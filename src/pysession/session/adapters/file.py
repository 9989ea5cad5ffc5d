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
"""Filesystem session handler with advisory file locking."""

from __future__ import annotations

import asyncio
import fcntl
import os
import time
from pathlib import Path

import structlog

from pysession.kernel.exceptions import SessionLifecycleException, SessionStorageException
from pysession.session.adapters.base import BaseSessionHandler
from pysession.session.configuration import SESSION_NAME_DEFAULT
from pysession.session.identifier import is_valid_session_id
from pysession.session.ports.outbound import EMPTY_PAYLOAD

logger = structlog.get_logger("pysession.session")

_DEFAULT_FILE_PREFIX = "sess_"
_DIRECTORY_MODE = 0o700
_FILE_MODE = 0o600


class FileSessionHandler(BaseSessionHandler):
    """Stores each session in ``<save_path>[/<name>]/<prefix><session_id>``.

    Reads hold a shared ``flock`` and writes an exclusive one, each only for
    the duration of the I/O. Writers truncate after acquiring the lock, so a
    reader never observes a partially written payload. Blocking file I/O runs
    in a worker thread.
    """

    def __init__(self, file_prefix: str = _DEFAULT_FILE_PREFIX) -> None:
        super().__init__()
        if not file_prefix:
            raise ValueError("Session file prefix must be a non empty string")
        self._file_prefix = file_prefix
        self._save_path: Path | None = None

    @property
    def file_prefix(self) -> str:
        return self._file_prefix

    @property
    def save_path(self) -> Path | None:
        """Directory resolved by :meth:`open`, or ``None`` before opening."""
        return self._save_path

    async def open(self, save_path: str, name: str) -> bool:
        """Resolve and create the session directory.

        The configured name becomes a sub-directory of the configured save
        path, unless it is the default name or already the last path segment.

        Raises:
            SessionConfigurationException: No Configuration attached.
            SessionStorageException: The directory cannot be created.
        """
        configuration = self.configuration
        directory = self.resolve_directory(configuration.save_path, configuration.name)
        await asyncio.to_thread(_create_directory, directory)
        self._save_path = directory
        return True

    @staticmethod
    def resolve_directory(save_path: str, name: str) -> Path:
        directory = Path(save_path)
        if name != SESSION_NAME_DEFAULT and directory.name != name:
            directory = directory / name
        return directory

    async def close(self) -> bool:
        return True

    async def read(self, session_id: str) -> bytes:
        """Return the stored payload, creating an empty session file if missing."""
        path = self._session_file(session_id)
        return await asyncio.to_thread(_read_locked, path)

    async def write(self, session_id: str, payload: bytes) -> bool:
        path = self._session_file(session_id)
        await asyncio.to_thread(_write_locked, path, payload)
        return True

    async def destroy(self, session_id: str) -> bool:
        """Remove the session file; a missing file is not an error."""
        path = self._session_file(session_id)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as exc:
            raise _storage_error("remove session file", path, exc) from exc
        return True

    async def garbage_collect(self, max_lifetime: int) -> bool:
        """Delete prefix-matching session files older than the configured lifetime."""
        directory = self._require_open()
        removed = await asyncio.to_thread(
            _sweep_directory, directory, self._file_prefix, self.configuration.lifetime
        )
        if removed:
            logger.debug("session_files_collected", directory=str(directory), removed=removed)
        return True

    def _require_open(self) -> Path:
        if self._save_path is None:
            raise SessionLifecycleException(
                f"{type(self).__name__} must be opened before use", code="SESSION_LIFECYCLE"
            )
        return self._save_path

    def _session_file(self, session_id: str) -> Path:
        directory = self._require_open()
        if not is_valid_session_id(session_id):
            raise SessionStorageException(
                "Refusing to map an invalid session identifier to a file",
                code="SESSION_STORAGE",
                context={"directory": str(directory)},
            )
        return directory / f"{self._file_prefix}{session_id}"


def _storage_error(action: str, path: Path, exc: OSError) -> SessionStorageException:
    return SessionStorageException(
        f'Failed to {action} "{path}": {exc.strerror or exc}',
        code="SESSION_STORAGE",
        context={"path": str(path)},
    )


def _create_directory(directory: Path) -> None:
    try:
        directory.mkdir(mode=_DIRECTORY_MODE, parents=True, exist_ok=True)
    except OSError as exc:
        raise SessionStorageException(
            f'Failed to create session save path "{directory}", directory might be write protected',
            code="SESSION_STORAGE",
            context={"path": str(directory)},
        ) from exc

    if not os.access(directory, os.W_OK | os.X_OK):
        raise SessionStorageException(
            f'Session save path "{directory}" is not writable',
            code="SESSION_STORAGE",
            context={"path": str(directory)},
        )


def _read_locked(path: Path) -> bytes:
    try:
        fd = os.open(path, os.O_RDONLY)
    except FileNotFoundError:
        if _create_empty(path):
            return EMPTY_PAYLOAD
        # Another request created it first; read what it wrote.
        return _read_locked(path)
    except OSError as exc:
        raise _storage_error("open session file", path, exc) from exc

    try:
        fcntl.flock(fd, fcntl.LOCK_SH)
        try:
            chunks: list[bytes] = []
            while chunk := os.read(fd, 65536):
                chunks.append(chunk)
            return b"".join(chunks)
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
    except OSError as exc:
        raise _storage_error("read session file", path, exc) from exc
    finally:
        os.close(fd)


def _create_empty(path: Path) -> bool:
    """Create an empty session file; ``False`` if it already exists."""
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, _FILE_MODE)
    except FileExistsError:
        return False
    except OSError as exc:
        raise _storage_error("create session file", path, exc) from exc
    os.close(fd)
    return True


def _write_locked(path: Path, payload: bytes) -> None:
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT, _FILE_MODE)
    except OSError as exc:
        raise _storage_error("open session file", path, exc) from exc

    try:
        fcntl.flock(fd, fcntl.LOCK_EX)
        try:
            os.ftruncate(fd, 0)
            view = memoryview(payload)
            while view:
                written = os.write(fd, view)
                view = view[written:]
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
    except OSError as exc:
        raise _storage_error("write session file", path, exc) from exc
    finally:
        os.close(fd)


def _sweep_directory(directory: Path, prefix: str, lifetime: int) -> int:
    threshold = time.time() - lifetime
    removed = 0
    try:
        entries = list(os.scandir(directory))
    except OSError as exc:
        raise _storage_error("scan session directory", directory, exc) from exc

    for entry in entries:
        if not entry.name.startswith(prefix) or not entry.is_file(follow_symlinks=False):
            continue
        try:
            if entry.stat(follow_symlinks=False).st_mtime < threshold:
                os.unlink(entry.path)
                removed += 1
        except FileNotFoundError:
            continue
        except OSError as exc:
            raise _storage_error("remove expired session file", Path(entry.path), exc) from exc
    return removed
