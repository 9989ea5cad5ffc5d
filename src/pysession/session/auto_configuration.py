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
"""Session subsystem auto-configuration from a :class:`Config`."""

from __future__ import annotations

import importlib
from typing import Any

import structlog

from pysession.core.config import Config
from pysession.kernel.exceptions import SessionConfigurationException
from pysession.logging.settings import configure_session_logging
from pysession.session.configuration import Configuration
from pysession.session.ports.outbound import SessionHandler

logger = structlog.get_logger("pysession.session")

_STORES = ("memory", "file", "redis", "null")


def is_available(module_name: str) -> bool:
    """Check if a Python package is importable."""
    try:
        importlib.import_module(module_name)
        return True
    except ImportError:
        return False


def create_session_handler(config: Config, *, redis_client: Any = None) -> SessionHandler:
    """Build the handler selected by ``pysession.session.store``.

    ``redis`` uses *redis_client* when given, otherwise a ``redis.asyncio``
    client for ``pysession.session.redis.url``; it falls back to the memory
    handler when the ``redis`` package is not installed.

    Raises:
        SessionConfigurationException: Unknown store type.
    """
    store_type = str(config.get("pysession.session.store", "memory")).lower()
    if store_type not in _STORES:
        raise SessionConfigurationException(
            f"Unknown session store '{store_type}', expected one of {', '.join(_STORES)}",
            code="SESSION_CONFIG",
        )

    if store_type == "redis":
        from pysession.session.adapters.redis import RedisSessionHandler

        if redis_client is not None:
            return RedisSessionHandler(client=redis_client)
        if is_available("redis.asyncio"):
            import redis.asyncio as aioredis

            url = str(config.get("pysession.session.redis.url", "redis://localhost:6379/0"))
            client = aioredis.from_url(url)  # type: ignore[no-untyped-call,unused-ignore]
            return RedisSessionHandler(client=client)
        logger.warning("session_store_unavailable", store="redis", fallback="memory")
        store_type = "memory"

    if store_type == "file":
        from pysession.session.adapters.file import FileSessionHandler

        prefix = str(config.get("pysession.session.file-prefix", "sess_"))
        return FileSessionHandler(file_prefix=prefix)

    if store_type == "null":
        from pysession.session.adapters.null import NullSessionHandler

        return NullSessionHandler()

    from pysession.session.adapters.memory import InMemorySessionHandler

    return InMemorySessionHandler()


def create_session_middleware_kwargs(config: Config, *, redis_client: Any = None) -> dict[str, Any]:
    """Return keyword arguments for ``Middleware(SessionMiddleware, **kwargs)``.

    When a ``pysession.logging`` section is present, structlog is configured
    from it first.
    """
    if config.get_section("pysession.logging"):
        configure_session_logging(config)

    configuration = Configuration.from_config(config)
    handler = create_session_handler(config, redis_client=redis_client)

    exclude = config.get("pysession.session.exclude-patterns", [])
    if isinstance(exclude, str):
        exclude = [p.strip() for p in exclude.split(",") if p.strip()]

    return {
        "configuration": configuration,
        "handler": handler,
        "exclude_patterns": list(exclude),
    }
