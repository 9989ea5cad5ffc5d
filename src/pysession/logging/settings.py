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
"""Structured logging setup for the session stack.

Settings are read from the ``pysession.logging`` section::

    pysession:
      logging:
        level:
          root: INFO
          pysession.session: DEBUG
        format: json        # console | json | logfmt
        stream: stderr      # stdout | stderr
        id-chars: 8

A plain string under ``level`` sets the root level only.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

import structlog

from pysession.core.config import Config
from pysession.kernel.exceptions import SessionConfigurationException

FORMAT_CONSOLE = "console"
FORMAT_JSON = "json"
FORMAT_LOGFMT = "logfmt"

_FORMATS = (FORMAT_CONSOLE, FORMAT_JSON, FORMAT_LOGFMT)
_STREAMS = ("stdout", "stderr")
_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Number of identifier characters exposed in log context.
_id_chars = 8


@dataclass(frozen=True)
class LoggingSettings:
    root_level: str = "INFO"
    module_levels: dict[str, str] = field(default_factory=dict)
    format: str = FORMAT_CONSOLE
    stream: str = "stdout"
    id_chars: int = 8

    def __post_init__(self) -> None:
        for level in (self.root_level, *self.module_levels.values()):
            if level not in _LEVELS:
                raise SessionConfigurationException(
                    f"Unknown log level '{level}', expected one of {', '.join(_LEVELS)}",
                    code="SESSION_CONFIG",
                )
        if self.format not in _FORMATS:
            raise SessionConfigurationException(
                f"Unknown log format '{self.format}', expected one of {', '.join(_FORMATS)}",
                code="SESSION_CONFIG",
            )
        if self.stream not in _STREAMS:
            raise SessionConfigurationException(
                f"Unknown log stream '{self.stream}', expected stdout or stderr",
                code="SESSION_CONFIG",
            )
        if isinstance(self.id_chars, bool) or not isinstance(self.id_chars, int) or self.id_chars < 0:
            raise SessionConfigurationException(
                "Log id-chars must be a non negative integer", code="SESSION_CONFIG"
            )

    @classmethod
    def from_config(cls, config: Config) -> LoggingSettings:
        """Read ``pysession.logging.*``; environment variables override the root level and format."""
        section = config.get_section("pysession.logging")
        levels = section.get("level", {})
        if isinstance(levels, dict):
            module_levels = {str(k): str(v).upper() for k, v in levels.items() if k != "root"}
            root = levels.get("root", "INFO")
        else:
            module_levels = {}
            root = levels
        root = config.get("pysession.logging.level.root", root)

        return cls(
            root_level=str(root).upper(),
            module_levels=module_levels,
            format=str(config.get("pysession.logging.format", FORMAT_CONSOLE)).lower(),
            stream=str(config.get("pysession.logging.stream", "stdout")).lower(),
            id_chars=int(config.get("pysession.logging.id-chars", 8)),
        )


def configure_logging(settings: LoggingSettings) -> None:
    """Install the structlog pipeline and stdlib levels described by *settings*."""
    global _id_chars
    _id_chars = settings.id_chars

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _renderer(settings.format),
    ]
    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=getattr(sys, settings.stream),
        level=getattr(logging, settings.root_level),
        force=True,
    )
    for module, level in settings.module_levels.items():
        logging.getLogger(module).setLevel(getattr(logging, level))


def configure_session_logging(config: Config) -> LoggingSettings:
    settings = LoggingSettings.from_config(config)
    configure_logging(settings)
    return settings


def _renderer(output_format: str) -> Any:
    if output_format == FORMAT_JSON:
        return structlog.processors.JSONRenderer()
    if output_format == FORMAT_LOGFMT:
        return structlog.processors.LogfmtRenderer()
    return structlog.dev.ConsoleRenderer()


def mask_session_id(session_id: str) -> str:
    """Return the identifier prefix safe to include in log output."""
    return session_id[:_id_chars]


@contextmanager
def session_log_context(session_id: str) -> Iterator[None]:
    """Bind the masked session identifier to every log line emitted inside the block."""
    with structlog.contextvars.bound_contextvars(session=mask_session_id(session_id)):
        yield
