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
"""PySession Logging — structlog configuration and request log context."""

from pysession.logging.settings import (
    LoggingSettings,
    configure_logging,
    configure_session_logging,
    mask_session_id,
    session_log_context,
)

__all__ = [
    "LoggingSettings",
    "configure_logging",
    "configure_session_logging",
    "mask_session_id",
    "session_log_context",
]
