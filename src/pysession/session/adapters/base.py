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
"""Shared configuration handling for session handlers."""

from __future__ import annotations

from pysession.kernel.exceptions import SessionConfigurationException
from pysession.session.configuration import Configuration


class BaseSessionHandler:
    """Holds the Configuration every handler needs before it can operate."""

    def __init__(self) -> None:
        self._configuration: Configuration | None = None

    def set_configuration(self, configuration: Configuration) -> None:
        self._configuration = configuration

    @property
    def configuration(self) -> Configuration:
        """The attached Configuration.

        Raises:
            SessionConfigurationException: If none was attached yet.
        """
        if self._configuration is None:
            raise SessionConfigurationException(
                f"Configuration must be set on {type(self).__name__} prior to use",
                code="SESSION_CONFIG",
            )
        return self._configuration

    def ensure_configured(self) -> None:
        """Raise unless a Configuration has been attached."""
        self.configuration  # noqa: B018
