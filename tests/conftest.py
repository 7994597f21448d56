# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
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

"""Shared pytest fixtures and configuration."""

import os

import pytest

from agentloop.agent.notifications import CollectingNotifier
from agentloop.agent.path_sandbox import PathSandbox
from agentloop.agent.tool_executor import ToolExecutor
from agentloop.storage.memory import InMemoryStorage

TENANT = "0xabc"


@pytest.fixture(autouse=True)
def isolate_environment_variables(monkeypatch):
    """Isolate tests from AGENTLOOP_* environment variables and .env files."""
    monkeypatch.setenv("AGENTLOOP_SKIP_ENV_FILE", "1")
    for key in list(os.environ):
        if key.upper().startswith("AGENTLOOP_") and key.upper() != "AGENTLOOP_SKIP_ENV_FILE":
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def tenant() -> str:
    return TENANT


@pytest.fixture
def storage(tenant) -> InMemoryStorage:
    """Tenant home with the standard directories."""
    return InMemoryStorage.with_home(tenant)


@pytest.fixture
def sandbox(tenant) -> PathSandbox:
    return PathSandbox(tenant)


@pytest.fixture
def notifier() -> CollectingNotifier:
    return CollectingNotifier()


@pytest.fixture
def executor(storage, sandbox, notifier) -> ToolExecutor:
    return ToolExecutor(storage, sandbox, notifier=notifier)
