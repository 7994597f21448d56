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

"""
agentloop - A tool-calling orchestration loop for sandboxed file agents.

Takes a conversation, asks a model provider for a turn, recovers tool calls
from native or free-text output, confines every path to one tenant's root,
executes the calls against a storage backend and feeds the results back
until the model is done.

Example:
    from agentloop import OrchestrationLoop, PathSandbox, ToolExecutor
    from agentloop.providers import ScriptedProvider
    from agentloop.storage import InMemoryStorage

    storage = InMemoryStorage.with_home("0xabc")
    executor = ToolExecutor(storage, PathSandbox("0xabc"))
    loop = OrchestrationLoop(ScriptedProvider(["Hello!"]), executor)
    result = await loop.run(["hi"])
"""

__version__ = "0.1.0"
__author__ = "Vijaykumar Singh"
__email__ = "singhvjd@gmail.com"
__license__ = "Apache-2.0"

from agentloop.agent.orchestrator import LoopEvent, LoopEventType, OrchestrationLoop, RunResult
from agentloop.agent.path_sandbox import PathContext, PathSandbox
from agentloop.agent.tool_call_extractor import ToolCallExtractor
from agentloop.agent.tool_executor import ToolExecutor, ToolResult
from agentloop.config.settings import Settings, load_settings
from agentloop.core.errors import AgentLoopError, ProviderError, SandboxViolation

__all__ = [
    "AgentLoopError",
    "LoopEvent",
    "LoopEventType",
    "OrchestrationLoop",
    "PathContext",
    "PathSandbox",
    "ProviderError",
    "RunResult",
    "SandboxViolation",
    "Settings",
    "ToolCallExtractor",
    "ToolExecutor",
    "ToolResult",
    "load_settings",
]
