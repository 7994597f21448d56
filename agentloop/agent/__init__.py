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

"""Agent module - orchestration loop and supporting components."""

from agentloop.agent.debug_logger import TRACE, DebugLogger, configure_logging_levels
from agentloop.agent.notifications import (
    CallbackNotifier,
    ChangeEvent,
    ChangeNotifier,
    ChangeType,
    CollectingNotifier,
    NullNotifier,
)
from agentloop.agent.orchestrator import (
    ExecutionContext,
    LoopEvent,
    LoopEventType,
    LoopState,
    OrchestrationLoop,
    RunResult,
)
from agentloop.agent.path_sandbox import PathContext, PathSandbox, RewriteRule
from agentloop.agent.stream_handler import StreamMerger, StreamMetrics
from agentloop.agent.tool_call_extractor import (
    ExtractionResult,
    ExtractionStrategy,
    ToolCallExtractor,
)
from agentloop.agent.tool_executor import ToolExecutor, ToolResult

__all__ = [
    "TRACE",
    "CallbackNotifier",
    "ChangeEvent",
    "ChangeNotifier",
    "ChangeType",
    "CollectingNotifier",
    "DebugLogger",
    "ExecutionContext",
    "ExtractionResult",
    "ExtractionStrategy",
    "LoopEvent",
    "LoopEventType",
    "LoopState",
    "NullNotifier",
    "OrchestrationLoop",
    "PathContext",
    "PathSandbox",
    "RewriteRule",
    "RunResult",
    "StreamMerger",
    "StreamMetrics",
    "ToolCallExtractor",
    "ToolExecutor",
    "ToolResult",
    "configure_logging_levels",
]
