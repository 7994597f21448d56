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

"""Property-based tests for the orchestration loop's iteration bound."""

import asyncio

from hypothesis import Phase, given, settings
from hypothesis import strategies as st

from agentloop.agent.orchestrator import OrchestrationLoop
from agentloop.agent.path_sandbox import PathSandbox
from agentloop.agent.tool_executor import ToolExecutor
from agentloop.config.settings import Settings
from agentloop.providers.scripted import ScriptedProvider
from agentloop.storage.memory import InMemoryStorage

TENANT = "0xabc"

# Strategies
call_names = st.sampled_from(["list_files", "stat", "create_folder", "read_file"])
turn_strategy = st.lists(call_names, min_size=1, max_size=4).map(
    lambda names: {
        "content": "working",
        "tool_calls": [{"name": name, "arguments": {"path": f"f{i}"}} for i, name in enumerate(names)],
    }
)


def build_loop(turns, max_iterations):
    executor = ToolExecutor(InMemoryStorage.with_home(TENANT), PathSandbox(TENANT))
    provider = ScriptedProvider(turns)
    loop = OrchestrationLoop(provider, executor, settings=Settings(max_iterations=max_iterations))
    return loop, provider


class TestIterationBoundProperties:
    @given(
        max_iterations=st.integers(min_value=1, max_value=6),
        turns=st.lists(turn_strategy, min_size=8, max_size=8),
    )
    @settings(max_examples=40, phases=[Phase.generate], deadline=None)
    def test_model_calls_never_exceed_bound(self, max_iterations, turns):
        loop, provider = build_loop(turns, max_iterations)

        result = asyncio.run(loop.run(["keep going"]))

        assert provider.calls == max_iterations
        assert result.iterations == max_iterations
        assert result.bound_exceeded is True
        assert result.bound_error.pending_calls == len(turns[max_iterations - 1]["tool_calls"])

    @given(max_iterations=st.integers(min_value=1, max_value=6))
    @settings(max_examples=20, phases=[Phase.generate], deadline=None)
    def test_stream_respects_bound(self, max_iterations):
        turns = [{"content": "again", "tool_calls": [{"name": "list_files"}]}] * 8
        loop, provider = build_loop(turns, max_iterations)

        async def drain():
            return [event async for event in loop.stream(["keep going"])]

        events = asyncio.run(drain())

        assert provider.calls == max_iterations
        assert events[-1].iteration == max_iterations
