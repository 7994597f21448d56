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

"""Orchestration loop: model -> extract -> sandbox -> execute -> repeat.

The loop object only holds configuration. Each call to ``run`` or
``stream`` builds its own history and ``ExecutionContext`` and discards
them when it returns, so one loop can serve concurrent requests.

Example:
    loop = OrchestrationLoop(provider, executor)
    result = await loop.run(["create a folder called Notes"])
    print(result.response)

    async for event in loop.stream(["what is on my desktop?"]):
        if event.type == LoopEventType.CONTENT:
            print(event.content, end="")
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from agentloop.agent.conversation import (
    RawMessage,
    build_tool_prompt,
    clean_history,
    corrective_message,
    format_results_message,
    last_user_text,
    normalize_messages,
)
from agentloop.agent.debug_logger import DebugLogger
from agentloop.agent.path_sandbox import PathContext
from agentloop.agent.stream_handler import StreamMerger
from agentloop.agent.tool_call_extractor import ToolCallExtractor
from agentloop.agent.tool_executor import ToolExecutor, ToolResult
from agentloop.config.settings import Settings
from agentloop.core.errors import IterationBoundExceeded, ProviderError
from agentloop.providers.base import (
    BaseProvider,
    CompletionResponse,
    Message,
    StreamChunk,
    ToolCall,
    ToolDefinition,
)
from agentloop.tools.catalog import ToolCatalog, ToolName

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    """Phases of a single run."""

    AWAITING_MODEL = "awaiting_model"
    EXTRACTING_CALLS = "extracting_calls"
    EXECUTING_TOOLS = "executing_tools"
    APPENDING_RESULTS = "appending_results"
    FINALIZED = "finalized"


@dataclass
class ExecutionContext:
    """Per-run state. Never shared between runs."""

    tenant_root: str
    iteration_count: int = 0
    editing: bool = False
    editing_path: Optional[str] = None
    state: LoopState = LoopState.AWAITING_MODEL

    def transition(self, state: LoopState) -> None:
        logger.debug(f"[loop] {self.state.value} -> {state.value}")
        self.state = state


@dataclass
class RunResult:
    """Outcome of ``OrchestrationLoop.run``."""

    response: str
    messages: List[Message]
    tool_results: List[ToolResult] = field(default_factory=list)
    iterations: int = 0
    bound_error: Optional[IterationBoundExceeded] = None

    @property
    def bound_exceeded(self) -> bool:
        return self.bound_error is not None


class LoopEventType(str, Enum):
    """Events emitted by ``OrchestrationLoop.stream``."""

    CONTENT = "content"
    """Text delta from the model, forwarded as it arrives."""

    TOOL_CALL = "tool_call"
    """A tool call is about to be executed."""

    TOOL_RESULT = "tool_result"
    """A tool call has finished."""

    DONE = "done"
    """The run is over. Carries the last turn's text."""


@dataclass
class LoopEvent:
    type: LoopEventType
    content: str = ""
    iteration: int = 0
    tool_call: Optional[ToolCall] = None
    result: Optional[ToolResult] = None
    bound_error: Optional[IterationBoundExceeded] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type.value, "iteration": self.iteration}
        if self.content:
            data["content"] = self.content
        if self.tool_call is not None:
            data["tool_call"] = self.tool_call.model_dump()
        if self.result is not None:
            data["result"] = {"name": self.result.name, **self.result.to_dict()}
        if self.bound_error is not None:
            data["bound_exceeded"] = True
        return data


class OrchestrationLoop:
    """Drives the model/tool conversation for one tenant."""

    def __init__(
        self,
        provider: BaseProvider,
        executor: ToolExecutor,
        extractor: Optional[ToolCallExtractor] = None,
        settings: Optional[Settings] = None,
        catalog: Optional[ToolCatalog] = None,
    ):
        self.provider = provider
        self.executor = executor
        self.settings = settings or Settings()
        self.catalog = catalog or executor.catalog
        self.extractor = extractor or ToolCallExtractor(
            catalog=self.catalog,
            enable_inference=self.settings.enable_intent_inference,
            inference_max_length=self.settings.inference_max_length,
        )

    @property
    def max_iterations(self) -> int:
        return self.settings.max_iterations

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, messages: Sequence[RawMessage]) -> RunResult:
        """Run the loop to completion and return the final model text.

        Raises:
            ProviderError: If a model call fails
        """
        history = self._prepare_history(messages)
        context = ExecutionContext(tenant_root=self.executor.tenant_id)
        path_context = PathContext.from_text(last_user_text(history))
        debug = DebugLogger()
        tool_results: List[ToolResult] = []

        while True:
            context.iteration_count += 1
            context.transition(LoopState.AWAITING_MODEL)
            debug.log_iteration_start(context.iteration_count, self.max_iterations)

            response = await self._complete(history)
            calls = self._extract(context, response.content, response.tool_calls, debug)

            if context.iteration_count >= self.max_iterations:
                bound = self._bound_marker(context, calls)
                return self._finish(context, history, response.content, tool_results, debug, bound)

            if not calls:
                if self._correct_editing(context, history, response.content):
                    debug.log_iteration_end(context.iteration_count)
                    continue
                return self._finish(context, history, response.content, tool_results, debug)

            results = await self._execute(context, calls, path_context, debug)
            tool_results.extend(results)
            self._append_turn(context, history, response.content, calls, results)
            debug.log_iteration_end(context.iteration_count, has_tool_calls=True)

    async def stream(self, messages: Sequence[RawMessage]) -> AsyncIterator[LoopEvent]:
        """Run the loop, yielding events as they happen.

        Text is forwarded chunk by chunk and never retracted. The last event
        is always ``DONE``.

        Raises:
            ProviderError: If a model call or stream fails
        """
        history = self._prepare_history(messages)
        context = ExecutionContext(tenant_root=self.executor.tenant_id)
        path_context = PathContext.from_text(last_user_text(history))
        debug = DebugLogger()
        tool_results: List[ToolResult] = []

        while True:
            context.iteration_count += 1
            context.transition(LoopState.AWAITING_MODEL)
            debug.log_iteration_start(context.iteration_count, self.max_iterations)

            merger = StreamMerger()
            async for chunk in self._stream_turn(history):
                merger.add_chunk(chunk)
                if chunk.content:
                    yield LoopEvent(
                        LoopEventType.CONTENT,
                        content=chunk.content,
                        iteration=context.iteration_count,
                    )

            content = merger.content
            native = merger.tool_calls or None
            ttft = merger.metrics.time_to_first_token
            if ttft is not None:
                logger.debug(
                    f"[loop] stream: {merger.metrics.total_chunks} chunks, "
                    f"first token after {ttft * 1000:.0f}ms"
                )
            calls = self._extract(context, content, native, debug)

            bound: Optional[IterationBoundExceeded] = None
            if context.iteration_count >= self.max_iterations:
                bound = self._bound_marker(context, calls)
            elif not calls:
                if self._correct_editing(context, history, content):
                    debug.log_iteration_end(context.iteration_count)
                    continue
            else:
                for call in calls:
                    yield LoopEvent(
                        LoopEventType.TOOL_CALL, tool_call=call, iteration=context.iteration_count
                    )
                results = await self._execute(context, calls, path_context, debug)
                tool_results.extend(results)
                for result in results:
                    yield LoopEvent(
                        LoopEventType.TOOL_RESULT, result=result, iteration=context.iteration_count
                    )
                self._append_turn(context, history, content, calls, results)
                debug.log_iteration_end(context.iteration_count, has_tool_calls=True)
                continue

            self._finish(context, history, content, tool_results, debug, bound)
            yield LoopEvent(
                LoopEventType.DONE,
                content=content,
                iteration=context.iteration_count,
                bound_error=bound,
            )
            return

    # ------------------------------------------------------------------
    # Model calls
    # ------------------------------------------------------------------

    def _tool_definitions(self) -> Optional[List[ToolDefinition]]:
        if not self.provider.supports_tools():
            return None
        return self.catalog.definitions

    def _wrap_provider_error(self, error: Exception) -> ProviderError:
        logger.warning(f"[loop] Provider {self.provider.name} failed: {error}")
        return ProviderError(
            f"Provider request failed: {error}",
            provider=self.provider.name,
            model=self.settings.model,
            cause=error,
        )

    async def _complete(self, history: List[Message]) -> CompletionResponse:
        try:
            return await self.provider.chat(
                list(history),
                model=self.settings.model,
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_tokens,
                tools=self._tool_definitions(),
            )
        except ProviderError:
            raise
        except Exception as e:
            raise self._wrap_provider_error(e) from e

    async def _stream_turn(self, history: List[Message]) -> AsyncIterator[StreamChunk]:
        try:
            async for chunk in self.provider.stream(
                list(history),
                model=self.settings.model,
                temperature=self.settings.temperature,
                max_tokens=self.settings.max_tokens,
                tools=self._tool_definitions(),
            ):
                yield chunk
        except ProviderError:
            raise
        except Exception as e:
            raise self._wrap_provider_error(e) from e

    # ------------------------------------------------------------------
    # Turn handling shared by run() and stream()
    # ------------------------------------------------------------------

    def _prepare_history(self, messages: Sequence[RawMessage]) -> List[Message]:
        history = clean_history(normalize_messages(messages, self.extractor))
        if not history:
            raise ValueError("messages must contain at least one message")
        if self.settings.include_tool_prompt and not any(m.role == "system" for m in history):
            preamble = build_tool_prompt(self.catalog)
            if preamble is not None:
                history.insert(0, preamble)
        return history

    def _extract(
        self,
        context: ExecutionContext,
        content: str,
        native: Optional[List[Dict[str, Any]]],
        debug: DebugLogger,
    ) -> List[ToolCall]:
        context.transition(LoopState.EXTRACTING_CALLS)
        extraction = self.extractor.extract(content, native)
        debug.log_model_response(content, len(extraction.tool_calls))
        if extraction.has_calls:
            logger.debug(
                f"[loop] {len(extraction.tool_calls)} call(s) via {extraction.strategy.value}"
            )
        return extraction.tool_calls

    def _bound_marker(
        self, context: ExecutionContext, calls: List[ToolCall]
    ) -> Optional[IterationBoundExceeded]:
        if not calls and not context.editing:
            return None
        logger.warning(
            f"[loop] Reached {self.max_iterations} iterations; "
            f"returning response with {len(calls)} unexecuted call(s)"
        )
        return IterationBoundExceeded(self.max_iterations, pending_calls=len(calls))

    def _correct_editing(
        self, context: ExecutionContext, history: List[Message], content: str
    ) -> bool:
        """Demand the write-back when a read was not followed by a write."""
        if not context.editing:
            return False
        logger.info(f"[loop] No write after reading {context.editing_path}, asking again")
        history.append(Message(role="assistant", content=content))
        history.append(corrective_message())
        return True

    async def _execute(
        self,
        context: ExecutionContext,
        calls: List[ToolCall],
        path_context: PathContext,
        debug: DebugLogger,
    ) -> List[ToolResult]:
        context.transition(LoopState.EXECUTING_TOOLS)
        for call in calls:
            debug.log_tool_call(call.name, call.arguments)

        results = await self.executor.execute_batch(
            calls, path_context, parallel=self.settings.parallel_tool_execution
        )

        for result in results:
            debug.log_tool_result(
                result.name,
                result.success,
                result.result if result.success else result.error,
                result.execution_time * 1000,
            )
            if not result.success:
                logger.warning(f"[loop] Tool {result.name} failed: {result.error}")

        self._update_editing(context, calls, results, path_context)
        return results

    def _update_editing(
        self,
        context: ExecutionContext,
        calls: List[ToolCall],
        results: List[ToolResult],
        path_context: PathContext,
    ) -> None:
        read_paths: List[str] = []
        written = set()
        for call, result in zip(calls, results):
            if not result.success:
                continue
            path = self.executor.sandbox.resolve(call.arguments.get("path"), path_context)
            if result.name == ToolName.READ_FILE.value:
                read_paths.append(path)
            elif result.name == ToolName.WRITE_FILE.value:
                written.add(path)

        pending = [path for path in read_paths if path not in written]
        context.editing = bool(pending)
        context.editing_path = pending[-1] if pending else None

    def _append_turn(
        self,
        context: ExecutionContext,
        history: List[Message],
        content: str,
        calls: List[ToolCall],
        results: List[ToolResult],
    ) -> None:
        context.transition(LoopState.APPENDING_RESULTS)
        history.append(Message(role="assistant", content=content, tool_calls=list(calls)))
        history.append(
            format_results_message(
                results, role=self.settings.result_message_role, editing=context.editing
            )
        )

    def _finish(
        self,
        context: ExecutionContext,
        history: List[Message],
        content: str,
        tool_results: List[ToolResult],
        debug: DebugLogger,
        bound: Optional[IterationBoundExceeded] = None,
    ) -> RunResult:
        context.transition(LoopState.FINALIZED)
        history.append(Message(role="assistant", content=content))
        debug.log_iteration_end(context.iteration_count)
        debug.log_conversation_summary(history)
        return RunResult(
            response=content,
            messages=history,
            tool_results=tool_results,
            iterations=context.iteration_count,
            bound_error=bound,
        )
