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

"""Provider that replays a fixed list of model turns.

Used by the ``replay`` CLI command and throughout the test suite. Each
turn is a plain string, a dict with ``content``/``tool_calls`` (and
optionally explicit stream ``chunks``), or a ready CompletionResponse.
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Union

from agentloop.core.errors import ProviderError
from agentloop.providers.base import (
    BaseProvider,
    CompletionResponse,
    Message,
    StreamChunk,
    ToolDefinition,
)

logger = logging.getLogger(__name__)

Turn = Union[str, Dict[str, Any], CompletionResponse]


class ScriptedProvider(BaseProvider):
    """Replays canned responses in order and records every request."""

    def __init__(self, turns: Sequence[Turn], chunk_size: int = 16, **kwargs: Any):
        super().__init__(**kwargs)
        self._turns: List[Turn] = list(turns)
        self._position = 0
        self.chunk_size = chunk_size
        self.requests: List[List[Message]] = []
        self.tool_lists: List[Optional[List[ToolDefinition]]] = []

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def calls(self) -> int:
        """Number of model calls served so far."""
        return self._position

    def _next_turn(
        self, messages: List[Message], tools: Optional[List[ToolDefinition]]
    ) -> Turn:
        if self._position >= len(self._turns):
            raise ProviderError(
                f"Script exhausted after {len(self._turns)} turns", provider=self.name
            )
        self.requests.append([m.model_copy(deep=True) for m in messages])
        self.tool_lists.append(tools)
        turn = self._turns[self._position]
        self._position += 1
        return turn

    @staticmethod
    def _to_response(turn: Turn, model: str) -> CompletionResponse:
        if isinstance(turn, CompletionResponse):
            return turn
        if isinstance(turn, str):
            return CompletionResponse(content=turn, model=model, stop_reason="stop")
        return CompletionResponse(
            content=turn.get("content", ""),
            tool_calls=turn.get("tool_calls"),
            usage=turn.get("usage"),
            model=model,
            stop_reason="tool_calls" if turn.get("tool_calls") else "stop",
        )

    async def chat(
        self,
        messages: List[Message],
        *,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        tools: Optional[List[ToolDefinition]] = None,
        **kwargs: Any,
    ) -> CompletionResponse:
        turn = self._next_turn(messages, tools)
        return self._to_response(turn, model)

    async def stream(
        self,
        messages: List[Message],
        *,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        tools: Optional[List[ToolDefinition]] = None,
        **kwargs: Any,
    ) -> AsyncIterator[StreamChunk]:
        turn = self._next_turn(messages, tools)

        if isinstance(turn, dict) and "chunks" in turn:
            for raw in turn["chunks"]:
                yield raw if isinstance(raw, StreamChunk) else StreamChunk(**raw)
            return

        response = self._to_response(turn, model)
        text = response.content
        for start in range(0, len(text), self.chunk_size):
            yield StreamChunk(content=text[start : start + self.chunk_size])
        if response.tool_calls:
            yield StreamChunk(tool_calls=response.tool_calls)
        yield StreamChunk(stop_reason=response.stop_reason, is_final=True)
