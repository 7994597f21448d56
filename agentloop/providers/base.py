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

"""Provider interface and the message types exchanged with models.

Concrete HTTP adapters live outside this package. A provider only has to
implement ``chat`` (one completion) and ``stream`` (incremental chunks).
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from agentloop.core.errors import ProviderError


class ToolDefinition(BaseModel):
    """Function-calling schema for a single tool."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Canonical tool name")
    description: str = Field(default="", description="What the tool does")
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []},
        description="JSON schema for the arguments object",
    )

    @property
    def required(self) -> List[str]:
        return list(self.parameters.get("required", []))

    @property
    def properties(self) -> Dict[str, Any]:
        return dict(self.parameters.get("properties", {}))


class ToolCall(BaseModel):
    """A structured tool invocation recovered from model output."""

    name: str = Field(description="Canonical tool name")
    arguments: Dict[str, Any] = Field(default_factory=dict, description="Tool arguments")
    id: Optional[str] = Field(default=None, description="Provider or stream correlation id")


class Message(BaseModel):
    """Represents a message in the conversation."""

    role: str = Field(description="Message role (system/user/assistant/tool)")
    content: str = Field(default="", description="Message content")
    tool_calls: Optional[List[ToolCall]] = Field(default=None, description="Calls made in this turn")
    tool_call_id: Optional[str] = Field(default=None, description="Call answered by a tool message")
    name: Optional[str] = Field(default=None, description="Tool name for tool messages")


class CompletionResponse(BaseModel):
    """Normalized response from a single model call."""

    content: str = Field(default="", description="Assistant text")
    role: str = Field(default="assistant")
    tool_calls: Optional[List[Dict[str, Any]]] = Field(
        default=None, description="Provider-native tool calls, unparsed"
    )
    stop_reason: Optional[str] = None
    usage: Optional[Dict[str, int]] = None
    model: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None


class StreamChunk(BaseModel):
    """Incremental piece of a streamed response."""

    content: str = Field(default="", description="Text delta")
    tool_calls: Optional[List[Dict[str, Any]]] = Field(
        default=None, description="Tool-call fragments carried by this chunk"
    )
    stop_reason: Optional[str] = None
    is_final: bool = False


class BaseProvider(ABC):
    """Interface every model provider implements."""

    def __init__(self, **kwargs: Any):
        self.config = kwargs

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""

    def supports_tools(self) -> bool:
        return True

    def supports_streaming(self) -> bool:
        return True

    @abstractmethod
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
        """Send a chat completion request.

        Raises:
            ProviderError: If the request fails
        """

    @abstractmethod
    def stream(
        self,
        messages: List[Message],
        *,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        tools: Optional[List[ToolDefinition]] = None,
        **kwargs: Any,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a chat completion. The last chunk has ``is_final`` set.

        Raises:
            ProviderError: If the request fails
        """

    async def close(self) -> None:
        """Release provider resources."""


__all__ = [
    "BaseProvider",
    "CompletionResponse",
    "Message",
    "ProviderError",
    "StreamChunk",
    "ToolCall",
    "ToolDefinition",
]
