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

"""Accumulation of streamed model output.

Text deltas are concatenated. Tool-call fragments are merged by identity,
field by field, with the last write winning. A fragment with an ``id`` is
keyed by it, and an ``index`` seen alongside that id maps later index-only
fragments (the OpenAI streaming shape) to the same call. Fragments without
either fall back to their position in the chunk.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from agentloop.providers.base import StreamChunk

logger = logging.getLogger(__name__)


def _merge_fragment(existing: Dict[str, Any], fragment: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(existing)
    for key, value in fragment.items():
        if key == "function" and isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


@dataclass
class StreamMetrics:
    """Metrics collected during streaming."""

    start_time: float = 0.0
    first_token_time: Optional[float] = None
    end_time: float = 0.0
    total_chunks: int = 0
    total_content_length: int = 0
    tool_call_fragments: int = 0

    @property
    def time_to_first_token(self) -> Optional[float]:
        """Time from start to first token (TTFT)."""
        if self.first_token_time and self.start_time:
            return self.first_token_time - self.start_time
        return None

    @property
    def total_duration(self) -> float:
        """Total streaming duration."""
        if self.end_time and self.start_time:
            return self.end_time - self.start_time
        return 0.0


class StreamMerger:
    """Merges the chunks of one streamed model turn."""

    def __init__(self) -> None:
        self._parts: List[str] = []
        self._tool_calls: Dict[str, Dict[str, Any]] = {}
        self._index_ids: Dict[Any, str] = {}
        self.stop_reason: Optional[str] = None
        self.is_done = False
        self.metrics = StreamMetrics(start_time=time.time())

    def add_chunk(self, chunk: StreamChunk) -> None:
        self.metrics.total_chunks += 1

        if chunk.content:
            if self.metrics.first_token_time is None:
                self.metrics.first_token_time = time.time()
            self._parts.append(chunk.content)
            self.metrics.total_content_length += len(chunk.content)

        for position, fragment in enumerate(chunk.tool_calls or []):
            self.metrics.tool_call_fragments += 1
            key = self._identity(fragment, position)
            existing = self._tool_calls.get(key)
            if existing is None:
                self._tool_calls[key] = dict(fragment)
            else:
                logger.debug(f"Tool call fragment {key} merged into earlier fragment")
                self._tool_calls[key] = _merge_fragment(existing, fragment)

        if chunk.stop_reason:
            self.stop_reason = chunk.stop_reason
        if chunk.is_final:
            self.is_done = True
            self.metrics.end_time = time.time()

    def _identity(self, fragment: Dict[str, Any], position: int) -> str:
        identifier: Union[str, int, None] = fragment.get("id")
        index = fragment.get("index")
        if identifier:
            if index is not None:
                self._index_ids[index] = str(identifier)
            return f"id:{identifier}"
        if index is not None:
            if index in self._index_ids:
                return f"id:{self._index_ids[index]}"
            return f"index:{index}"
        return f"pos:{position}"

    @property
    def content(self) -> str:
        return "".join(self._parts)

    @property
    def tool_calls(self) -> List[Dict[str, Any]]:
        """Merged calls, ordered by first appearance."""
        return list(self._tool_calls.values())

    @property
    def has_tool_calls(self) -> bool:
        return bool(self._tool_calls)
