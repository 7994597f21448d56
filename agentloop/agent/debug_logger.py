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

"""Debug logging utilities for agentloop.

Provides clean, scannable debug output that focuses on meaningful events:
- Iteration summaries (not verbose traces)
- Tool calls and results (one-line format)

Logging Levels (agentloop convention):
- TRACE (5): Very verbose per-operation logs (path rewrites, scanner steps)
- DEBUG (10): Detailed internal state (extraction strategy, repair passes)
- INFO (20): Key events (iteration start, tool execution, model response)
- WARNING (30): Recoverable issues (sandbox violation, iteration bound)
- ERROR (40): Operation failures
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from agentloop.providers.base import Message

# Custom TRACE level for very verbose logging (below DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")


def trace(self: logging.Logger, message: str, *args: Any, **kwargs: Any) -> None:
    """Log at TRACE level (5) - for very verbose per-operation logs."""
    if self.isEnabledFor(TRACE):
        self._log(TRACE, message, args, **kwargs)


# Add trace method to Logger class
logging.Logger.trace = trace  # type: ignore[attr-defined]

logger = logging.getLogger(__name__)

# Third-party loggers to silence (they generate too much noise)
NOISY_LOGGERS = [
    "asyncio",
    "markdown_it",
    "urllib3",
]


def configure_logging_levels(log_level: str = "INFO") -> None:
    """Configure logging levels, silencing noisy third-party loggers.

    Args:
        log_level: Desired log level for agentloop loggers.
            Supported: TRACE (5), DEBUG, INFO, WARNING, ERROR, CRITICAL
    """
    level_upper = log_level.upper()
    if level_upper == "TRACE":
        level = TRACE
    else:
        level = getattr(logging, level_upper, logging.INFO)

    logging.getLogger("agentloop").setLevel(level)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


@dataclass
class ConversationStats:
    """Statistics about conversation state."""

    total_messages: int = 0
    total_chars: int = 0
    tool_calls_made: int = 0
    tool_failures: int = 0
    iterations: int = 0
    start_time: float = field(default_factory=time.time)

    @property
    def elapsed_seconds(self) -> float:
        """Time elapsed since conversation started."""
        return time.time() - self.start_time

    def summary(self) -> str:
        """One-line summary of stats."""
        return (
            f"msgs={self.total_messages} ({self.total_chars:,} chars) | "
            f"tools={self.tool_calls_made} (failed={self.tool_failures}) | "
            f"iter={self.iterations} | "
            f"{self.elapsed_seconds:.1f}s"
        )


class DebugLogger:
    """One-line event logger for a single orchestration run.

    Each run creates its own instance so statistics never leak across runs.
    """

    def __init__(
        self,
        name: str = "agentloop.debug",
        max_preview: int = 80,
        enabled: bool = True,
    ):
        self.logger = logging.getLogger(name)
        self.max_preview = max_preview
        self.enabled = enabled
        self._last_iteration = 0
        self.stats = ConversationStats()

    def _truncate(self, text: str, max_len: Optional[int] = None) -> str:
        """Truncate text with indicator."""
        max_len = max_len or self.max_preview
        text = text.replace("\n", " ").strip()
        if len(text) <= max_len:
            return text
        return f"{text[:max_len]}..."

    def log_iteration_start(self, iteration: int, max_iterations: int) -> None:
        """Log iteration start (one line)."""
        if not self.enabled or iteration <= self._last_iteration:
            return

        self._last_iteration = iteration
        self.stats.iterations = iteration
        self.logger.info(f"── ITER {iteration}/{max_iterations} ──────────────────────────────────")

    def log_iteration_end(self, iteration: int, has_tool_calls: bool = False) -> None:
        """Log iteration end summary."""
        if not self.enabled:
            return

        status = "-> tools" if has_tool_calls else "-> done"
        self.logger.info(f"   {self.stats.summary()} {status}")

    def log_model_response(self, content: str, tool_call_count: int) -> None:
        """Log model response summary (one line)."""
        if not self.enabled:
            return

        tc_str = f" +{tool_call_count} tools" if tool_call_count else ""
        preview = self._truncate(content, 60)
        self.logger.debug(f"   model: {len(content)} chars{tc_str}: {preview}")

    def log_tool_call(self, tool_name: str, args: Dict[str, Any]) -> None:
        """Log tool call (one line)."""
        if not self.enabled:
            return

        self.stats.tool_calls_made += 1

        args_str = ", ".join(f"{k}={self._truncate(str(v), 30)}" for k, v in list(args.items())[:3])
        if len(args) > 3:
            args_str += f", +{len(args)-3} more"

        self.logger.info(f"   > {tool_name}({args_str})")

    def log_tool_result(
        self,
        tool_name: str,
        success: bool,
        output: Any,
        elapsed_ms: float,
    ) -> None:
        """Log tool result (one line)."""
        if not self.enabled:
            return

        if not success:
            self.stats.tool_failures += 1
        icon = "ok" if success else "FAILED"
        output_str = str(output) if output else ""
        size = f"{len(output_str):,} chars" if output_str else "empty"

        self.logger.info(f"   {icon} {tool_name}: {size} ({elapsed_ms:.0f}ms)")

    def log_new_messages(self, messages: List[Message]) -> None:
        """Update stats from messages (no logging)."""
        if not self.enabled:
            return

        self.stats.total_messages = len(messages)
        self.stats.total_chars = sum(len(m.content) for m in messages)

    def log_conversation_summary(self, messages: List[Message]) -> None:
        """Log final conversation summary."""
        if not self.enabled:
            return

        self.log_new_messages(messages)
        self.logger.info(
            f"═══ SUMMARY: {self.stats.total_messages} messages, "
            f"{self.stats.tool_calls_made} tool calls "
            f"({self.stats.tool_failures} failed), "
            f"{self.stats.iterations} iterations, "
            f"{self.stats.elapsed_seconds:.1f}s"
        )
