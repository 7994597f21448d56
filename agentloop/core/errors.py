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

"""Error taxonomy for the tool-calling loop.

Only ProviderError is meant to escape a run. Every other error kind is
caught at a call boundary and serialized into the next model turn so the
model can correct itself:

- ExtractionFailure: tool-call text could not be recovered (no calls)
- SandboxViolation: a path escapes the tenant root (per-call error)
- ToolError and subclasses: unknown tool, bad arguments, storage failure
- IterationBoundExceeded: marker attached to a fail-open final response
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


# =============================================================================
# Error Categories
# =============================================================================


class ErrorCategory(Enum):
    """Categories of errors for classification and handling."""

    # Provider errors
    PROVIDER_CONNECTION = "provider_connection"

    # Extraction errors
    EXTRACTION_FAILED = "extraction_failed"

    # Sandbox errors
    SANDBOX_VIOLATION = "sandbox_violation"

    # Tool errors
    TOOL_NOT_FOUND = "tool_not_found"
    TOOL_EXECUTION = "tool_execution"
    TOOL_VALIDATION = "tool_validation"

    # Loop errors
    ITERATION_BOUND = "iteration_bound"

    # Configuration errors
    CONFIG_INVALID = "config_invalid"

    # System errors
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


# =============================================================================
# Custom Exception Types
# =============================================================================


class AgentLoopError(Exception):
    """Base exception for all agentloop errors.

    Provides structured error information including:
    - Error category and severity
    - Correlation ID for tracking
    - Recovery suggestions
    - Original exception chain
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        details: Optional[Dict[str, Any]] = None,
        recovery_hint: Optional[str] = None,
        correlation_id: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.details = details or {}
        self.recovery_hint = recovery_hint
        self.correlation_id = correlation_id or str(uuid.uuid4())[:8]
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "correlation_id": self.correlation_id,
            "recovery_hint": self.recovery_hint,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        result = f"[{self.correlation_id}] {self.message}"
        if self.recovery_hint:
            result += f"\nRecovery hint: {self.recovery_hint}"
        return result


class ProviderError(AgentLoopError):
    """Model or network failure. Terminates the run."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs: Any,
    ):
        kwargs.setdefault("category", ErrorCategory.PROVIDER_CONNECTION)
        super().__init__(message, **kwargs)
        self.provider = provider
        self.model = model
        self.status_code = status_code
        self.details["provider"] = provider
        self.details["model"] = model
        if status_code is not None:
            self.details["status_code"] = status_code


class ExtractionFailure(AgentLoopError):
    """Tool-call text could not be recovered after every repair pass."""

    def __init__(self, message: str, snippet: Optional[str] = None, **kwargs: Any):
        super().__init__(
            message,
            category=ErrorCategory.EXTRACTION_FAILED,
            severity=ErrorSeverity.WARNING,
            **kwargs,
        )
        self.snippet = snippet
        self.details["snippet"] = snippet[:200] if snippet else None


class SandboxViolation(AgentLoopError):
    """A resolved path falls outside the tenant root."""

    def __init__(self, path: str, tenant_root: str, reason: str, **kwargs: Any):
        super().__init__(
            f"Access denied: {path} ({reason})",
            category=ErrorCategory.SANDBOX_VIOLATION,
            severity=ErrorSeverity.WARNING,
            recovery_hint=f"Use a path inside /{tenant_root}.",
            **kwargs,
        )
        self.path = path
        self.tenant_root = tenant_root
        self.reason = reason
        self.details["path"] = path
        self.details["reason"] = reason


class ToolError(AgentLoopError):
    """Errors related to tool execution."""

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.tool_name = tool_name
        self.details["tool_name"] = tool_name


class ToolNotFoundError(ToolError):
    """Tool not present in the catalog."""

    def __init__(self, tool_name: str, **kwargs: Any):
        super().__init__(
            f"Unknown tool: {tool_name}",
            tool_name=tool_name,
            category=ErrorCategory.TOOL_NOT_FOUND,
            recovery_hint="Use one of the tools listed in the catalog.",
            **kwargs,
        )


class ToolExecutionError(ToolError):
    """Storage capability failed while running a tool."""

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(
            message,
            tool_name=tool_name,
            category=ErrorCategory.TOOL_EXECUTION,
            **kwargs,
        )


class ToolValidationError(ToolError):
    """Tool argument validation failures."""

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        invalid_args: Optional[List[str]] = None,
        **kwargs: Any,
    ):
        super().__init__(
            message,
            tool_name=tool_name,
            category=ErrorCategory.TOOL_VALIDATION,
            recovery_hint="Check the required arguments for this tool.",
            **kwargs,
        )
        self.invalid_args = invalid_args or []
        self.details["invalid_args"] = self.invalid_args


class IterationBoundExceeded(AgentLoopError):
    """The loop reached its iteration bound and returned fail-open."""

    def __init__(self, max_iterations: int, pending_calls: int = 0, **kwargs: Any):
        super().__init__(
            f"Reached maximum of {max_iterations} model calls",
            category=ErrorCategory.ITERATION_BOUND,
            severity=ErrorSeverity.WARNING,
            **kwargs,
        )
        self.max_iterations = max_iterations
        self.pending_calls = pending_calls
        self.details["max_iterations"] = max_iterations
        self.details["pending_calls"] = pending_calls


class ConfigurationError(AgentLoopError):
    """Configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(
            message,
            category=ErrorCategory.CONFIG_INVALID,
            **kwargs,
        )
        self.config_key = config_key
        self.details["config_key"] = config_key
