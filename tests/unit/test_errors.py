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

"""Tests for the agentloop error hierarchy."""

from agentloop.core.errors import (
    AgentLoopError,
    ConfigurationError,
    ErrorCategory,
    ErrorSeverity,
    ExtractionFailure,
    IterationBoundExceeded,
    ProviderError,
    SandboxViolation,
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolValidationError,
)


class TestAgentLoopError:
    """Tests for the base error."""

    def test_defaults(self):
        error = AgentLoopError("boom")
        assert error.message == "boom"
        assert error.category == ErrorCategory.UNKNOWN
        assert error.severity == ErrorSeverity.ERROR
        assert error.details == {}
        assert len(error.correlation_id) == 8

    def test_str_includes_correlation_id_and_hint(self):
        error = AgentLoopError("boom", recovery_hint="try again", correlation_id="abc12345")
        assert str(error) == "[abc12345] boom\nRecovery hint: try again"

    def test_to_dict(self):
        error = AgentLoopError("boom", category=ErrorCategory.TOOL_EXECUTION, details={"a": 1})
        data = error.to_dict()
        assert data["error"] == "boom"
        assert data["category"] == "tool_execution"
        assert data["severity"] == "error"
        assert data["details"] == {"a": 1}
        assert "timestamp" in data

    def test_cause_is_kept(self):
        cause = ValueError("inner")
        error = AgentLoopError("outer", cause=cause)
        assert error.cause is cause


class TestSpecificErrors:
    """Tests for the concrete error types."""

    def test_provider_error_details(self):
        error = ProviderError("timeout", provider="scripted", model="m", status_code=504)
        assert error.category == ErrorCategory.PROVIDER_CONNECTION
        assert error.details == {"provider": "scripted", "model": "m", "status_code": 504}

    def test_extraction_failure_truncates_snippet(self):
        error = ExtractionFailure("bad", snippet="x" * 500)
        assert error.severity == ErrorSeverity.WARNING
        assert len(error.details["snippet"]) == 200

    def test_sandbox_violation_message(self):
        error = SandboxViolation("/etc/passwd", "0xabc", "outside tenant root")
        assert error.message == "Access denied: /etc/passwd (outside tenant root)"
        assert error.path == "/etc/passwd"
        assert error.reason == "outside tenant root"
        assert "/0xabc" in error.recovery_hint

    def test_tool_error_hierarchy(self):
        assert issubclass(ToolNotFoundError, ToolError)
        assert issubclass(ToolValidationError, ToolError)
        assert issubclass(ToolExecutionError, ToolError)
        assert issubclass(ToolError, AgentLoopError)

    def test_tool_not_found(self):
        error = ToolNotFoundError("frobnicate")
        assert error.message == "Unknown tool: frobnicate"
        assert error.tool_name == "frobnicate"
        assert error.category == ErrorCategory.TOOL_NOT_FOUND

    def test_tool_validation_invalid_args(self):
        error = ToolValidationError("bad", tool_name="read_file", invalid_args=["path"])
        assert error.invalid_args == ["path"]
        assert error.details["invalid_args"] == ["path"]

    def test_iteration_bound(self):
        error = IterationBoundExceeded(5, pending_calls=2)
        assert error.max_iterations == 5
        assert error.pending_calls == 2
        assert error.severity == ErrorSeverity.WARNING
        assert "5" in error.message

    def test_configuration_error(self):
        error = ConfigurationError("bad value", config_key="max_iterations")
        assert error.config_key == "max_iterations"
        assert error.category == ErrorCategory.CONFIG_INVALID


class TestCategories:
    def test_every_category_has_an_error_type(self):
        errors = [
            ProviderError("x"),
            ExtractionFailure("x"),
            SandboxViolation("/a", "/t", "outside"),
            ToolNotFoundError("x"),
            ToolExecutionError("x"),
            ToolValidationError("x"),
            IterationBoundExceeded(1),
            ConfigurationError("x"),
            AgentLoopError("x"),
        ]
        assert {e.category for e in errors} == set(ErrorCategory)
