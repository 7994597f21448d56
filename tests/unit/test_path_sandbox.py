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

"""Tests for path resolution and validation."""

import pytest

from agentloop.agent.path_sandbox import (
    PathContext,
    PathSandbox,
    build_rules,
    canonical_directory,
    detect_mentioned_directory,
)
from agentloop.core.errors import SandboxViolation

DOCUMENTS = PathContext(mentioned_directory="Documents")
HOME = PathContext(mentioned_directory="home")


class TestResolve:
    """Tests for PathSandbox.resolve()."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            (None, "/0xabc"),
            ("", "/0xabc"),
            ("   ", "/0xabc"),
            ("~", "/0xabc"),
            ("~/", "/0xabc"),
            ("Notes", "/0xabc/Desktop/Notes"),
            ("~Notes", "/0xabc/Desktop/Notes"),
            ("~/Desktop/Notes", "/0xabc/Desktop/Notes"),
            ("~Desktop/a.txt", "/0xabc/Desktop/a.txt"),
            ("~desktop/a.txt", "/0xabc/Desktop/a.txt"),
            ("~/desktop/a.txt", "/0xabc/Desktop/a.txt"),
            ("desktop/a.txt", "/0xabc/Desktop/a.txt"),
            ("documents/a.txt", "/0xabc/Documents/a.txt"),
            ("~:Desktop/a.txt", "/0xabc/Desktop/a.txt"),
            ("/~/Desktop/a.txt", "/0xabc/Desktop/a.txt"),
            ("/0xabc/~/Desktop/a.txt", "/0xabc/Desktop/a.txt"),
            ("/0xabcDesktop/a.txt", "/0xabc/Desktop/a.txt"),
            ("/0xabc/documents", "/0xabc/Documents"),
            ("~/Notes", "/0xabc/Notes"),
            ("~Notes/todo.txt", "/0xabc/Notes/todo.txt"),
            ("/Desktop/x", "/0xabc/Desktop/x"),
            ("a/b", "/0xabc/a/b"),
            ("/etc/passwd", "/0xabc/etc/passwd"),
            ("~//Desktop///a/", "/0xabc/Desktop/a"),
            ("/0xabc/Desktop/a.txt", "/0xabc/Desktop/a.txt"),
        ],
    )
    def test_canonical_forms(self, sandbox, raw, expected):
        assert sandbox.resolve(raw) == expected

    def test_mentioned_directory_places_bare_names(self, sandbox):
        assert sandbox.resolve("Notes", DOCUMENTS) == "/0xabc/Documents/Notes"
        assert sandbox.resolve("~Notes", DOCUMENTS) == "/0xabc/Documents/Notes"
        assert sandbox.resolve("~/Notes", DOCUMENTS) == "/0xabc/Documents/Notes"

    def test_mentioned_home(self, sandbox):
        assert sandbox.resolve("Notes", HOME) == "/0xabc/Notes"
        assert sandbox.resolve("~Notes", HOME) == "/0xabc/Notes"

    def test_explicit_directory_beats_mention(self, sandbox):
        assert sandbox.resolve("~/Desktop/Notes", DOCUMENTS) == "/0xabc/Desktop/Notes"
        assert sandbox.resolve("~/Documents", DOCUMENTS) == "/0xabc/Documents"

    def test_default_directory(self):
        sandbox = PathSandbox("0xabc", default_directory="documents")
        assert sandbox.default_directory == "Documents"
        assert sandbox.resolve("Notes") == "/0xabc/Documents/Notes"

    def test_resolve_is_idempotent(self, sandbox):
        for raw in ("~Notes", "desktop/a", "/~/x", "Notes"):
            once = sandbox.resolve(raw)
            assert sandbox.resolve(once) == once

    def test_custom_rules(self):
        rules = build_rules("t")[-5:]
        sandbox = PathSandbox("t", rules=rules)
        assert sandbox.resolve("Notes") == "/t/Notes"


class TestValidate:
    """Tests for PathSandbox.validate()."""

    @pytest.mark.parametrize(
        "path", ["/0xabc", "/0xabc/Desktop", "/0xabc/Desktop/a..b", "/0xabc/.hidden"]
    )
    def test_allowed(self, sandbox, path):
        assert sandbox.validate(path) == path

    @pytest.mark.parametrize(
        "path,reason",
        [
            ("/0xabc/../etc", "path traversal"),
            ("/0xabc/Desktop/..", "path traversal"),
            ("/0xabc/a\\..\\b", "path traversal"),
            ("/0xabcdef/x", "outside tenant root"),
            ("/other/x", "outside tenant root"),
            ("/0xabc/a\x00b", "NUL byte in path"),
        ],
    )
    def test_rejected(self, sandbox, path, reason):
        with pytest.raises(SandboxViolation) as exc_info:
            sandbox.validate(path)
        assert exc_info.value.reason == reason

    @pytest.mark.parametrize("raw", ["../etc/passwd", "~/../x", "~/Desktop/../../etc", ".."])
    def test_traversal_never_resolves_to_valid(self, sandbox, raw):
        with pytest.raises(SandboxViolation):
            sandbox.resolve_and_validate(raw)

    def test_resolve_and_validate(self, sandbox):
        assert sandbox.resolve_and_validate("~Notes") == "/0xabc/Desktop/Notes"


class TestSandboxMisc:
    def test_tenant_root_is_trimmed(self):
        sandbox = PathSandbox(" /0xabc/ ")
        assert sandbox.tenant_root == "0xabc"
        assert sandbox.root_path == "/0xabc"

    def test_empty_tenant_rejected(self):
        with pytest.raises(ValueError):
            PathSandbox("/")

    def test_relative(self, sandbox):
        assert sandbox.relative("/0xabc") == "~"
        assert sandbox.relative("/0xabc/Desktop/a") == "~/Desktop/a"
        assert sandbox.relative("/other") == "/other"


class TestPathContext:
    """Tests for mentioned-directory detection."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("create a folder on my desktop", "Desktop"),
            ("Save this in Downloads.", "Downloads"),
            ("put it in documents please", "Documents"),
            ("make a folder in my home", "home"),
            ("create a folder called Notes", None),
            ("", None),
        ],
    )
    def test_detect(self, text, expected):
        assert detect_mentioned_directory(text) == expected

    def test_target_directory(self):
        assert PathContext().target_directory is None
        assert HOME.target_directory == ""
        assert DOCUMENTS.target_directory == "Documents"
        assert PathContext.from_text("on my desktop").target_directory == "Desktop"

    def test_canonical_directory(self):
        assert canonical_directory("MUSIC") == "Music"
        assert canonical_directory("Secrets") is None
