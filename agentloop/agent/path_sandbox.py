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

"""Path sandbox: canonicalize model-chosen paths under a tenant root.

Models write paths in many broken ways (``~Desktop/x``, ``/~/x``, ``~:x``,
``desktop/x`` or a bare ``x``). ``PathSandbox.resolve`` runs an ordered list
of ``RewriteRule`` objects that turn all of these into one absolute path
like ``/<tenant>/Desktop/x``. Resolution never fails. ``validate`` is the
security check, and it raises ``SandboxViolation`` for anything outside the
tenant root or containing a ``..`` segment.

Example:
    sandbox = PathSandbox("0xabc")
    sandbox.resolve("~Notes")          # '/0xabc/Desktop/Notes'
    sandbox.resolve("documents/a.txt") # '/0xabc/Documents/a.txt'
    sandbox.validate("/0xabc/../etc")  # raises SandboxViolation
"""

import logging
import re
from dataclasses import dataclass
from re import Match, Pattern
from typing import Callable, List, Optional, Sequence, Union

from agentloop.agent.debug_logger import TRACE
from agentloop.config.settings import STANDARD_DIRECTORIES
from agentloop.core.errors import SandboxViolation

logger = logging.getLogger(__name__)

_STD_ALTERNATION = "|".join(STANDARD_DIRECTORIES)
_MENTION_PATTERN = re.compile(
    r"\b(?:on|in|at)\s+(?:my\s+)?(" + _STD_ALTERNATION + r"|home|~)(?=$|[\s.,!?;:'\"/)])",
    re.IGNORECASE,
)


def canonical_directory(name: str) -> Optional[str]:
    """Standard directory name in canonical case, or None."""
    for candidate in STANDARD_DIRECTORIES:
        if candidate.lower() == name.lower():
            return candidate
    return None


@dataclass(frozen=True)
class PathContext:
    """Per-request hints used while resolving paths.

    Attributes:
        mentioned_directory: Directory the user named in their message
            ("Documents", "home", ...), used to place bare names
    """

    mentioned_directory: Optional[str] = None

    @classmethod
    def from_text(cls, text: str) -> "PathContext":
        return cls(mentioned_directory=detect_mentioned_directory(text))

    @property
    def target_directory(self) -> Optional[str]:
        """Canonical standard directory, "" for home, None when absent."""
        if not self.mentioned_directory:
            return None
        if self.mentioned_directory.lower() in ("home", "~"):
            return ""
        return canonical_directory(self.mentioned_directory)


def detect_mentioned_directory(text: str) -> Optional[str]:
    """Find phrases like "on my desktop" or "in documents" in user text."""
    if not text:
        return None
    match = _MENTION_PATTERN.search(text)
    if not match:
        return None
    word = match.group(1)
    if word.lower() in ("home", "~"):
        return "home"
    return canonical_directory(word)


Replacement = Union[str, Callable[[Match[str], PathContext], str]]


@dataclass(frozen=True)
class RewriteRule:
    """One named ``pattern -> replacement`` step of path resolution.

    ``replacement`` is either a ``re.sub`` template or a callable taking the
    match and the request context. ``count`` of 0 replaces every match.
    """

    name: str
    pattern: Pattern[str]
    replacement: Replacement
    count: int = 1

    def apply(self, path: str, context: PathContext) -> str:
        if isinstance(self.replacement, str):
            return self.pattern.sub(self.replacement, path, count=self.count)
        replace = self.replacement
        return self.pattern.sub(lambda m: replace(m, context), path, count=self.count)


def build_rules(tenant_root: str, default_directory: str = "Desktop") -> List[RewriteRule]:
    """Ordered rewrite rules for one tenant."""
    tenant = re.escape(tenant_root)
    std = _STD_ALTERNATION

    def placement(context: PathContext) -> str:
        target = context.target_directory
        if target is None:
            return f"~/{default_directory}/"
        return f"~/{target}/" if target else "~/"

    def canonical_case(match: Match[str]) -> str:
        prefix = match.group(1) or "~/"
        return prefix + (canonical_directory(match.group(2)) or match.group(2))

    def into_mentioned(match: Match[str], context: PathContext) -> str:
        target = context.target_directory
        if not target:
            return match.group(0)
        return f"~/{target}/{match.group(1)}"

    return [
        RewriteRule(
            "tenant_missing_separator",
            re.compile(rf"^/{tenant}(?=(?:{std})(?:/|$))", re.IGNORECASE),
            lambda m, ctx: f"/{tenant_root}/",
        ),
        RewriteRule("colon_after_home", re.compile(r"~:"), "~/", count=0),
        RewriteRule("leading_separator_before_home", re.compile(r"^/~"), "~"),
        RewriteRule("embedded_home_marker", re.compile(r"/~"), "/", count=0),
        RewriteRule(
            "home_standard_directory",
            re.compile(rf"^~(?=(?:{std})(?:/|$))", re.IGNORECASE),
            "~/",
        ),
        RewriteRule(
            "home_bare_name",
            re.compile(r"^~([^/]+)$"),
            lambda m, ctx: placement(ctx) + m.group(1),
        ),
        RewriteRule("home_missing_separator", re.compile(r"^~(?=[^/])"), "~/"),
        RewriteRule(
            "standard_directory_case",
            re.compile(rf"^(~/|/{tenant}/|/)?({std})(?=/|$)", re.IGNORECASE),
            lambda m, ctx: canonical_case(m),
        ),
        RewriteRule(
            "mentioned_directory",
            re.compile(rf"^~/(?!(?:{std})$)([^/]+)$", re.IGNORECASE),
            into_mentioned,
        ),
        RewriteRule(
            "bare_name",
            re.compile(r"^([^~/][^/]*)$"),
            lambda m, ctx: placement(ctx) + m.group(1),
        ),
        RewriteRule("anchor_home", re.compile(r"^~(?=/|$)"), lambda m, ctx: f"/{tenant_root}"),
        RewriteRule("anchor_relative", re.compile(r"^(?!/)"), lambda m, ctx: f"/{tenant_root}/"),
        RewriteRule(
            "anchor_absolute",
            re.compile(rf"^/(?!{tenant}(?:/|$))"),
            lambda m, ctx: f"/{tenant_root}/",
        ),
        RewriteRule("collapse_separators", re.compile(r"/{2,}"), "/", count=0),
        RewriteRule("strip_trailing_separator", re.compile(r"(?<=.)/$"), ""),
    ]


class PathSandbox:
    """Resolve and validate paths for a single tenant."""

    def __init__(
        self,
        tenant_root: str,
        default_directory: str = "Desktop",
        rules: Optional[Sequence[RewriteRule]] = None,
    ):
        tenant_root = tenant_root.strip().strip("/")
        if not tenant_root:
            raise ValueError("tenant_root must be a non-empty identifier")
        self.tenant_root = tenant_root
        self.root_path = f"/{tenant_root}"
        self.default_directory = canonical_directory(default_directory) or default_directory
        self.rules: List[RewriteRule] = list(
            rules if rules is not None else build_rules(tenant_root, self.default_directory)
        )

    def resolve(self, raw: Optional[object], context: Optional[PathContext] = None) -> str:
        """Canonical absolute path for ``raw``. Never raises."""
        if raw is None:
            return self.root_path
        path = str(raw).strip()
        if not path:
            return self.root_path

        context = context or PathContext()
        for rule in self.rules:
            rewritten = rule.apply(path, context)
            if rewritten != path:
                logger.log(TRACE, f"[sandbox] {rule.name}: {path!r} -> {rewritten!r}")
                path = rewritten
        return path

    def validate(self, canonical: str) -> str:
        """Return ``canonical`` unchanged if it stays inside the tenant root.

        Raises:
            SandboxViolation: Outside the root, traversal segment, or NUL byte
        """
        if "\x00" in canonical:
            raise SandboxViolation(canonical, self.tenant_root, "NUL byte in path")
        if ".." in re.split(r"[/\\]", canonical):
            raise SandboxViolation(canonical, self.tenant_root, "path traversal")
        if canonical != self.root_path and not canonical.startswith(self.root_path + "/"):
            raise SandboxViolation(canonical, self.tenant_root, "outside tenant root")
        return canonical

    def resolve_and_validate(
        self, raw: Optional[object], context: Optional[PathContext] = None
    ) -> str:
        canonical = self.resolve(raw, context)
        try:
            return self.validate(canonical)
        except SandboxViolation:
            logger.warning(f"[sandbox] Rejected {raw!r} (resolved to {canonical!r})")
            raise

    def relative(self, canonical: str) -> str:
        """Display form of a canonical path, with the root shown as ``~``."""
        if canonical == self.root_path:
            return "~"
        if canonical.startswith(self.root_path + "/"):
            return "~" + canonical[len(self.root_path) :]
        return canonical
