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

"""Change notifications for filesystem mutations made by the agent.

The executor publishes one ChangeEvent per mutation. A live-update
transport (outside this package) subscribes through a ChangeNotifier and
uses ``agent_originated`` to tell agent actions apart from direct user
actions.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable


class ChangeType(str, Enum):
    """Kinds of storage change."""

    ITEM_ADDED = "item-added"
    """A file or folder was created (or copied into place)."""

    ITEM_REMOVED = "item-removed"
    """A file or folder was deleted."""

    ITEM_MOVED = "item-moved"
    """A file or folder was moved or renamed."""

    ITEM_UPDATED = "item-updated"
    """An existing file was rewritten or touched."""


@dataclass
class ChangeEvent:
    """A single storage change made on behalf of a tenant."""

    type: ChangeType
    path: str
    tenant_id: str
    agent_originated: bool = True
    old_path: Optional[str] = None
    is_dir: bool = False
    size: int = 0
    mime_type: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    @property
    def name(self) -> str:
        return self.path.rstrip("/").rsplit("/", 1)[-1]

    @property
    def dirpath(self) -> str:
        parent = self.path.rstrip("/").rsplit("/", 1)[0]
        return parent or "/"

    @property
    def uid(self) -> str:
        """Stable identifier derived from the path."""
        return "uuid-" + self.path.replace("/", "-")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data.update(name=self.name, dirpath=self.dirpath, uid=self.uid)
        return data


@runtime_checkable
class ChangeNotifier(Protocol):
    """Sink for change events."""

    def publish(self, event: ChangeEvent) -> None:
        ...


class NullNotifier:
    """Discards every event."""

    def publish(self, event: ChangeEvent) -> None:
        return None


class CollectingNotifier:
    """Keeps events in memory, in publish order."""

    def __init__(self) -> None:
        self.events: List[ChangeEvent] = []

    def publish(self, event: ChangeEvent) -> None:
        self.events.append(event)

    def of_type(self, change_type: ChangeType) -> List[ChangeEvent]:
        return [e for e in self.events if e.type == change_type]

    def clear(self) -> None:
        self.events.clear()


class CallbackNotifier:
    """Forwards each event, as a dict, to a callable."""

    def __init__(self, callback: Callable[[Dict[str, Any]], None]):
        self._callback = callback

    def publish(self, event: ChangeEvent) -> None:
        self._callback(event.to_dict())
