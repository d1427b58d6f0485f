"""
Mutation events emitted by the realtime data store.

A MutationEvent describes one watched node before and after a write. The
change type is derived from which side is present:
- before missing, after present  -> CREATE
- both present                   -> UPDATE
- before present, after missing  -> DELETE

Events are transient: they are built per write, handed to trigger handlers
once, and not stored by the handlers.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4


def _same_json(before: Any, after: Any) -> bool:
    # 1, 1.0 and True compare equal in Python but are different JSON values
    return json.dumps(before, sort_keys=True) == json.dumps(after, sort_keys=True)


class ChangeType(str, Enum):
    """Kinds of writes a trigger reacts to."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


def classify_change(before: Any, after: Any) -> Optional[ChangeType]:
    """
    Determine the change type for a node, or None if the node did not change.
    """
    if _same_json(before, after):
        return None
    if before is None:
        return ChangeType.CREATE
    if after is None:
        return ChangeType.DELETE
    return ChangeType.UPDATE


@dataclass
class MutationEvent:
    """
    A change to one node under a watched path.

    Attributes:
        path: Concrete path of the watched node (e.g. "/messages/abc")
        params: Wildcard bindings from the trigger pattern (e.g. {"id": "abc"})
        before: Node value before the write (None if it did not exist)
        after: Node value after the write (None if it was deleted)
        change_type: CREATE, UPDATE or DELETE
        event_id: Unique identifier for this event
        timestamp: When the write happened
    """
    path: str
    params: dict[str, str]
    before: Any
    after: Any
    change_type: ChangeType
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def __str__(self) -> str:
        return f"MutationEvent({self.change_type.value}, path={self.path}, id={self.event_id[:8]})"


def mutation_event(
    path: str,
    params: dict[str, str],
    before: Any,
    after: Any,
) -> Optional[MutationEvent]:
    """
    Create a MutationEvent for a node, or None if before and after are equal.
    """
    change_type = classify_change(before, after)
    if change_type is None:
        return None
    return MutationEvent(
        path=path,
        params=dict(params),
        before=before,
        after=after,
        change_type=change_type,
    )
