"""
Database trigger hosting.

This package provides what a serverless platform normally provides around a
database-triggered function:
- Path patterns with wildcard segments
- Mutation events describing a watched node before and after a write
- A runtime that runs each handler as an awaited, independent invocation
"""

from triggers.events import ChangeType, MutationEvent, mutation_event
from triggers.paths import PathPattern
from triggers.runtime import (
    Invocation,
    InvocationStatus,
    TriggerRuntime,
)

__all__ = [
    "ChangeType",
    "MutationEvent",
    "mutation_event",
    "PathPattern",
    "Invocation",
    "InvocationStatus",
    "TriggerRuntime",
]
