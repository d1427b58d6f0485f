"""
Trigger runtime hosting database-triggered functions.

Functions register a path pattern and an async handler. When the data store
reports a write, the runtime works out which watched nodes changed, builds one
MutationEvent per node, and runs each matching handler as its own asyncio
task (an "invocation").

Design decisions:
- Writers are never blocked: notify_write() only schedules invocations
- Each invocation is independent; many may run concurrently
- An invocation is marked complete only after its handler returns, so
  anything the handler awaits (an HTTP call, a log line) happens first
- Handler exceptions mark the invocation FAILED and are logged; they are
  never raised back to the writer
- The most recent invocations are kept in a bounded history for inspection
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional
from uuid import uuid4

from triggers.events import MutationEvent, mutation_event
from triggers.paths import PathPattern, split_path, value_at

logger = logging.getLogger("trigger_runtime")


# Type alias for trigger handler coroutines
TriggerHandler = Callable[[MutationEvent], Awaitable[Any]]

DEFAULT_HISTORY_LIMIT = 1000


class InvocationStatus(str, Enum):
    """Lifecycle of a single handler run."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Invocation:
    """
    One handler run for one event.

    The done signal is set only after the handler has returned or raised.
    """
    function_name: str
    event: MutationEvent
    invocation_id: str = field(default_factory=lambda: str(uuid4()))
    status: InvocationStatus = InvocationStatus.PENDING
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error: Optional[str] = None
    _done: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def completed(self) -> bool:
        """True once the invocation has settled, successfully or not."""
        return self._done.is_set()

    async def wait(self) -> "Invocation":
        """Wait until the invocation has settled."""
        await self._done.wait()
        return self

    def __str__(self) -> str:
        return f"Invocation({self.function_name}, id={self.invocation_id[:8]}, status={self.status.value})"


@dataclass
class TriggerRegistration:
    """A function registered against a path pattern."""
    name: str
    pattern: PathPattern
    handler: TriggerHandler


class TriggerRuntime:
    """
    Runs registered functions in response to data store writes.

    Example usage:
        runtime = TriggerRuntime()
        runtime.register("/messages/{id}", notifier.on_mutation, name="notifyAllUsers")

        store = RealtimeDataStore()
        store.add_listener(runtime.notify_write)

        store.set("/messages/abc", {"text": "hi"})   # schedules one invocation
        await runtime.drain()                        # wait for it to finish
    """

    def __init__(self, history_limit: int = DEFAULT_HISTORY_LIMIT):
        """
        Args:
            history_limit: How many finished or running invocations to remember
        """
        self._registrations: list[TriggerRegistration] = []
        self._pending: set[asyncio.Task] = set()
        self._invocations: deque[Invocation] = deque(maxlen=history_limit)

    def register(
        self,
        pattern: str,
        handler: TriggerHandler,
        name: Optional[str] = None,
    ) -> TriggerRegistration:
        """
        Register a handler for all writes at or below pattern.

        Args:
            pattern: Path pattern such as "/messages/{id}"
            handler: Async callable taking a MutationEvent
            name: Function name used in logs (defaults to the handler's name)

        Raises:
            ValueError: If the pattern is malformed or the name is taken
        """
        name = name or getattr(handler, "__name__", "handler")
        if self.is_registered(name):
            raise ValueError(f"A function named '{name}' is already registered")

        registration = TriggerRegistration(name=name, pattern=PathPattern(pattern), handler=handler)
        self._registrations.append(registration)
        logger.info(f"Registered function '{name}' on {registration.pattern.raw}")
        return registration

    def unregister(self, name: str) -> bool:
        """
        Remove a registered function.

        Returns:
            True if the function was found and removed, False otherwise
        """
        for registration in self._registrations:
            if registration.name == name:
                self._registrations.remove(registration)
                logger.info(f"Unregistered function '{name}'")
                return True
        return False

    def get_registration_count(self) -> int:
        return len(self._registrations)

    def is_registered(self, name: str) -> bool:
        return any(r.name == name for r in self._registrations)

    # =========================================================================
    # Dispatch
    # =========================================================================

    def events_for_write(
        self,
        registration: TriggerRegistration,
        path: str,
        before: Any,
        after: Any,
    ) -> list[MutationEvent]:
        """
        Build the events a write produces for one registration.

        Args:
            registration: The registered function
            path: Path that was written
            before: Whole data tree before the write
            after: Whole data tree after the write
        """
        events = []
        for concrete, params in registration.pattern.affected_paths(path, before, after):
            segments = split_path(concrete)
            event = mutation_event(
                path=concrete,
                params=params,
                before=value_at(before, segments),
                after=value_at(after, segments),
            )
            if event is not None:
                events.append(event)
        return events

    def notify_write(self, path: str, before: Any, after: Any) -> list[Invocation]:
        """
        Schedule invocations for a data store write without waiting for them.

        Must be called from inside a running event loop.

        Returns:
            The scheduled invocations (not yet complete)
        """
        invocations = []
        for registration in list(self._registrations):
            for event in self.events_for_write(registration, path, before, after):
                invocations.append(self._schedule(registration, event))

        if not invocations:
            logger.debug(f"No functions triggered by write to {path}")
        return invocations

    async def dispatch(self, event: MutationEvent) -> list[Invocation]:
        """
        Run every function whose pattern matches the event's path and wait.

        Returns:
            The settled invocations
        """
        invocations = [
            self._schedule(registration, event)
            for registration in list(self._registrations)
            if registration.pattern.match(event.path) is not None
        ]
        for invocation in invocations:
            await invocation.wait()
        return invocations

    def _schedule(self, registration: TriggerRegistration, event: MutationEvent) -> Invocation:
        loop = asyncio.get_running_loop()
        invocation = Invocation(function_name=registration.name, event=event)
        self._invocations.append(invocation)

        logger.info(f"Triggering {registration.name} for {event}")

        task = loop.create_task(self._run(registration, invocation))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return invocation

    async def _run(self, registration: TriggerRegistration, invocation: Invocation) -> None:
        invocation.status = InvocationStatus.RUNNING
        invocation.started_at = datetime.utcnow()
        try:
            await registration.handler(invocation.event)
        except Exception as e:
            invocation.status = InvocationStatus.FAILED
            invocation.error = str(e)
            logger.error(f"Function {registration.name} raised for {invocation.event}: {e}")
        else:
            invocation.status = InvocationStatus.COMPLETED
        finally:
            invocation.finished_at = datetime.utcnow()
            invocation._done.set()
            logger.info(f"Finished {invocation}")

    async def drain(self) -> None:
        """Wait until every scheduled invocation has settled."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # =========================================================================
    # History
    # =========================================================================

    def get_invocations(self) -> list[Invocation]:
        """Get the recorded invocations, oldest first."""
        return list(self._invocations)

    def clear_invocations(self) -> None:
        self._invocations.clear()

