"""
Explicit startup sequence for the notifier host.

Every collaborator is created here, in order, and handed to the next one.
Nothing is stored in module globals by this module; the caller keeps the
returned AppContext.

Steps:
1. data_store      - create (or adopt) the realtime data store
2. trigger_runtime - create (or adopt) the runtime and attach it to the store
3. push_sdk        - initialize the push channel natively, or defer it to
                     the function plugin layer (see PushInitMode)
4. functions       - register ChangeNotifier on the watched path

shutdown_app() detaches everything; resume_app() re-attaches a context that
is reused by a later startup.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import httpx

from functions.change_notifier import FUNCTION_NAME, ChangeNotifier
from shared.channels import PushChannel
from shared.config import NotifierConfig, PushInitMode
from shared.data_store import RealtimeDataStore
from triggers.runtime import TriggerRuntime

logger = logging.getLogger("bootstrap")


@dataclass
class StartupStep:
    """Record of one startup step."""
    name: str
    status: str  # "done" or "deferred"
    detail: str = ""


@dataclass
class AppContext:
    """Everything the host needs after startup."""
    config: NotifierConfig
    data_store: RealtimeDataStore
    runtime: TriggerRuntime
    notifier: ChangeNotifier
    steps: list[StartupStep] = field(default_factory=list)

    def step_names(self) -> list[str]:
        return [s.name for s in self.steps]


def start_app(
    config: NotifierConfig,
    data_store: Optional[RealtimeDataStore] = None,
    runtime: Optional[TriggerRuntime] = None,
    seed_file: Optional[Path] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AppContext:
    """
    Run the startup sequence.

    Args:
        config: Loaded notifier configuration
        data_store: Existing store to adopt (a new one is created otherwise)
        runtime: Existing trigger runtime to adopt (a new one is created otherwise)
        seed_file: JSON file to seed a newly created store with
        transport: httpx transport for the push channel (tests only)
    """
    steps: list[StartupStep] = []

    if data_store is None:
        data_store = RealtimeDataStore(seed_file=seed_file)
        steps.append(StartupStep("data_store", "done", "created"))
    else:
        steps.append(StartupStep("data_store", "done", "adopted"))

    runtime = runtime or TriggerRuntime()
    data_store.add_listener(runtime.notify_write)
    steps.append(StartupStep("trigger_runtime", "done", "listening to data store writes"))

    channel: Optional[PushChannel] = None
    if config.push_init_mode == PushInitMode.NATIVE:
        channel = PushChannel.from_config(config, transport=transport)
        steps.append(StartupStep("push_sdk", "done", f"initialized natively for {config.api_url}"))
    else:
        steps.append(StartupStep("push_sdk", "deferred", "initialized by the function plugin"))

    notifier = ChangeNotifier(config, channel=channel, transport=transport)
    notifier.register(runtime)
    steps.append(StartupStep("functions", "done", f"{FUNCTION_NAME} on {config.watched_path}"))

    for step in steps:
        logger.info(f"Startup step {step.name}: {step.status} ({step.detail})")

    return AppContext(
        config=config,
        data_store=data_store,
        runtime=runtime,
        notifier=notifier,
        steps=steps,
    )


def resume_app(context: AppContext) -> None:
    """
    Re-attach a context that was shut down, so writes fire functions again.

    Safe to call on a context that is still attached.
    """
    if not context.data_store.has_listener(context.runtime.notify_write):
        context.data_store.add_listener(context.runtime.notify_write)
    if not context.runtime.is_registered(FUNCTION_NAME):
        context.notifier.register(context.runtime)
    logger.info("Resumed existing app context")


async def shutdown_app(context: AppContext) -> None:
    """Wait for in-flight invocations, then detach everything."""
    await context.runtime.drain()
    context.runtime.unregister(FUNCTION_NAME)
    context.data_store.remove_listener(context.runtime.notify_write)
    logger.info("Shutdown complete")
