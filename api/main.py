"""
FastAPI host for the change notifier.

This application plays the part of the database platform:
1. Data endpoints write to the realtime data store (/data/...)
2. Writes fire the registered ChangeNotifier function in the background
3. Invocation endpoints show what the function did (/invocations)

Run with:
    uv run uvicorn api.main:app --reload

Configuration comes from NOTIFIER_* environment variables or the JSON file
named by NOTIFIER_CONFIG (see shared/config.py).
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, HTTPException
from pydantic import BaseModel

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
    datefmt="%H:%M:%S",
)

from api.bootstrap import AppContext, resume_app, shutdown_app, start_app
from shared.config import ConfigError, load_config
from triggers.paths import normalize_path
from triggers.runtime import Invocation


# Response models
class WriteResult(BaseModel):
    """Result of a data write."""
    path: str
    invocations: list[str]
    waited: bool


class InvocationSummary(BaseModel):
    """One function invocation, as shown by /invocations."""
    invocation_id: str
    function_name: str
    event_id: str
    path: str
    change_type: str
    status: str
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error: Optional[str] = None

    @classmethod
    def from_invocation(cls, invocation: Invocation) -> "InvocationSummary":
        return cls(
            invocation_id=invocation.invocation_id,
            function_name=invocation.function_name,
            event_id=invocation.event.event_id,
            path=invocation.event.path,
            change_type=invocation.event.change_type.value,
            status=invocation.status.value,
            started_at=invocation.started_at,
            finished_at=invocation.finished_at,
            error=invocation.error,
        )


# Module-level context (set by the lifespan, or by tests)
_context: Optional[AppContext] = None
# True when the lifespan built _context and must drop it on shutdown
_owns_context: bool = False


def reset_api_state(context: Optional[AppContext] = None) -> None:
    """Replace the app context (for testing). The lifespan adopts it and never drops it."""
    global _context, _owns_context
    _context = context
    _owns_context = False


def get_context() -> AppContext:
    if _context is None:
        raise HTTPException(status_code=503, detail="Notifier is not started")
    return _context


# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    global _context, _owns_context
    logging.info("Starting change notifier host")
    if _context is None:
        try:
            _context = start_app(load_config())
        except ConfigError as e:
            logging.error(f"Cannot start: {e}")
            raise
        _owns_context = True
    else:
        resume_app(_context)
    context = _context
    yield
    await shutdown_app(context)
    if _owns_context:
        _context = None
        _owns_context = False
    logging.info("Shutting down")


# Create the FastAPI app
app = FastAPI(
    title="Change Notifier",
    description="""
    Realtime data store host with a database-triggered push notifier.

    Any write under the watched path sends one notification to all
    subscribers through the push provider.

    ## Endpoints

    - `/data/{path}` - read, set, update or delete data
    - `/invocations` - function invocations and their outcomes
    """,
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "change-notifier"}


# =============================================================================
# Data Endpoints
# =============================================================================

def _scheduled_invocations(listener_results: list[Any]) -> list[Invocation]:
    """Pick the invocations out of what the data store listeners returned."""
    return [
        invocation
        for result in listener_results
        if isinstance(result, list)
        for invocation in result
        if isinstance(invocation, Invocation)
    ]


async def _write(context: AppContext, path: str, wait: bool, write) -> WriteResult:
    """Run a store write and report the invocations it scheduled."""
    try:
        results = write()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    scheduled = _scheduled_invocations(results)
    if wait:
        for invocation in scheduled:
            await invocation.wait()

    return WriteResult(
        path=normalize_path(path),
        invocations=[i.invocation_id for i in scheduled],
        waited=wait,
    )


@app.get("/data/{path:path}", tags=["Data"])
def read_data(path: str, context: AppContext = Depends(get_context)) -> Any:
    """Read the value stored at a path (null if nothing is there)."""
    try:
        return context.data_store.get(path)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.put("/data/{path:path}", response_model=WriteResult, tags=["Data"])
async def set_data(
    path: str,
    value: Any = Body(None),
    wait: bool = False,
    context: AppContext = Depends(get_context),
) -> WriteResult:
    """
    Replace the value at a path.

    Returns as soon as triggered functions are scheduled, unless wait=true.
    """
    return await _write(context, path, wait, lambda: context.data_store.set(path, value))


@app.patch("/data/{path:path}", response_model=WriteResult, tags=["Data"])
async def update_data(
    path: str,
    values: dict[str, Any] = Body(...),
    wait: bool = False,
    context: AppContext = Depends(get_context),
) -> WriteResult:
    """Merge children into the node at a path."""
    return await _write(context, path, wait, lambda: context.data_store.update(path, values))


@app.delete("/data/{path:path}", response_model=WriteResult, tags=["Data"])
async def delete_data(
    path: str,
    wait: bool = False,
    context: AppContext = Depends(get_context),
) -> WriteResult:
    """Delete the node at a path."""
    return await _write(context, path, wait, lambda: context.data_store.delete(path))


# =============================================================================
# Invocation Endpoints
# =============================================================================

@app.get("/invocations", response_model=list[InvocationSummary], tags=["Invocations"])
def list_invocations(context: AppContext = Depends(get_context)) -> list[InvocationSummary]:
    """List function invocations, oldest first."""
    return [InvocationSummary.from_invocation(i) for i in context.runtime.get_invocations()]


@app.get("/startup", tags=["Health"])
def startup_steps(context: AppContext = Depends(get_context)):
    """Show the startup sequence that ran."""
    return [
        {"name": s.name, "status": s.status, "detail": s.detail}
        for s in context.steps
    ]
