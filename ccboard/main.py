"""ccboard FastAPI app: serves the dashboard snapshot to renderers."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ccboard import config
from ccboard.observability import initialize as initialize_observability, shutdown as shutdown_observability
from ccboard.routers.api import dashboard_router
from ccboard.runtime import DashboardRuntime

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("ccboard")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("ccboard starting up (tasks=%s hooks=%s)", config.TASKS_PATH, config.HOOKS_DIR)
    initialize_observability(app)

    # 1. Initial parse of TASKS.md and full hook replay
    runtime = DashboardRuntime(config.TASKS_PATH, config.HOOKS_DIR)
    runtime.bootstrap()
    app.state.runtime = runtime

    # 2. Live reload (best effort)
    runtime.start_watcher()

    # 3. Main loop
    app.state.loop_task = asyncio.create_task(runtime.run())

    yield

    logger.info("ccboard shutting down")
    await runtime.stop()
    app.state.loop_task.cancel()
    try:
        await app.state.loop_task
    except asyncio.CancelledError:
        pass
    shutdown_observability()


app = FastAPI(
    title="ccboard API",
    description="Live state of a multi-agent Claude Code run: TASKS.md progress and hook events",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(dashboard_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    runtime = getattr(app.state, "runtime", None)
    return {
        "status": "ok" if runtime else "starting",
        "watcher": "running" if runtime and not runtime.degraded else "stopped",
        "degraded": bool(runtime.degraded) if runtime else True,
    }
