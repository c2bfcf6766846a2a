import asyncio
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from sensornet_core.config.environments import get_settings
from starlette.concurrency import run_in_threadpool

from sensornet_server.adapters.api import maintenance_routes, telemetry_routes, ws_routes
from sensornet_server.adapters.api.errors import register_error_handlers
from sensornet_server.adapters.api.routes import router
from sensornet_server.runtime import ServiceRuntime


def create_app(runtime: Optional[ServiceRuntime] = None, ingest: Optional[bool] = None) -> FastAPI:
    """Build the API; with ``ingest`` the MQTT pipeline runs inside the same process."""
    if runtime is None:
        runtime = ServiceRuntime(get_settings())
    if ingest is None:
        ingest = os.getenv("SENSORNET_API_INGEST", "1") != "0"

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        runtime.hub.bind_loop(asyncio.get_running_loop())
        if ingest:
            await run_in_threadpool(runtime.start)
        yield
        if ingest:
            await run_in_threadpool(runtime.drain)

    app = FastAPI(title="SensorNet telemetry", lifespan=lifespan)
    app.state.runtime = runtime
    register_error_handlers(app)
    app.include_router(router)
    app.include_router(telemetry_routes.router)
    app.include_router(maintenance_routes.router)
    app.include_router(ws_routes.router)
    return app


app = create_app()
