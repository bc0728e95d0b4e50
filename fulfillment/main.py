"""FastAPI application for the media fulfillment service.

Web service entry point: customer-file uploads, order delivery lifecycle,
operational jobs, and the background expiry sweep.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from fulfillment.config import is_expiry_sweep_enabled
from fulfillment.database import async_session_factory
from fulfillment.dependencies import build_services
from fulfillment.exceptions import FulfillmentError
from fulfillment.routes import jobs, orders, uploads
from fulfillment.services.expiry_reaper import expiry_sweep_loop
from fulfillment.utils.logging import clear_context, configure_logging, get_logger

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup/shutdown of shared clients and background tasks.

    Startup:
    - Configure logging
    - Build clients and services from the environment
    - Start expiry_sweep_loop background task (if enabled and a DB is configured)

    Shutdown:
    - Cancel sweep task gracefully
    - Drain pending notifications and close HTTP clients
    """
    configure_logging()
    services = build_services(async_session_factory)
    app.state.services = services

    sweep_task = None
    if services.reaper is not None and is_expiry_sweep_enabled():
        sweep_task = asyncio.create_task(expiry_sweep_loop(services.reaper))
    else:
        log.warning("expiry_sweep_disabled")

    yield  # Application runs here

    if sweep_task:
        log.info("shutting_down_expiry_sweep")
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            log.info("expiry_sweep_task_cancelled")

    await services.close()


app = FastAPI(
    title="Media Fulfillment",
    description="Durable media delivery pipeline and order lifecycle",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(uploads.router)
app.include_router(orders.router)
app.include_router(jobs.router)


@app.exception_handler(FulfillmentError)
async def fulfillment_error_handler(request: Request, exc: FulfillmentError) -> JSONResponse:
    """Render service errors as {error, stage?, details?, ...}."""
    log_method = log.error if exc.status_code >= 500 else log.warning
    log_method(
        "request_failed",
        path=request.url.path,
        status_code=exc.status_code,
        error_type=type(exc).__name__,
        stage=exc.stage,
        error=str(exc),
    )
    clear_context()
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query"))
    message = first.get("msg", "Invalid request")
    log.warning("request_invalid", path=request.url.path, field=field, error=message)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": f"{field}: {message}" if field else message},
    )


@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> JSONResponse:
    """Health check endpoint for deployment validation."""
    return JSONResponse(content={"status": "healthy", "service": "media-fulfillment"})


if __name__ == "__main__":
    import uvicorn

    # Binding to 0.0.0.0 is intentional for container deployments
    uvicorn.run(
        "fulfillment.main:app",
        host="0.0.0.0",  # noqa: S104
        port=8000,
        reload=True,
    )
