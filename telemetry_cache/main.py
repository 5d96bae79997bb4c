"""Main FastAPI application for the telemetry latest-value cache."""

import uvicorn
from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException

from telemetry_cache.api import lifespan, method_not_allowed_handler, router
from telemetry_cache.config import get_settings

app = FastAPI(
    title="Telemetry Cache API",
    description="Push heart rate and location readings and poll the latest values",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)
app.add_exception_handler(StarletteHTTPException, method_not_allowed_handler)


def main() -> None:
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
