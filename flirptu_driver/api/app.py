"""
FastAPI application factory.
"""

import logging
from typing import Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from flirptu_driver import __version__
from flirptu_driver.api.models import make_response
from flirptu_driver.config.models import AppConfig
from flirptu_driver.ptu.driver import PTUDriver
from flirptu_driver.utils.exceptions import (
    DriverError,
    InvalidValueError,
    NotConnectedError,
    PortIOError,
    PTUException,
)


logger = logging.getLogger(__name__)

# Error codes
ERROR_INVALID_VALUE = 0x402  # 1026
ERROR_NOT_CONNECTED = 0x407  # 1031
ERROR_DRIVER_ERROR = 0x500  # 1280
ERROR_UNSPECIFIED = 0x4FF  # 1279


def map_exception(exception: Exception) -> Tuple[int, str]:
    """
    Map an exception to (ErrorNumber, ErrorMessage).
    """
    if isinstance(exception, NotConnectedError):
        return (ERROR_NOT_CONNECTED, str(exception))

    if isinstance(exception, InvalidValueError):
        return (ERROR_INVALID_VALUE, str(exception))

    if isinstance(exception, (DriverError, PortIOError, PTUException)):
        return (ERROR_DRIVER_ERROR, str(exception))

    return (ERROR_UNSPECIFIED, f"Unexpected error: {type(exception).__name__}: {exception}")


def create_app(config: AppConfig, driver: Optional[PTUDriver] = None) -> FastAPI:
    """
    Create FastAPI application instance.

    Args:
        config: Application configuration.
        driver: PTU driver served by the routes.

    Returns:
        Configured FastAPI app.
    """
    from flirptu_driver.api.routes import router as ptu_router

    app = FastAPI(
        title="FLIR PTU Driver",
        description="HTTP interface to a FLIR pan-tilt controller",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PTUException)
    async def ptu_exception_handler(request: Request, exc: PTUException):
        """Driver errors are reported in the envelope, not as HTTP errors."""
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=200, content=make_response(error=exc).model_dump())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content=make_response(error=exc).model_dump())

    app.state.config = config
    app.state.driver = driver
    app.include_router(ptu_router)

    return app
