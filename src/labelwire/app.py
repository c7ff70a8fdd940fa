"""FastAPI application factory for Labelwire."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError

from labelwire.api import routes as api_routes
from labelwire.config import AppConfig, load_config, settings
from labelwire.errors import LabelwireError
from labelwire.service import PrinterService

logger = logging.getLogger(__name__)

# Application state
_service: PrinterService | None = None
_config: AppConfig | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    global _service, _config

    logger.info(f"Loading configuration from {settings.config_file}")
    _config = load_config(settings.config_file)

    _service = PrinterService(settings)

    # Connect to the default printer if one is configured
    device = _config.get_printer()
    if device is not None:
        try:
            await _service.session.connect(device)
        except LabelwireError as e:
            logger.error(f"Failed to connect to default printer {device.address}: {e}")

    api_routes.set_app_state(_service, api_key=_config.api_key)

    logger.info("Labelwire startup complete")

    yield

    logger.info("Labelwire shutting down")
    await _service.close()
    logger.info("Labelwire shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Labelwire",
        description="Label printer connectivity over Bluetooth, TCP and USB",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_exception_handler(LabelwireError, api_routes.labelwire_error_handler)
    app.add_exception_handler(RequestValidationError, api_routes.validation_error_handler)
    app.add_exception_handler(Exception, api_routes.unexpected_error_handler)

    # Include routers with API key auth for API routes
    app.include_router(
        api_routes.router,
        dependencies=[Depends(api_routes.verify_api_key)],
    )

    return app


# Default app instance for uvicorn
app = create_app()
