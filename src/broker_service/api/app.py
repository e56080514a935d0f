"""FastAPI application exposing the broker adapters over HTTP."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import dotenv
import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.middleware.cors import CORSMiddleware

from broker_service.adapters.factory import build_adapters
from broker_service.api.responses import (
    BadRequestError,
    OperationErrors,
    bad_request_handler,
    broker_error_handler,
    operation_errors_handler,
    unknown_broker_handler,
    validation_handler,
)
from broker_service.api.routes import router
from broker_service.api.service import BrokerAdapterManager, UnknownBrokerError
from broker_service.config import ServiceSettings, get_settings, load_broker_configurations
from broker_service.errors import BrokerError
from broker_service.logger import setup_logging

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[ServiceSettings] = None,
    manager: Optional[BrokerAdapterManager] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Service settings; loaded from the environment when omitted
        manager: Pre-built adapter manager; when omitted, adapters are built
            from the BROKERn_ environment definitions at startup
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.manager is None:
            adapters = build_adapters(load_broker_configurations(), settings)
            app.state.manager = BrokerAdapterManager(adapters, settings.operation_timeout)
        logger.info("Serving brokers: %s", ", ".join(app.state.manager.adapters) or "none")
        yield
        app.state.manager.close()

    app = FastAPI(title="broker-service", lifespan=lifespan)
    app.state.manager = manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(BadRequestError, bad_request_handler)
    app.add_exception_handler(RequestValidationError, validation_handler)
    app.add_exception_handler(UnknownBrokerError, unknown_broker_handler)
    app.add_exception_handler(OperationErrors, operation_errors_handler)
    app.add_exception_handler(BrokerError, broker_error_handler)

    app.include_router(router)
    return app


def main() -> None:
    """Run the service with uvicorn."""
    dotenv.load_dotenv()
    settings = get_settings()
    setup_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
