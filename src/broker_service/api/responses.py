"""Pretty-printed JSON responses and error handlers."""

import json
import logging
from typing import Any

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from broker_service.api.service import UnknownBrokerError
from broker_service.errors import BrokerError

logger = logging.getLogger(__name__)


class PrettyJSONResponse(JSONResponse):
    """JSONResponse rendered with indentation."""

    def render(self, content: Any) -> bytes:
        return json.dumps(
            jsonable_encoder(content, by_alias=True), ensure_ascii=False, indent=3
        ).encode("utf-8")


class BadRequestError(ValueError):
    """A path identifier or request body is missing or invalid."""


class OperationErrors(Exception):
    """A multi-message operation reported one or more per-message failures."""

    def __init__(self, errors: list[BrokerError]):
        self.errors = errors
        super().__init__(f"{len(errors)} message operations failed")


async def bad_request_handler(request: Request, exc: BadRequestError):
    return PrettyJSONResponse(str(exc), status_code=status.HTTP_400_BAD_REQUEST)


async def validation_handler(request: Request, exc: RequestValidationError):
    messages = [f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()]
    return PrettyJSONResponse("; ".join(messages), status_code=status.HTTP_400_BAD_REQUEST)


async def unknown_broker_handler(request: Request, exc: UnknownBrokerError):
    return PrettyJSONResponse(str(exc), status_code=status.HTTP_404_NOT_FOUND)


async def broker_error_handler(request: Request, exc: BrokerError):
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return PrettyJSONResponse(str(exc), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


async def operation_errors_handler(request: Request, exc: OperationErrors):
    logger.error("%s %s: %s", request.method, request.url.path, exc)
    return PrettyJSONResponse(
        [str(error) for error in exc.errors], status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
