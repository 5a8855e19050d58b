"""Exception handlers of the admin API."""
import logging

import pydantic
from fastapi import Request, status
from fastapi.responses import JSONResponse

from invoice_mover.errors import ErrorKind, InconsistencyError, InvoiceMoverError

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.TRANSIENT_INFRASTRUCTURE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.INCONSISTENCY: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


async def handle_invoice_mover_errors(request: Request, exc: InvoiceMoverError) -> JSONResponse:
    """Map a pipeline error to the status code of its kind."""
    content = {"detail": exc.message, "kind": exc.kind.value}
    if isinstance(exc, InconsistencyError):
        content["inconsistency"] = exc.inconsistency.value
    return JSONResponse(status_code=STATUS_BY_KIND.get(exc.kind, 500), content=content)


async def handle_pydantic_validation_errors(request: Request, exc: pydantic.ValidationError) -> JSONResponse:
    errors = exc.errors()
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": [
                {
                    "msg": error["msg"],
                    "input": error.get("input"),
                }
                for error in errors
            ]
        },
    )


async def handle_broad_exceptions(request: Request, call_next):
    """Handle any exception that propagates out of the route handlers."""
    try:
        return await call_next(request)
    except Exception as err:  # pylint: disable=broad-except
        logger.exception(err)
        return JSONResponse(content={"detail": "Internal server error"}, status_code=500)
