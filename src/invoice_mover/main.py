from textwrap import dedent
import logging
import pydantic
from fastapi import FastAPI
from fastapi.routing import APIRoute

from invoice_mover.api_errors import (
    handle_broad_exceptions,
    handle_invoice_mover_errors,
    handle_pydantic_validation_errors,
)
from invoice_mover.errors import InvoiceMoverError
from invoice_mover.factory import ComponentFactory
from invoice_mover.routers.health import router as health_router
from invoice_mover.routers.invoices import router as invoices_router
from invoice_mover.settings import Settings, get_settings
from invoice_mover.utils.logging_utils import configure_logging

# Set up logging
logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, factory: ComponentFactory | None = None) -> FastAPI:
    """Create the admin FastAPI application.

    Components are built on first use from ``factory``, so creating the app makes
    no AWS calls.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Invoice Mover Admin API",
        summary="Inspect and operate the invoice relocation pipeline",
        version="v1",
        description=dedent(
            """\
        Operator endpoints of the invoice relocation pipeline.

        | Endpoint | Notes |
        | --- | --- |
        | `GET /v1/invoices/{file_name}` | Tracking record of one file |
        | `POST /v1/invoices/{file_name}/move` | Attempt the move now, `force` ignores the moving time |
        | `DELETE /v1/invoices/{file_name}` | Remove a tracking record |
        | `POST /v1/reconcile` | Run the catch-up scan |
        """
        ),
        docs_url="/",  # its easier to find the docs when they live on the base url
        generate_unique_id_function=custom_generate_unique_id,
    )

    app.state.settings = settings
    app.state.factory = factory or ComponentFactory(settings)
    app.state.orchestrator = None
    app.state.tracking_store = None

    app.include_router(invoices_router, prefix="/v1", tags=["invoices"])
    app.include_router(health_router, tags=["health"])

    app.add_exception_handler(
        exc_class_or_status_code=InvoiceMoverError,
        handler=handle_invoice_mover_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.middleware("http")(handle_broad_exceptions)

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    return f"{route.tags[0]}-{route.name}"


if __name__ == "__main__":
    import uvicorn

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=8000)
