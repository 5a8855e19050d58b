from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint for monitoring API status.

    Reports the deployment mode and the pipeline resources the API is configured for.
    No AWS calls are made.
    """
    settings = request.app.state.settings

    return {
        "status": "ok",
        "deployment_mode": settings.deployment_mode,
        "components": {
            "api": "ready",
            "tracking_table": settings.invoice_table_name,
            "queue": settings.sqs_queue_name,
        },
        "ready": True,
    }
