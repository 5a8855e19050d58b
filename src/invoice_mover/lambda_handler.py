"""Lambda entry points.

One function per trigger: S3 object-created notifications, the move-request queue,
the tracking table change stream, the scheduled catch-up scan, and the admin API.
"""
import logging
from functools import lru_cache
from typing import Any, Dict, List

from mangum import Mangum

from invoice_mover.errors import InvoiceMoverError, ValidationError
from invoice_mover.events import parse_sqs_event
from invoice_mover.factory import ComponentFactory
from invoice_mover.main import create_app
from invoice_mover.services.ingestion import IngestionHandler
from invoice_mover.services.orchestrator import MoveOrchestrator
from invoice_mover.utils.decorators import log_execution_time
from invoice_mover.utils.logging_utils import configure_logging

configure_logging()
logger = logging.getLogger(__name__)


# Components are built once per container and reused across warm invocations
@lru_cache
def get_factory() -> ComponentFactory:
    return ComponentFactory()


@lru_cache
def get_ingestion_handler() -> IngestionHandler:
    return get_factory().ingestion_handler()


@lru_cache
def get_orchestrator() -> MoveOrchestrator:
    return get_factory().orchestrator()


@log_execution_time
def ingest_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """S3 ObjectCreated notification -> COPIED record and a queued move request.

    Rejected files are reported in the response instead of raised, since retrying
    the invocation can't make them valid.
    """
    try:
        result = get_ingestion_handler().handle_event(event)
    except ValidationError as e:
        logger.warning(f"Object rejected: {e.message}")
        return {"status": "rejected", "reason": e.message}
    return {
        "status": "ingested",
        "fileName": result.record.file_name,
        "date": result.record.date,
        "movingTime": result.record.moving_time,
        "messageId": result.message_id,
    }


@log_execution_time
def move_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, List[Dict[str, str]]]:
    """SQS event source batch -> move attempts.

    Handled messages are deleted explicitly, including not-yet-due requests, which go back
    on the queue with a delay. Messages that failed with a retryable error are listed in
    ``batchItemFailures`` so the event source mapping redelivers them. Validation failures
    were already forwarded to the dead-letter queue and are not retried.
    """
    orchestrator = get_orchestrator()
    failures = []
    for message in parse_sqs_event(event):
        try:
            orchestrator.handle_move_request(message)
        except ValidationError as e:
            logger.error(f"Move request {message.message_id} rejected: {e}")
        except InvoiceMoverError as e:
            logger.error(f"Move request {message.message_id} failed: {e}")
            failures.append({"itemIdentifier": message.message_id})
    return {"batchItemFailures": failures}


@log_execution_time
def stream_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """DynamoDB stream batch -> move attempts for records in transit."""
    report = get_orchestrator().handle_stream_event(event)
    report.raise_for_failures()
    return report.to_dict()


@log_execution_time
def reconcile_handler(event: Dict[str, Any] = None, context: Any = None) -> Dict[str, Any]:
    """Scheduled catch-up scan over due COPIED records."""
    report = get_orchestrator().catch_up_scan()
    if report.failures:
        kinds = sorted({error.kind.value for _, error in report.failures})
        logger.error(f"Catch-up scan left {len(report.failures)} records unmoved ({', '.join(kinds)})")
    report.raise_for_failures()
    return report.to_dict()


# Admin API, wrapped with Mangum for Lambda compatibility
app = create_app()
api_handler = Mangum(app, lifespan="off")
