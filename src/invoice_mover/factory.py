"""Wiring of the pipeline components from settings."""
import logging
from typing import Optional

from invoice_mover.adapters.aws_clients import (
    AWSClientManager,
    get_dynamodb_resource,
    get_s3_client,
    get_sqs_client,
)
from invoice_mover.adapters.queue import SQSQueue
from invoice_mover.adapters.storage import S3ObjectStore
from invoice_mover.adapters.tracking import DynamoTrackingStore
from invoice_mover.schemas import InvoiceStatus
from invoice_mover.services.ingestion import IngestionHandler
from invoice_mover.services.orchestrator import MoveOrchestrator
from invoice_mover.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class ComponentFactory:
    """Builds stores, queue and services sharing one set of AWS clients."""

    def __init__(self, settings: Optional[Settings] = None, manager: Optional[AWSClientManager] = None):
        self.settings = settings or get_settings()
        self.manager = manager or AWSClientManager(self.settings)

    def object_store(self) -> S3ObjectStore:
        return S3ObjectStore(get_s3_client(self.manager))

    def queue(self) -> SQSQueue:
        sqs_client = get_sqs_client(self.manager)
        dead_letter_queue_name = self.settings.dead_letter_queue_name
        if self.settings.sqs_queue_url:
            return SQSQueue(sqs_client, self.settings.sqs_queue_url, dead_letter_queue_name=dead_letter_queue_name)
        logger.debug(f"Resolving queue URL of {self.settings.sqs_queue_name}")
        return SQSQueue.from_queue_name(
            sqs_client, self.settings.sqs_queue_name, dead_letter_queue_name=dead_letter_queue_name
        )

    def tracking_store(self) -> DynamoTrackingStore:
        return DynamoTrackingStore(get_dynamodb_resource(self.manager), self.settings.invoice_table_name)

    def ingestion_handler(self) -> IngestionHandler:
        return IngestionHandler(
            object_store=self.object_store(),
            tracking_store=self.tracking_store(),
            queue=self.queue(),
            source_folder=self.settings.source_folder,
            file_extension=self.settings.file_extension,
            moving_delay_seconds=self.settings.moving_delay_seconds,
        )

    def orchestrator(self) -> MoveOrchestrator:
        return MoveOrchestrator(
            object_store=self.object_store(),
            tracking_store=self.tracking_store(),
            queue=self.queue(),
            source_folder=self.settings.source_folder,
            destination_folder=self.settings.destination_folder,
            stream_trigger_status=InvoiceStatus(self.settings.stream_trigger_status),
            receive_batch_size=self.settings.receive_batch_size,
        )
