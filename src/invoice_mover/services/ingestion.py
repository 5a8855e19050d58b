"""
Ingestion: react to a new invoice file in the bucket.

Validates the object, records it as COPIED in the tracking table and queues a move
request. Record creation and the queue send are not transactional; a record whose
message is lost is picked up later by the catch-up scan.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Dict, Optional

from invoice_mover.adapters.base import MessageQueue, ObjectStore, TrackingStore
from invoice_mover.errors import ValidationError
from invoice_mover.events import parse_s3_event
from invoice_mover.schemas import (
    InvoiceRecord,
    InvoiceStatus,
    QueuedMoveRequest,
    format_time,
    parse_time,
    utc_now,
)
from invoice_mover.services.content import extract_schedule

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    record: InvoiceRecord
    message_body: str
    message_id: str


def check_file_extension(file_name: str, extension: str = ".xml") -> None:
    """Reject file names that don't end in ``extension`` (case-sensitive)."""
    if not file_name.endswith(extension) or file_name == extension:
        found = file_name.rpartition(".")[2] if "." in file_name else ""
        logger.error(f"Error: file extension is not {extension} - {found}")
        raise ValidationError(f"File {file_name} rejected: extension is not {extension}")


def file_name_from_key(key: str, source_folder: str) -> str:
    """Return the bare file name of ``<source_folder>/<file name>``."""
    folder, _, file_name = key.rpartition("/")
    if folder.strip("/") != source_folder:
        raise ValidationError(f"Object {key} is not in the source folder '{source_folder}'")
    if not file_name:
        raise ValidationError(f"Object key {key} has no file name")
    return file_name


class IngestionHandler:
    """Turns an object-created notification into a COPIED record and a move request."""

    def __init__(
        self,
        object_store: ObjectStore,
        tracking_store: TrackingStore,
        queue: MessageQueue,
        source_folder: str = "incoming",
        file_extension: str = ".xml",
        moving_delay_seconds: int = 0,
        clock: Callable[[], Any] = utc_now,
    ):
        self.object_store = object_store
        self.tracking_store = tracking_store
        self.queue = queue
        self.source_folder = source_folder
        self.file_extension = file_extension
        self.moving_delay = timedelta(seconds=moving_delay_seconds)
        self.clock = clock

    def handle_event(self, event: Optional[Dict[str, Any]]) -> IngestionResult:
        """Handle an S3 ObjectCreated notification."""
        bucket_name, key = parse_s3_event(event)
        return self.ingest(bucket_name, key)

    def ingest(self, bucket_name: str, key: str) -> IngestionResult:
        """Validate, record and enqueue one uploaded object.

        Args:
            bucket_name: Bucket the object was uploaded to
            key: Object key, ``<source folder>/<file name>``

        Returns:
            IngestionResult with the stored record and the queued message body
        """
        # Validation runs before any side effect
        file_name = key.rpartition("/")[2]
        check_file_extension(file_name, self.file_extension)
        file_name = file_name_from_key(key, self.source_folder)

        content = self.object_store.get_content(bucket_name, key)
        date, time = extract_schedule(content)
        moving_time = format_time(parse_time(time) + self.moving_delay)

        record = self._create_record(file_name, bucket_name, date, moving_time)

        request = QueuedMoveRequest(file_name=record.file_name, bucket_name=record.bucket_name, date=record.date)
        body = request.to_message_body()
        message_id = self.queue.send(body, delay_seconds=self._delay_until(record.moving_time))
        logger.info(f"Ingested {key} from {bucket_name}: record {record.key}, message {message_id}")
        return IngestionResult(record=record, message_body=body, message_id=message_id)

    def _create_record(self, file_name: str, bucket_name: str, date: str, moving_time: str) -> InvoiceRecord:
        values = {"fileName": file_name, "bucketName": bucket_name, "date": date, "time": moving_time}
        missing = [name for name, value in values.items() if not value]
        if missing:
            logger.error(f"Can't create DynamoDB record: {values}")
            raise ValidationError(f"Can't create tracking record, missing {', '.join(missing)}")

        record = InvoiceRecord(
            file_name=file_name,
            date=date,
            bucket_name=bucket_name,
            moving_time=moving_time,
            status=InvoiceStatus.COPIED,
        )
        return self.tracking_store.create(record)

    def _delay_until(self, moving_time: str) -> int:
        remaining = (parse_time(moving_time) - self.clock()).total_seconds()
        return max(0, int(remaining))
