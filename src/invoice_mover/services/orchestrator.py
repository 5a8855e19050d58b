"""
Move orchestration: relocate due invoice files and flip their status to UPLOADED.

Three triggers share one idempotent operation, :meth:`MoveOrchestrator.attempt_move`:

* a queued move request (at-least-once delivery),
* a MODIFY event on the tracking table's change stream,
* the periodic catch-up scan for records whose message was lost.

Each attempt re-reads the record immediately before touching the object, so a
redelivered message or a concurrent scan finds the record UPLOADED and does nothing.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from invoice_mover.adapters.base import MessageQueue, ObjectStore, TrackingStore
from invoice_mover.adapters.queue import MAX_DELAY_SECONDS
from invoice_mover.errors import (
    Inconsistency,
    InconsistencyError,
    InvoiceMoverError,
    NotFoundError,
    ValidationError,
    report_inconsistency,
)
from invoice_mover.events import parse_stream_event
from invoice_mover.schemas import (
    InvoiceRecord,
    InvoiceStatus,
    MoveOutcome,
    MoveReport,
    MoveResult,
    QueuedMoveRequest,
    QueueMessage,
    RecordKey,
    StatusUpdate,
    format_time,
    parse_time,
    utc_now,
)
from invoice_mover.services.content import extract_schedule

logger = logging.getLogger(__name__)

MODIFY_EVENT = "MODIFY"


@dataclass
class ConsumedMessage:
    """What happened to one message of a consumed batch."""
    message: QueueMessage
    result: Optional[MoveResult] = None
    error: Optional[InvoiceMoverError] = None

    @property
    def acknowledged(self) -> bool:
        return self.error is None and self.result is not None

    @property
    def deferred(self) -> bool:
        """The record was not due; the request went back on the queue with a delay."""
        return self.acknowledged and self.result.outcome is MoveOutcome.NOT_READY


class MoveOrchestrator:
    """Decides readiness, moves the object, and completes the record."""

    def __init__(
        self,
        object_store: ObjectStore,
        tracking_store: TrackingStore,
        queue: MessageQueue,
        source_folder: str = "incoming",
        destination_folder: str = "moved",
        stream_trigger_status: InvoiceStatus = InvoiceStatus.COPIED,
        receive_batch_size: int = 10,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.object_store = object_store
        self.tracking_store = tracking_store
        self.queue = queue
        self.source_folder = source_folder
        self.destination_folder = destination_folder
        self.stream_trigger_status = InvoiceStatus(stream_trigger_status)
        self.receive_batch_size = receive_batch_size
        self.clock = clock

    def source_key(self, file_name: str) -> str:
        return f"{self.source_folder}/{file_name}"

    def destination_key(self, file_name: str) -> str:
        return f"{self.destination_folder}/{file_name}"

    # ------------------------------------------------------------------ #
    # Core operation
    # ------------------------------------------------------------------ #

    def attempt_move(self, key: RecordKey, now: Optional[datetime] = None, force: bool = False) -> MoveResult:
        """Move one file if its record is ready, then mark it UPLOADED.

        Args:
            key: Tracking record key
            now: Reference time for the readiness check (defaults to the clock)
            force: Treat the record as due regardless of its moving time

        Returns:
            MoveResult; ALREADY_PROCESSED and NOT_READY involve no object-store calls

        Raises:
            NotFoundError: no record for ``key``, or the object is in neither folder
            TransientInfrastructureError: a store call failed before anything was moved
            InconsistencyError: the copy succeeded but the delete or the status update failed
        """
        now = now or self.clock()
        record = self.tracking_store.get(key)
        if record is None:
            logger.error(f"There is no tracking record {key}")
            raise NotFoundError(f"There is no tracking record {key}")

        if record.status.is_terminal:
            logger.info(f"Record {key} is already {record.status.value}, nothing to move")
            return MoveResult(key=key, outcome=MoveOutcome.ALREADY_PROCESSED, record=record)

        if not record.is_ready(now, force=force):
            logger.info(f"Record {key} is not due until {record.moving_time}")
            return MoveResult(key=key, outcome=MoveOutcome.NOT_READY, record=record)

        source_key = self.source_key(record.file_name)
        destination_key = self.destination_key(record.file_name)
        outcome = self._relocate(record, source_key, destination_key)
        update = self._complete(record, source_key, destination_key)
        if not update.applied:
            # another invocation won the race; the object is where it belongs
            outcome = MoveOutcome.ALREADY_PROCESSED
        return MoveResult(
            key=key, outcome=outcome, source_key=source_key, destination_key=destination_key, record=update.record
        )

    def _relocate(self, record: InvoiceRecord, source_key: str, destination_key: str) -> MoveOutcome:
        bucket = record.bucket_name

        if not self.object_store.exists(bucket, source_key):
            if self._holds_record(record, destination_key):
                # an earlier attempt moved the object but never updated the record
                logger.warning(f"{source_key} already relocated to {destination_key}, completing record {record.key}")
                return MoveOutcome.RESUMED
            raise NotFoundError(f"File {record.file_name} is in neither {source_key} nor {destination_key} of {bucket}")

        # A failed copy propagates before the delete: the source stays the only copy
        self.object_store.copy(bucket, source_key, destination_key)
        try:
            self.object_store.delete(bucket, source_key)
        except InvoiceMoverError as e:
            error = InconsistencyError(
                f"{record.file_name} copied to {destination_key} but {source_key} could not be deleted: {e.message}",
                Inconsistency.DUPLICATED_OBJECT,
                cause=e,
            )
            report_inconsistency(error)
            raise error from e
        logger.info(f"File {source_key} successfully moved to {destination_key} in {bucket}")
        return MoveOutcome.MOVED

    def _holds_record(self, record: InvoiceRecord, destination_key: str) -> bool:
        """Whether the destination object is this record's file rather than one left by another date."""
        bucket = record.bucket_name
        if not self.object_store.exists(bucket, destination_key):
            return False
        try:
            date, _ = extract_schedule(self.object_store.get_content(bucket, destination_key))
        except ValidationError as e:
            logger.warning(f"{destination_key} cannot be matched to record {record.key}: {e.message}")
            return False
        if date != record.date:
            logger.warning(f"{destination_key} holds the invoice of {date}, not of record {record.key}")
            return False
        return True

    def _complete(self, record: InvoiceRecord, source_key: str, destination_key: str) -> StatusUpdate:
        try:
            update = self.tracking_store.update_status(
                record.key, InvoiceStatus.UPLOADED, expected_status=InvoiceStatus.COPIED
            )
        except InvoiceMoverError as e:
            error = InconsistencyError(
                f"{source_key} moved to {destination_key} but record {record.key} was not updated: {e.message}",
                Inconsistency.STALE_RECORD,
                cause=e,
            )
            report_inconsistency(error)
            raise error from e

        if not update.applied:
            logger.warning(
                f"Record {record.key} was completed concurrently (status {update.record.status.value})"
            )
        return update

    # ------------------------------------------------------------------ #
    # Trigger A: queued move requests
    # ------------------------------------------------------------------ #

    def handle_move_request(self, message: QueueMessage) -> MoveResult:
        """Process one move-request message and delete it from the queue once handled.

        A record that is not yet due gets its request sent again with a delay of at most
        15 minutes, and the received copy is deleted, so waiting never uses up the receive
        count of the dead-letter policy. A request that can never succeed (malformed body
        or invalid record) is forwarded to the dead-letter queue before its error is raised.
        """
        try:
            request = QueuedMoveRequest.from_message_body(message.body)
            logger.info(
                f"Move request {message.message_id} for {request.key} (delivery {message.receive_count})"
            )
            result = self.attempt_move(request.key)
        except ValidationError as e:
            logger.error(f"Move request {message.message_id} can not be retried: {e.message}")
            self.queue.dead_letter(message)
            raise

        if result.record is not None and result.record.bucket_name != request.bucket_name:
            logger.warning(
                f"Move request bucket {request.bucket_name} differs from record bucket {result.record.bucket_name}"
            )

        if result.outcome is MoveOutcome.NOT_READY:
            delay_seconds = min(self._seconds_until_due(result.record), MAX_DELAY_SECONDS)
            message_id = self.queue.send(message.body, delay_seconds=delay_seconds)
            logger.info(f"Move request {message.message_id} requeued as {message_id} (delay {delay_seconds}s)")
        self.queue.ack(message)
        return result

    def consume_batch(self, max_count: Optional[int] = None) -> List[ConsumedMessage]:
        """Receive one bounded batch and handle every message in it independently.

        Messages that failed with a retryable error are left on the queue; redelivery and
        the dead-letter policy take it from there.
        """
        messages = self.queue.receive_batch(max_count or self.receive_batch_size)
        consumed = []
        for message in messages:
            try:
                consumed.append(ConsumedMessage(message=message, result=self.handle_move_request(message)))
            except InvoiceMoverError as e:
                logger.error(f"Move request {message.message_id} failed: {e}")
                consumed.append(ConsumedMessage(message=message, error=e))
        return consumed

    def _seconds_until_due(self, record: Optional[InvoiceRecord]) -> int:
        if record is None:
            return 0
        return max(0, int((parse_time(record.moving_time) - self.clock()).total_seconds()))

    # ------------------------------------------------------------------ #
    # Trigger B: tracking table change stream
    # ------------------------------------------------------------------ #

    def handle_stream_event(self, event: Optional[Dict[str, Any]]) -> MoveReport:
        """Attempt a move for every MODIFY whose new status is the trigger status."""
        report = MoveReport()
        for change in parse_stream_event(event):
            if change.event_name != MODIFY_EVENT or change.new_status != self.stream_trigger_status.value:
                logger.debug(f"Ignoring {change.event_name} of {change.key} (status {change.new_status})")
                continue
            report.considered += 1
            self._attempt_into(report, change.key)
        return report

    # ------------------------------------------------------------------ #
    # Catch-up scan
    # ------------------------------------------------------------------ #

    def catch_up_scan(self, now: Optional[datetime] = None) -> MoveReport:
        """Move every COPIED record whose moving time has passed."""
        now = now or self.clock()
        records = self.tracking_store.scan_due(format_time(now))
        report = MoveReport(considered=len(records))
        for record in records:
            self._attempt_into(report, record.key, now=now)
        logger.info(
            f"Catch-up scan at {format_time(now)}: {len(records)} due, "
            f"{len(report.moved)} moved, {len(report.failures)} failed"
        )
        return report

    def _attempt_into(self, report: MoveReport, key: RecordKey, now: Optional[datetime] = None) -> None:
        try:
            report.results.append(self.attempt_move(key, now=now))
        except InvoiceMoverError as e:
            logger.error(f"Move of {key} failed: {e}")
            report.failures.append((key, e))
