"""Capability interfaces the pipeline core calls through."""
from typing import Callable, List, Optional, Protocol

from invoice_mover.schemas import InvoiceRecord, InvoiceStatus, QueueMessage, RecordKey, StatusUpdate


class ObjectStore(Protocol):
    def copy(self, container: str, source_key: str, destination_key: str) -> None: ...

    def delete(self, container: str, key: str) -> None: ...

    def get_content(self, container: str, key: str) -> str: ...

    def exists(self, container: str, key: str) -> bool: ...


class MessageQueue(Protocol):
    def send(self, body: str, delay_seconds: int = 0) -> str: ...

    def receive_batch(self, max_count: int) -> List[QueueMessage]: ...

    def ack(self, message: QueueMessage) -> None: ...

    def dead_letter(self, message: QueueMessage) -> bool: ...

    def configure_dead_letter(self, dead_letter_queue_name: str, max_receive_count: int) -> str: ...


class TrackingStore(Protocol):
    def create(self, record: InvoiceRecord) -> InvoiceRecord: ...

    def get(self, key: RecordKey) -> Optional[InvoiceRecord]: ...

    def update_status(
        self, key: RecordKey, new_status: InvoiceStatus, expected_status: InvoiceStatus
    ) -> StatusUpdate: ...

    def delete(self, key: RecordKey) -> None: ...

    def scan(self, predicate: Optional[Callable[[InvoiceRecord], bool]] = None) -> List[InvoiceRecord]: ...

    def scan_due(self, now_text: str) -> List[InvoiceRecord]: ...
