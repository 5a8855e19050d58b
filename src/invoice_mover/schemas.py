####################################
# --- Tracking & message schemas --- #
####################################

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from invoice_mover.errors import ErrorKind, InvoiceMoverError, ValidationError

DATE_FORMAT = "%Y/%m/%d"
TIME_FORMAT = "%Y/%m/%d %H:%M:%S"

# DynamoDB attribute names of a tracking item
ATTR_FILE_NAME = "fileName"
ATTR_DATE = "date"
ATTR_BUCKET_NAME = "bucketName"
ATTR_MOVING_TIME = "moving_time"
ATTR_STATUS = "file_status"


def utc_now() -> datetime:
    """Current wall-clock time as a naive UTC datetime (the table stores naive times)."""
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def format_time(value: datetime) -> str:
    return value.strftime(TIME_FORMAT)


def parse_time(value: str) -> datetime:
    """Parse a ``yyyy/MM/dd HH:mm:ss`` string."""
    try:
        return datetime.strptime(value.strip(), TIME_FORMAT)
    except (ValueError, AttributeError) as e:
        raise ValidationError(f"Invalid time '{value}', expected yyyy/MM/dd HH:mm:ss: {e}")


def parse_date(value: str) -> str:
    """Validate a ``yyyy/MM/dd`` string and return it normalized."""
    try:
        return datetime.strptime(value.strip(), DATE_FORMAT).strftime(DATE_FORMAT)
    except (ValueError, AttributeError) as e:
        raise ValidationError(f"Invalid date '{value}', expected yyyy/MM/dd: {e}")


class InvoiceStatus(str, Enum):
    """Lifecycle status of a tracked invoice file"""
    COPIED = "COPIED"      # record created and move request queued
    UPLOADED = "UPLOADED"  # file relocated to the destination folder (terminal)

    def can_transition_to(self, target: "InvoiceStatus") -> bool:
        return target in _TRANSITIONS[self]

    def transition_to(self, target: "InvoiceStatus") -> "InvoiceStatus":
        """Return ``target`` if the transition is allowed, raise ``ValidationError`` otherwise."""
        if not self.can_transition_to(target):
            raise ValidationError(f"Invalid status transition {self.value} -> {target.value}")
        return target

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self]


_TRANSITIONS = {
    InvoiceStatus.COPIED: {InvoiceStatus.UPLOADED},
    InvoiceStatus.UPLOADED: set(),
}


@dataclass(frozen=True)
class RecordKey:
    """Composite key of a tracking record."""
    file_name: str
    date: str

    def to_item_key(self) -> Dict[str, str]:
        return {ATTR_FILE_NAME: self.file_name, ATTR_DATE: self.date}

    def __str__(self) -> str:
        return f"{self.file_name} - {self.date}"


class InvoiceRecord(BaseModel):
    """Per-file tracking record."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    file_name: str = Field(alias="fileName", min_length=1)
    date: str = Field(min_length=1, description="yyyy/MM/dd")
    bucket_name: str = Field(alias="bucketName", min_length=1)
    moving_time: str = Field(alias="movingTime", description="yyyy/MM/dd HH:mm:ss")
    status: InvoiceStatus

    @property
    def key(self) -> RecordKey:
        return RecordKey(self.file_name, self.date)

    def is_due(self, now: datetime) -> bool:
        return parse_time(self.moving_time) <= now

    def is_ready(self, now: datetime, force: bool = False) -> bool:
        """COPIED and either due or explicitly forced."""
        return self.status == InvoiceStatus.COPIED and (force or self.is_due(now))

    def to_item(self) -> Dict[str, str]:
        return {
            ATTR_FILE_NAME: self.file_name,
            ATTR_DATE: self.date,
            ATTR_BUCKET_NAME: self.bucket_name,
            ATTR_MOVING_TIME: self.moving_time,
            ATTR_STATUS: self.status.value,
        }

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "InvoiceRecord":
        try:
            return cls(
                file_name=item[ATTR_FILE_NAME],
                date=item[ATTR_DATE],
                bucket_name=item[ATTR_BUCKET_NAME],
                moving_time=item[ATTR_MOVING_TIME],
                status=InvoiceStatus(item[ATTR_STATUS]),
            )
        except (KeyError, ValueError) as e:
            raise ValidationError(f"Malformed tracking item {item}: {e}")


class QueuedMoveRequest(BaseModel):
    """Body of a move-request message."""
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName", min_length=1)
    bucket_name: str = Field(alias="bucketName", min_length=1)
    date: str = Field(min_length=1)
    moving_time: Optional[str] = Field(default=None, alias="movingTime")

    @field_validator("date")
    @classmethod
    def check_date_format(cls, v: str) -> str:
        try:
            return parse_date(v)
        except InvoiceMoverError as e:
            raise ValueError(e.message)

    @property
    def key(self) -> RecordKey:
        return RecordKey(self.file_name, self.date)

    def to_message_body(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_message_body(cls, body: str) -> "QueuedMoveRequest":
        try:
            payload = json.loads(body)
        except (TypeError, json.JSONDecodeError) as e:
            raise ValidationError(f"Move request is not valid JSON: {e}")
        if not isinstance(payload, dict):
            raise ValidationError(f"Move request must be a JSON object, got {type(payload).__name__}")
        try:
            return cls.model_validate(payload)
        except ValueError as e:
            raise ValidationError(f"Invalid move request {payload}: {e}")


@dataclass
class StatusUpdate:
    """Result of a conditional status write.

    ``applied`` is False when the condition failed because another invocation already
    changed the record; ``record`` is then the current stored record.
    """
    record: InvoiceRecord
    applied: bool


@dataclass
class QueueMessage:
    """A received queue message; ``receipt_handle`` is what acknowledges it."""
    message_id: str
    receipt_handle: str
    body: str
    receive_count: int = 1


class MoveOutcome(str, Enum):
    MOVED = "moved"
    RESUMED = "resumed"                      # object already relocated, record completed
    ALREADY_PROCESSED = "already_processed"  # record already UPLOADED
    NOT_READY = "not_ready"                  # COPIED but moving time not reached


@dataclass
class MoveResult:
    key: RecordKey
    outcome: MoveOutcome
    source_key: Optional[str] = None
    destination_key: Optional[str] = None
    record: Optional[InvoiceRecord] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fileName": self.key.file_name,
            "date": self.key.date,
            "outcome": self.outcome.value,
            "sourceKey": self.source_key,
            "destinationKey": self.destination_key,
            "status": self.record.status.value if self.record else None,
        }


@dataclass
class MoveReport:
    """Outcome of a batch of move attempts (a stream batch or a catch-up pass)."""
    considered: int = 0
    results: List[MoveResult] = field(default_factory=list)
    failures: List[tuple] = field(default_factory=list)  # (RecordKey, InvoiceMoverError)

    @property
    def moved(self) -> List[MoveResult]:
        return [r for r in self.results if r.outcome in (MoveOutcome.MOVED, MoveOutcome.RESUMED)]

    def raise_for_failures(self) -> None:
        """Re-raise the most severe failure so the platform retries the batch."""
        if not self.failures:
            return
        errors = [error for _, error in self.failures]
        worst = next((e for e in errors if e.kind == ErrorKind.INCONSISTENCY), errors[0])
        raise worst

    def to_dict(self) -> Dict[str, Any]:
        return {
            "considered": self.considered,
            "moved": len(self.moved),
            "results": [r.to_dict() for r in self.results],
            "failures": [
                {"fileName": key.file_name, "date": key.date, "kind": error.kind.value, "error": error.message}
                for key, error in self.failures
            ],
        }


class InvoiceRecordResponse(BaseModel):
    """Response model for `GET /v1/invoices/{file_name}`."""
    fileName: str
    date: str
    bucketName: str
    movingTime: str
    status: InvoiceStatus

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "fileName": "invoice123.xml",
                "date": "2024/01/10",
                "bucketName": "bucket-a",
                "movingTime": "2024/01/10 08:00:00",
                "status": "COPIED",
            }
        }
    )

    @classmethod
    def from_record(cls, record: InvoiceRecord) -> "InvoiceRecordResponse":
        return cls(**record.model_dump(by_alias=True))
