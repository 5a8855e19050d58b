"""Parsing of the Lambda trigger payloads (S3 notifications, SQS batches, DynamoDB streams)."""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote_plus

from boto3.dynamodb.types import TypeDeserializer

from invoice_mover.errors import ValidationError
from invoice_mover.schemas import ATTR_DATE, ATTR_FILE_NAME, ATTR_STATUS, QueueMessage, RecordKey

logger = logging.getLogger(__name__)

_deserializer = TypeDeserializer()


@dataclass
class StreamChange:
    """One DynamoDB stream record reduced to what the orchestrator needs."""
    event_name: str
    key: RecordKey
    new_status: Optional[str]


def parse_s3_event(event: Optional[Dict[str, Any]]) -> Tuple[str, str]:
    """Return ``(bucket, key)`` of the first record of an S3 notification.

    Object keys arrive URL-encoded with ``+`` for spaces.
    """
    if event is None:
        raise ValidationError("Error while getting S3 Event Notification record - S3 Event is null")
    records = event.get("Records") or []
    if not records:
        raise ValidationError("S3 Event Notification has no records")

    record = records[0]
    try:
        bucket = record["s3"]["bucket"]["name"]
        raw_key = record["s3"]["object"]["key"]
    except (KeyError, TypeError) as e:
        raise ValidationError(f"Malformed S3 Event Notification record: missing {e}")
    if not bucket or not raw_key:
        raise ValidationError("S3 Event Notification record has an empty bucket or key")

    key = unquote_plus(raw_key)
    logger.debug(f"S3 event: bucket={bucket}, key={key}")
    return bucket, key


def parse_sqs_event(event: Optional[Dict[str, Any]]) -> List[QueueMessage]:
    """Convert an SQS event-source batch into queue messages."""
    if event is None:
        raise ValidationError("SQS event is null")
    messages = []
    for record in event.get("Records") or []:
        try:
            messages.append(
                QueueMessage(
                    message_id=record["messageId"],
                    receipt_handle=record["receiptHandle"],
                    body=record["body"],
                    receive_count=int(record.get("attributes", {}).get("ApproximateReceiveCount", 1)),
                )
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Malformed SQS record: {e}")
    return messages


def parse_stream_event(event: Optional[Dict[str, Any]]) -> List[StreamChange]:
    """Convert a DynamoDB stream batch into key / new-status changes."""
    if event is None:
        raise ValidationError("DynamoDB stream event is null")
    changes = []
    for record in event.get("Records") or []:
        try:
            image = record["dynamodb"]
            keys = _deserialize(image["Keys"])
            key = RecordKey(file_name=keys[ATTR_FILE_NAME], date=keys[ATTR_DATE])
        except (KeyError, TypeError) as e:
            raise ValidationError(f"Malformed DynamoDB stream record: missing {e}")
        new_image = _deserialize(image.get("NewImage") or {})
        changes.append(
            StreamChange(
                event_name=record.get("eventName", ""),
                key=key,
                new_status=new_image.get(ATTR_STATUS),
            )
        )
    return changes


def _deserialize(image: Dict[str, Any]) -> Dict[str, Any]:
    return {name: _deserializer.deserialize(value) for name, value in image.items()}
