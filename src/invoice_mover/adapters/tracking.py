"""
DynamoDB tracking store for invoice records.

Records are keyed by ``(fileName, date)``. Status writes are conditional so that two
invocations racing on the same key can never overwrite each other's transition.
"""

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from invoice_mover.errors import (
    NotFoundError,
    TransientInfrastructureError,
    ValidationError,
    error_code,
    translate_aws_error,
)
from invoice_mover.schemas import (
    ATTR_FILE_NAME,
    ATTR_MOVING_TIME,
    ATTR_STATUS,
    InvoiceRecord,
    InvoiceStatus,
    RecordKey,
    StatusUpdate,
)

logger = logging.getLogger(__name__)

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"


class DynamoTrackingStore:
    """Tracking store backed by a DynamoDB table."""

    def __init__(self, dynamodb_resource, table_name: str):
        if not table_name:
            raise ValidationError("DynamoDB table name is not set")
        self.table_name = table_name
        self.table = dynamodb_resource.Table(table_name)

    def create(self, record: InvoiceRecord) -> InvoiceRecord:
        """Insert a record; an existing record with the same key is kept as is.

        Returns:
            The stored record (the new one, or the one that already held the key)
        """
        try:
            self.table.put_item(
                Item=record.to_item(),
                ConditionExpression=f"attribute_not_exists({ATTR_FILE_NAME})",
            )
        except ClientError as e:
            if error_code(e) != CONDITIONAL_CHECK_FAILED:
                logger.error(f"Unable to add item {record.key} to DynamoDB table {self.table_name}: {str(e)}")
                raise translate_aws_error(e, f"Unable to add item {record.key} in {self.table_name}")
            existing = self.get(record.key)
            if existing is None:
                raise TransientInfrastructureError(f"Item {record.key} changed concurrently while being created")
            if existing != record:
                logger.warning(f"Item {record.key} already exists with different values, keeping {existing.to_item()}")
            else:
                logger.info(f"Item {record.key} already exists, nothing to create")
            return existing
        except BotoCoreError as e:
            raise translate_aws_error(e, f"Unable to add item {record.key} in {self.table_name}")

        logger.info(f"DynamoDB {self.table_name} item created: {record.to_item()}")
        return record

    def get(self, key: RecordKey) -> Optional[InvoiceRecord]:
        """Strongly consistent read; ``None`` when the record does not exist."""
        try:
            response = self.table.get_item(Key=key.to_item_key(), ConsistentRead=True)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Unable to read item {key}: {str(e)}")
            raise translate_aws_error(e, f"Unable to read item {key} from {self.table_name}")
        item = response.get("Item")
        if item is None:
            logger.debug(f"There is no such item {key} in table {self.table_name}")
            return None
        return InvoiceRecord.from_item(item)

    def require(self, key: RecordKey) -> InvoiceRecord:
        record = self.get(key)
        if record is None:
            raise NotFoundError(f"There is no such item {key} in table {self.table_name}")
        return record

    def update_status(
        self,
        key: RecordKey,
        new_status: InvoiceStatus,
        expected_status: InvoiceStatus,
    ) -> StatusUpdate:
        """Compare-and-set the status of a record.

        Raises:
            ValidationError: ``expected_status -> new_status`` is not a legal transition
            NotFoundError: the record does not exist
        """
        expected_status.transition_to(new_status)
        try:
            response = self.table.update_item(
                Key=key.to_item_key(),
                UpdateExpression="SET #status = :new_status",
                ConditionExpression=f"attribute_exists({ATTR_FILE_NAME}) AND #status = :expected_status",
                ExpressionAttributeNames={"#status": ATTR_STATUS},
                ExpressionAttributeValues={
                    ":new_status": new_status.value,
                    ":expected_status": expected_status.value,
                },
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if error_code(e) != CONDITIONAL_CHECK_FAILED:
                logger.error(f"Unable to update item [{key}]: {str(e)}")
                raise translate_aws_error(e, f"Unable to update item {key} in {self.table_name}")
            current = self.require(key)
            logger.warning(
                f"Item [{key}] status is {current.status.value}, expected {expected_status.value}; not updated"
            )
            return StatusUpdate(record=current, applied=False)
        except BotoCoreError as e:
            raise translate_aws_error(e, f"Unable to update item {key} in {self.table_name}")

        logger.info(f"Item [{key}] status in table \"{self.table_name}\" updated -> {new_status.value}")
        return StatusUpdate(record=InvoiceRecord.from_item(response["Attributes"]), applied=True)

    def delete(self, key: RecordKey) -> None:
        """Remove a record. Only explicit cleanup calls this."""
        try:
            self.table.delete_item(Key=key.to_item_key())
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Unable to delete item {key} from DynamoDB table: {str(e)}")
            raise translate_aws_error(e, f"Unable to delete item {key} from {self.table_name}")
        logger.info(f"Item {key} successfully deleted")

    def scan(self, predicate: Optional[Callable[[InvoiceRecord], bool]] = None) -> List[InvoiceRecord]:
        """Full table scan, filtered client-side by ``predicate``."""
        records = self._records(self._scan_pages())
        if predicate is None:
            return records
        return [record for record in records if predicate(record)]

    def scan_due(self, now_text: str) -> List[InvoiceRecord]:
        """COPIED records whose moving time is at or before ``now_text``.

        ``yyyy/MM/dd HH:mm:ss`` strings sort chronologically, so the comparison runs server-side.
        """
        condition = Attr(ATTR_STATUS).eq(InvoiceStatus.COPIED.value) & Attr(ATTR_MOVING_TIME).lte(now_text)
        records = self._records(self._scan_pages(FilterExpression=condition))
        logger.info(f"Found {len(records)} item(s) due for moving in {self.table_name} at {now_text}")
        return records

    def _scan_pages(self, **scan_kwargs: Any) -> Iterator[Dict[str, Any]]:
        scan_kwargs["ConsistentRead"] = True
        while True:
            try:
                response = self.table.scan(**scan_kwargs)
            except (ClientError, BotoCoreError) as e:
                logger.error(f"Error occurred while scanning table {self.table_name}: {str(e)}")
                raise translate_aws_error(e, f"Error occurred while scanning table {self.table_name}")
            yield from response.get("Items", [])
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            scan_kwargs["ExclusiveStartKey"] = last_key

    def _records(self, items: Iterator[Dict[str, Any]]) -> List[InvoiceRecord]:
        records = []
        for item in items:
            try:
                records.append(InvoiceRecord.from_item(item))
            except ValidationError as e:
                logger.error(f"Skipping malformed item in {self.table_name}: {e}")
        return records
