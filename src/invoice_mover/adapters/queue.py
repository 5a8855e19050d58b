import json
import logging
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from invoice_mover.errors import ValidationError, translate_aws_error
from invoice_mover.schemas import QueueMessage

logger = logging.getLogger(__name__)

# SQS hard limits
MAX_BATCH_SIZE = 10
MAX_DELAY_SECONDS = 900


def resolve_queue_url(sqs_client, queue_name: str) -> str:
    try:
        return sqs_client.get_queue_url(QueueName=queue_name)["QueueUrl"]
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Unable to resolve SQS queue {queue_name}: {str(e)}")
        raise translate_aws_error(e, f"Unable to resolve SQS queue {queue_name}")


class SQSQueue:
    """Handles the AWS SQS move-request queue"""

    def __init__(
        self,
        sqs_client,
        queue_url: str,
        wait_time_seconds: int = 0,
        dead_letter_queue_name: Optional[str] = None,
    ):
        if not queue_url:
            raise ValidationError("SQS queue URL is not set")
        self.sqs = sqs_client
        self.queue_url = queue_url
        self.wait_time_seconds = wait_time_seconds
        self.dead_letter_queue_name = dead_letter_queue_name
        self._dead_letter_queue_url: Optional[str] = None
        logger.debug(f"SQSQueue initialized for {self.queue_url}")

    @classmethod
    def from_queue_name(cls, sqs_client, queue_name: str, **kwargs) -> "SQSQueue":
        """Resolve the queue URL from its name."""
        return cls(sqs_client, resolve_queue_url(sqs_client, queue_name), **kwargs)

    def send(self, body: str, delay_seconds: int = 0) -> str:
        """Send a message and return its SQS message id."""
        if not body:
            raise ValidationError("Can't send SQS message, because SQS message body is null or empty")
        delay_seconds = max(0, min(int(delay_seconds), MAX_DELAY_SECONDS))
        logger.debug(f"Sending msg to SQS - {body}")
        try:
            response = self.sqs.send_message(
                QueueUrl=self.queue_url,
                MessageBody=body,
                DelaySeconds=delay_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error while creating SQS message: {str(e)}")
            raise translate_aws_error(e, f"Error while creating SQS message in {self.queue_url}")
        message_id = response.get("MessageId", "")
        logger.info(f"SQS message {message_id} successfully sent (delay {delay_seconds}s)")
        return message_id

    def receive_batch(self, max_count: int = MAX_BATCH_SIZE) -> List[QueueMessage]:
        """Receive up to ``max_count`` pending messages; never waits longer than the configured poll."""
        max_count = max(1, min(int(max_count), MAX_BATCH_SIZE))
        try:
            response = self.sqs.receive_message(
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=max_count,
                WaitTimeSeconds=self.wait_time_seconds,
                AttributeNames=["All"],
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Unable to receive messages from SQS {self.queue_url}: {str(e)}")
            raise translate_aws_error(e, f"Unable to receive messages from SQS {self.queue_url}")

        messages = [
            QueueMessage(
                message_id=raw["MessageId"],
                receipt_handle=raw["ReceiptHandle"],
                body=raw["Body"],
                receive_count=int(raw.get("Attributes", {}).get("ApproximateReceiveCount", 1)),
            )
            for raw in response.get("Messages", [])
        ]
        logger.info(f"Messages received from SQS - {len(messages)}")
        return messages

    def ack(self, message: QueueMessage) -> None:
        """Delete a received message from the queue."""
        try:
            self.sqs.delete_message(QueueUrl=self.queue_url, ReceiptHandle=message.receipt_handle)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Unable to delete message {message.message_id}: {str(e)}")
            raise translate_aws_error(e, f"Unable to delete message {message.message_id}")
        logger.info(f"Message {message.message_id} successfully deleted")

    def dead_letter(self, message: QueueMessage) -> bool:
        """Forward a message that can never succeed to the dead-letter queue and delete it here.

        Returns False, leaving the message untouched, when no dead-letter queue is configured.
        """
        if not self.dead_letter_queue_name:
            logger.warning(f"No dead-letter queue configured, message {message.message_id} stays queued")
            return False
        if self._dead_letter_queue_url is None:
            self._dead_letter_queue_url = resolve_queue_url(self.sqs, self.dead_letter_queue_name)
        try:
            self.sqs.send_message(QueueUrl=self._dead_letter_queue_url, MessageBody=message.body)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Unable to forward message {message.message_id} to {self.dead_letter_queue_name}: {str(e)}")
            raise translate_aws_error(
                e, f"Unable to forward message {message.message_id} to {self.dead_letter_queue_name}"
            )
        self.ack(message)
        logger.info(f"Message {message.message_id} forwarded to dead-letter queue {self.dead_letter_queue_name}")
        return True

    def configure_dead_letter(self, dead_letter_queue_name: str, max_receive_count: int = 3) -> str:
        """Redirect messages received more than ``max_receive_count`` times to a dead-letter queue.

        Args:
            dead_letter_queue_name: Name of an existing queue receiving the failed messages
            max_receive_count: Deliveries allowed before redirecting

        Returns:
            ARN of the dead-letter queue
        """
        try:
            dead_letter_queue_url = self.sqs.get_queue_url(QueueName=dead_letter_queue_name)["QueueUrl"]
            attributes = self.sqs.get_queue_attributes(
                QueueUrl=dead_letter_queue_url,
                AttributeNames=["QueueArn"],
            )
            dead_letter_queue_arn = attributes["Attributes"]["QueueArn"]
            self.sqs.set_queue_attributes(
                QueueUrl=self.queue_url,
                Attributes={
                    "RedrivePolicy": json.dumps({
                        "maxReceiveCount": str(max_receive_count),
                        "deadLetterTargetArn": dead_letter_queue_arn,
                    })
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error occurred while setting dead-letter queue {dead_letter_queue_name}: {str(e)}")
            raise translate_aws_error(e, f"Error occurred while setting dead-letter queue {dead_letter_queue_name}")
        logger.info(
            f"Set queue {self.queue_url} as source queue for dead-letter queue {dead_letter_queue_name} "
            f"(maxReceiveCount={max_receive_count})"
        )
        return dead_letter_queue_arn

    def purge_batch(self, max_count: int = MAX_BATCH_SIZE) -> int:
        """Receive one bounded batch and delete every message in it."""
        messages = self.receive_batch(max_count)
        for message in messages:
            logger.debug(f"Deleting message {message.message_id}")
            self.ack(message)
        return len(messages)
