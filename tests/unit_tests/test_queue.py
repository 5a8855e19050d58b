import json
from unittest.mock import patch

import pytest
from botocore.exceptions import ClientError

from invoice_mover.adapters.queue import MAX_DELAY_SECONDS, SQSQueue
from invoice_mover.errors import InvoiceMoverError, TransientInfrastructureError, ValidationError
from tests.consts import TEST_DLQ_NAME, TEST_QUEUE_NAME
from tests.utils import make_visible, queue_depth, receive_all


def test_send_and_receive(queue):
    message_id = queue.send('{"fileName": "a.xml"}')

    [message] = queue.receive_batch(10)

    assert message.message_id == message_id
    assert message.body == '{"fileName": "a.xml"}'
    assert message.receive_count == 1


def test_send_rejects_empty_body(queue):
    with pytest.raises(ValidationError):
        queue.send("")


def test_send_clamps_the_delay(queue):
    with patch.object(queue.sqs, "send_message", return_value={"MessageId": "m-1"}) as send_message:
        queue.send("body", delay_seconds=3600)
        queue.send("body", delay_seconds=-5)

    delays = [call.kwargs["DelaySeconds"] for call in send_message.call_args_list]
    assert delays == [MAX_DELAY_SECONDS, 0]


def test_receive_is_bounded(queue):
    for index in range(12):
        queue.send(f"message {index}")

    assert len(queue.receive_batch(3)) <= 3
    assert len(queue.receive_batch(50)) <= 10


def test_ack_removes_the_message(queue, sqs_client, queue_url):
    queue.send("body")
    [message] = queue.receive_batch(1)

    queue.ack(message)

    attributes = sqs_client.get_queue_attributes(
        QueueUrl=queue_url,
        AttributeNames=["ApproximateNumberOfMessages", "ApproximateNumberOfMessagesNotVisible"],
    )["Attributes"]
    assert attributes["ApproximateNumberOfMessages"] == "0"
    assert attributes["ApproximateNumberOfMessagesNotVisible"] == "0"


def test_unacknowledged_message_is_redelivered(queue, sqs_client, queue_url):
    queue.send("body")
    [message] = queue.receive_batch(1)

    make_visible(sqs_client, queue_url, message)
    [redelivered] = receive_all(sqs_client, queue_url)

    assert redelivered["MessageId"] == message.message_id
    assert redelivered["Attributes"]["ApproximateReceiveCount"] == "2"


def test_dead_letter_forwards_and_deletes(queue, sqs_client, queue_url, dead_letter_queue_url):
    queue.send("poison")
    [message] = queue.receive_batch(1)

    assert queue.dead_letter(message) is True

    assert queue_depth(sqs_client, queue_url) == 0
    [forwarded] = receive_all(sqs_client, dead_letter_queue_url)
    assert forwarded["Body"] == "poison"


def test_dead_letter_without_a_dead_letter_queue(sqs_client, queue_url):
    queue = SQSQueue(sqs_client, queue_url)
    queue.send("poison")
    [message] = queue.receive_batch(1)

    assert queue.dead_letter(message) is False

    assert queue_depth(sqs_client, queue_url) == 1


def test_configure_dead_letter(queue, sqs_client, queue_url):
    arn = queue.configure_dead_letter(TEST_DLQ_NAME, max_receive_count=3)

    attributes = sqs_client.get_queue_attributes(QueueUrl=queue_url, AttributeNames=["RedrivePolicy"])
    policy = json.loads(attributes["Attributes"]["RedrivePolicy"])
    assert arn.endswith(f":{TEST_DLQ_NAME}")
    assert policy["deadLetterTargetArn"] == arn
    assert int(policy["maxReceiveCount"]) == 3


def test_configure_dead_letter_with_missing_queue(queue):
    with pytest.raises(InvoiceMoverError):
        queue.configure_dead_letter("no-such-queue")


def test_purge_batch(queue):
    for index in range(3):
        queue.send(f"message {index}")

    assert queue.purge_batch() == 3
    assert queue.receive_batch(10) == []


def test_from_queue_name(sqs_client, queue_url):
    assert SQSQueue.from_queue_name(sqs_client, TEST_QUEUE_NAME).queue_url == queue_url


def test_queue_failures_are_transient(queue):
    error = ClientError({"Error": {"Code": "ServiceUnavailable", "Message": "down"}}, "ReceiveMessage")
    with patch.object(queue.sqs, "receive_message", side_effect=error):
        with pytest.raises(TransientInfrastructureError):
            queue.receive_batch(10)
