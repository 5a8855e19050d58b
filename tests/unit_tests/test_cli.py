import json

from click.testing import CliRunner

from invoice_mover.cli import cli
from invoice_mover.schemas import InvoiceStatus, QueuedMoveRequest, RecordKey
from tests.consts import INVOICE_DATE, TEST_BUCKET_NAME, TEST_DLQ_NAME
from tests.utils import object_keys


def run(factory, *args):
    return CliRunner().invoke(cli, list(args), obj=factory)


def test_show_config(factory):
    result = run(factory, "show-config")

    assert result.exit_code == 0
    assert "Deployment Mode: aws-prod" in result.output
    assert "Folders: incoming -> moved" in result.output


def test_consume(factory, queue, s3_client, put_invoice, seed_record):
    put_invoice("a.xml")
    seed_record("a.xml", moving_time="2020/01/01 00:00:00")
    queue.send(QueuedMoveRequest(file_name="a.xml", bucket_name=TEST_BUCKET_NAME, date=INVOICE_DATE).to_message_body())

    result = run(factory, "consume", "--batches", "2")

    assert result.exit_code == 0
    assert "Acknowledged 1, requeued until due 0, failed 0" in result.output
    assert object_keys(s3_client) == ["moved/a.xml"]


def test_reconcile(factory, s3_client, put_invoice, seed_record):
    put_invoice("a.xml")
    seed_record("a.xml", moving_time="2020/01/01 00:00:00")

    result = run(factory, "reconcile")

    assert result.exit_code == 0
    assert '"moved": 1' in result.output


def test_reconcile_fails_when_records_are_left(factory, seed_record):
    seed_record("a.xml", moving_time="2020/01/01 00:00:00")

    result = run(factory, "reconcile")

    assert result.exit_code != 0
    assert "could not be moved" in result.output


def test_configure_dead_letter(factory, sqs_client, queue_url):
    result = run(factory, "configure-dead-letter")

    assert result.exit_code == 0
    policy = json.loads(
        sqs_client.get_queue_attributes(QueueUrl=queue_url, AttributeNames=["RedrivePolicy"])["Attributes"][
            "RedrivePolicy"
        ]
    )
    assert policy["deadLetterTargetArn"].endswith(f":{TEST_DLQ_NAME}")


def test_purge_queue(factory, queue):
    queue.send("one")
    queue.send("two")

    result = run(factory, "purge-queue")

    assert result.exit_code == 0
    assert "Deleted 2 message(s)" in result.output


def test_delete_record(factory, tracking_store, seed_record):
    seed_record("a.xml")

    result = run(factory, "delete-record", "a.xml", INVOICE_DATE)

    assert result.exit_code == 0
    assert tracking_store.get(RecordKey("a.xml", INVOICE_DATE)) is None


def test_delete_record_rejects_bad_dates(factory):
    result = run(factory, "delete-record", "a.xml", "2024-01-10")

    assert result.exit_code == 2


def test_move(factory, s3_client, tracking_store, put_invoice, seed_record):
    put_invoice("a.xml")
    seed_record("a.xml", moving_time="2999/01/01 00:00:00")

    result = run(factory, "move", "a.xml", INVOICE_DATE, "--force")

    assert result.exit_code == 0
    assert json.loads(result.stdout)["outcome"] == "moved"
    assert object_keys(s3_client) == ["moved/a.xml"]
    assert tracking_store.get(RecordKey("a.xml", INVOICE_DATE)).status == InvoiceStatus.UPLOADED


def test_move_missing_record(factory):
    result = run(factory, "move", "missing.xml", INVOICE_DATE)

    assert result.exit_code == 1
    assert "not_found" in result.output
