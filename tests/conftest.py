import os

import boto3
import pytest
from moto import mock_aws

from invoice_mover.adapters.aws_clients import AWSClientManager
from invoice_mover.adapters.queue import SQSQueue
from invoice_mover.adapters.storage import S3ObjectStore
from invoice_mover.adapters.tracking import DynamoTrackingStore
from invoice_mover.factory import ComponentFactory
from invoice_mover.schemas import InvoiceRecord, InvoiceStatus
from invoice_mover.services.ingestion import IngestionHandler
from invoice_mover.services.orchestrator import MoveOrchestrator
from invoice_mover.settings import Settings, get_settings
from tests.consts import (
    DESTINATION_FOLDER,
    INVOICE_DATE,
    INVOICE_TIME,
    NOW,
    SOURCE_FOLDER,
    TEST_BUCKET_NAME,
    TEST_DLQ_NAME,
    TEST_QUEUE_NAME,
    TEST_REGION,
    TEST_TABLE_NAME,
    invoice_xml,
)

# Point boto3 at moto, never at a real account
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_DEFAULT_REGION"] = TEST_REGION
os.environ["DEPLOYMENT_MODE"] = "aws-prod"
for name in ("AWS_ENDPOINT_URL", "SQS_QUEUE_URL", "AWS_PROFILE"):
    os.environ.pop(name, None)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def mocked_aws():
    """Bucket, move-request queue, dead-letter queue and tracking table, all in moto."""
    with mock_aws():
        s3_client = boto3.client("s3", region_name=TEST_REGION)
        s3_client.create_bucket(Bucket=TEST_BUCKET_NAME)

        sqs_client = boto3.client("sqs", region_name=TEST_REGION)
        sqs_client.create_queue(QueueName=TEST_QUEUE_NAME)
        sqs_client.create_queue(QueueName=TEST_DLQ_NAME)

        dynamodb = boto3.resource("dynamodb", region_name=TEST_REGION)
        dynamodb.create_table(
            TableName=TEST_TABLE_NAME,
            KeySchema=[
                {"AttributeName": "fileName", "KeyType": "HASH"},
                {"AttributeName": "date", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "fileName", "AttributeType": "S"},
                {"AttributeName": "date", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )

        yield


@pytest.fixture
def s3_client(mocked_aws):
    return boto3.client("s3", region_name=TEST_REGION)


@pytest.fixture
def sqs_client(mocked_aws):
    return boto3.client("sqs", region_name=TEST_REGION)


@pytest.fixture
def queue_url(sqs_client):
    return sqs_client.get_queue_url(QueueName=TEST_QUEUE_NAME)["QueueUrl"]


@pytest.fixture
def object_store(s3_client):
    return S3ObjectStore(s3_client)


@pytest.fixture
def queue(sqs_client, queue_url):
    return SQSQueue(sqs_client, queue_url, dead_letter_queue_name=TEST_DLQ_NAME)


@pytest.fixture
def dead_letter_queue_url(sqs_client):
    return sqs_client.get_queue_url(QueueName=TEST_DLQ_NAME)["QueueUrl"]


@pytest.fixture
def tracking_store(mocked_aws):
    return DynamoTrackingStore(boto3.resource("dynamodb", region_name=TEST_REGION), TEST_TABLE_NAME)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def ingestion_handler(object_store, tracking_store, queue, clock):
    return IngestionHandler(
        object_store=object_store,
        tracking_store=tracking_store,
        queue=queue,
        source_folder=SOURCE_FOLDER,
        clock=clock,
    )


@pytest.fixture
def orchestrator(object_store, tracking_store, queue, clock):
    return MoveOrchestrator(
        object_store=object_store,
        tracking_store=tracking_store,
        queue=queue,
        source_folder=SOURCE_FOLDER,
        destination_folder=DESTINATION_FOLDER,
        clock=clock,
    )


@pytest.fixture
def settings(mocked_aws):
    return Settings()


@pytest.fixture
def factory(settings):
    return ComponentFactory(settings, AWSClientManager(settings))


@pytest.fixture
def put_invoice(s3_client):
    """Upload an invoice file to the bucket; returns its object key."""
    def _put(file_name, date=INVOICE_DATE, time=INVOICE_TIME, folder=SOURCE_FOLDER, body=None):
        key = f"{folder}/{file_name}"
        s3_client.put_object(
            Bucket=TEST_BUCKET_NAME,
            Key=key,
            Body=(body if body is not None else invoice_xml(date, time)).encode("utf-8"),
        )
        return key
    return _put


@pytest.fixture
def seed_record(tracking_store):
    """Store a tracking record directly, bypassing ingestion."""
    def _seed(file_name, date=INVOICE_DATE, moving_time=INVOICE_TIME, status=InvoiceStatus.COPIED):
        record = InvoiceRecord(
            file_name=file_name,
            date=date,
            bucket_name=TEST_BUCKET_NAME,
            moving_time=moving_time,
            status=status,
        )
        return tracking_store.create(record)
    return _seed
