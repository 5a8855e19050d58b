from tests.consts import TEST_BUCKET_NAME


def object_keys(s3_client, bucket=TEST_BUCKET_NAME):
    response = s3_client.list_objects_v2(Bucket=bucket)
    return sorted(obj["Key"] for obj in response.get("Contents", []))


def receive_all(sqs_client, queue_url, max_number=10):
    response = sqs_client.receive_message(
        QueueUrl=queue_url,
        MaxNumberOfMessages=max_number,
        WaitTimeSeconds=0,
        AttributeNames=["All"],
    )
    return response.get("Messages", [])


def queue_depth(sqs_client, queue_url):
    """Messages on the queue, whether visible, in flight or delayed."""
    attributes = sqs_client.get_queue_attributes(
        QueueUrl=queue_url,
        AttributeNames=[
            "ApproximateNumberOfMessages",
            "ApproximateNumberOfMessagesNotVisible",
            "ApproximateNumberOfMessagesDelayed",
        ],
    )["Attributes"]
    return sum(int(value) for value in attributes.values())


def make_visible(sqs_client, queue_url, message):
    sqs_client.change_message_visibility(
        QueueUrl=queue_url, ReceiptHandle=message.receipt_handle, VisibilityTimeout=0
    )


def stream_record(file_name, date, new_status, event_name="MODIFY"):
    """A DynamoDB stream record in the wire format Lambda delivers."""
    record = {
        "eventName": event_name,
        "dynamodb": {
            "Keys": {"fileName": {"S": file_name}, "date": {"S": date}},
        },
    }
    if new_status is not None:
        record["dynamodb"]["NewImage"] = {
            "fileName": {"S": file_name},
            "date": {"S": date},
            "file_status": {"S": new_status},
        }
    return record


def s3_event(bucket, key):
    return {
        "Records": [
            {
                "eventName": "ObjectCreated:Put",
                "s3": {"bucket": {"name": bucket}, "object": {"key": key}},
            }
        ]
    }
