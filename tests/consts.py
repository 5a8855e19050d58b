from datetime import datetime

TEST_REGION = "us-east-1"
TEST_BUCKET_NAME = "test-invoice-bucket"
TEST_TABLE_NAME = "invoices"
TEST_QUEUE_NAME = "invoice-move-queue"
TEST_DLQ_NAME = "invoice-move-dlq"

SOURCE_FOLDER = "incoming"
DESTINATION_FOLDER = "moved"

# fixed clock of the pipeline components under test
NOW = datetime(2024, 1, 10, 9, 0, 0)

INVOICE_FILE_NAME = "invoice123.xml"
INVOICE_DATE = "2024/01/10"
INVOICE_TIME = "2024/01/10 08:00:00"
FUTURE_TIME = "2024/01/10 11:00:00"


def invoice_xml(date: str = INVOICE_DATE, time: str = INVOICE_TIME) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<invoice>\n"
        "  <number>123</number>\n"
        f"  <date>{date}</date>\n"
        f"  <time>{time}</time>\n"
        "  <total>99.50</total>\n"
        "</invoice>\n"
    )
