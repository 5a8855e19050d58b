import pytest
from fastapi import status
from fastapi.testclient import TestClient

from invoice_mover.main import create_app
from invoice_mover.schemas import InvoiceStatus, RecordKey
from tests.consts import FUTURE_TIME, INVOICE_DATE
from tests.utils import object_keys


@pytest.fixture
def client(settings, factory):
    return TestClient(create_app(settings, factory))


def test_health(client):
    response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "ok"
    assert response.json()["deployment_mode"] == "aws-prod"


def test_get_invoice(client, seed_record):
    seed_record("a.xml")

    response = client.get("/v1/invoices/a.xml", params={"date": INVOICE_DATE})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        "fileName": "a.xml",
        "date": INVOICE_DATE,
        "bucketName": "test-invoice-bucket",
        "movingTime": "2024/01/10 08:00:00",
        "status": "COPIED",
    }


def test_get_missing_invoice(client):
    response = client.get("/v1/invoices/missing.xml", params={"date": INVOICE_DATE})

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["kind"] == "not_found"


def test_invalid_date_is_a_bad_request(client):
    response = client.get("/v1/invoices/a.xml", params={"date": "2024-01-10"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_missing_date_is_unprocessable(client):
    response = client.get("/v1/invoices/a.xml")

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_delete_invoice(client, tracking_store, seed_record):
    seed_record("a.xml")

    response = client.delete("/v1/invoices/a.xml", params={"date": INVOICE_DATE})

    assert response.status_code == status.HTTP_204_NO_CONTENT
    assert tracking_store.get(RecordKey("a.xml", INVOICE_DATE)) is None


def test_move_invoice(client, s3_client, tracking_store, put_invoice, seed_record):
    put_invoice("a.xml")
    seed_record("a.xml", moving_time="2020/01/01 00:00:00")

    response = client.post("/v1/invoices/a.xml/move", params={"date": INVOICE_DATE})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["outcome"] == "moved"
    assert object_keys(s3_client) == ["moved/a.xml"]
    assert tracking_store.get(RecordKey("a.xml", INVOICE_DATE)).status == InvoiceStatus.UPLOADED


def test_force_move_of_a_future_invoice(client, s3_client, put_invoice, seed_record):
    put_invoice("a.xml")
    seed_record("a.xml", moving_time="2999/01/01 00:00:00")

    not_forced = client.post("/v1/invoices/a.xml/move", params={"date": INVOICE_DATE})
    forced = client.post("/v1/invoices/a.xml/move", params={"date": INVOICE_DATE, "force": "true"})

    assert not_forced.json()["outcome"] == "not_ready"
    assert forced.json()["outcome"] == "moved"
    assert object_keys(s3_client) == ["moved/a.xml"]


def test_reconcile(client, s3_client, put_invoice, seed_record):
    put_invoice("a.xml")
    put_invoice("b.xml")
    seed_record("a.xml", moving_time="2020/01/01 00:00:00")
    seed_record("b.xml", moving_time="2999/01/01 00:00:00")

    response = client.post("/v1/reconcile")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["considered"] == 1
    assert response.json()["moved"] == 1
    assert object_keys(s3_client) == ["incoming/b.xml", "moved/a.xml"]
