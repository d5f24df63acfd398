import json

import pytest

from aws_lib.exceptions import AWSError

RECIPIENTS = "/api/email-management/recipients"
LOGS = "/api/email-management/logs"

pytestmark = pytest.mark.django_db


def send(client, method, url, payload=None):
    return getattr(client, method)(url, data=json.dumps(payload or {}), content_type="application/json")


def test_anonymous_callers_get_401(client, kitchen):
    response = client.get(RECIPIENTS)
    assert response.status_code == 401
    assert response.json() == {"error": "Authentication required"}


def test_non_staff_get_403(client, plain_user, kitchen):
    client.force_login(plain_user)
    assert client.get(RECIPIENTS).status_code == 403


def test_add_and_list_recipients(staff_client, kitchen):
    response = send(staff_client, "post", RECIPIENTS, {
        "email_type": "weekly_report", "recipient_email": "Owner@ZedBites.test", "recipient_name": "Owner",
    })
    assert response.status_code == 201
    created = response.json()
    assert created["email_type"] == "weekly"
    assert created["recipient_email"] == "owner@zedbites.test"
    assert created["is_active"] is True

    send(staff_client, "post", RECIPIENTS, {"email_type": "daily", "recipient_email": "ops@zedbites.test"})

    listed = staff_client.get(RECIPIENTS).json()
    assert [r["email_type"] for r in listed] == ["daily", "weekly"]


def test_duplicate_recipient_is_rejected(staff_client, kitchen):
    payload = {"email_type": "daily", "recipient_email": "ops@zedbites.test"}
    assert send(staff_client, "post", RECIPIENTS, payload).status_code == 201

    response = send(staff_client, "post", RECIPIENTS, payload)

    assert response.status_code == 409
    assert "error" in response.json()
    assert len(staff_client.get(RECIPIENTS).json()) == 1


@pytest.mark.parametrize("payload", [
    {"email_type": "daily"},
    {"email_type": "monthly", "recipient_email": "ops@zedbites.test"},
    {"email_type": "daily", "recipient_email": "not-an-email"},
])
def test_invalid_recipient_payload(staff_client, kitchen, payload):
    assert send(staff_client, "post", RECIPIENTS, payload).status_code == 400


def test_malformed_body(staff_client, kitchen):
    response = staff_client.post(RECIPIENTS, data="{not json", content_type="application/json")
    assert response.status_code == 400


def test_update_recipient(staff_client, kitchen):
    created = send(staff_client, "post", RECIPIENTS, {"email_type": "daily", "recipient_email": "ops@zedbites.test"}).json()

    response = send(staff_client, "put", RECIPIENTS, {"id": created["id"], "is_active": False})

    assert response.status_code == 200
    assert response.json()["is_active"] is False


def test_update_requires_id(staff_client, kitchen):
    response = send(staff_client, "put", RECIPIENTS, {"is_active": False})
    assert response.status_code == 400


def test_update_unknown_recipient(staff_client, kitchen):
    response = send(staff_client, "put", RECIPIENTS, {"id": "missing", "is_active": False})
    assert response.status_code == 404


def test_update_into_existing_pair_conflicts(staff_client, kitchen):
    send(staff_client, "post", RECIPIENTS, {"email_type": "daily", "recipient_email": "a@zedbites.test"})
    other = send(staff_client, "post", RECIPIENTS, {"email_type": "daily", "recipient_email": "b@zedbites.test"}).json()

    response = send(staff_client, "put", RECIPIENTS, {"id": other["id"], "recipient_email": "a@zedbites.test"})
    assert response.status_code == 409


def test_delete_recipient(staff_client, kitchen):
    created = send(staff_client, "post", RECIPIENTS, {"email_type": "daily", "recipient_email": "ops@zedbites.test"}).json()

    response = send(staff_client, "delete", RECIPIENTS, {"id": created["id"]})

    assert response.json() == {"message": "Recipient deleted successfully"}
    assert staff_client.get(RECIPIENTS).json() == []


def test_delete_requires_id(staff_client, kitchen):
    assert send(staff_client, "delete", RECIPIENTS, {}).status_code == 400


def test_unsupported_method(staff_client, kitchen):
    response = send(staff_client, "patch", RECIPIENTS, {})
    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}


def test_unknown_path(staff_client, kitchen):
    response = staff_client.get("/api/email-management/nope")
    assert response.status_code == 404
    assert "error" in response.json()


def test_cors_preflight(client, kitchen):
    response = client.options(
        RECIPIENTS,
        HTTP_ORIGIN="https://reports.example.com",
        HTTP_ACCESS_CONTROL_REQUEST_METHOD="POST",
    )
    assert response.status_code == 200
    assert response["Access-Control-Allow-Origin"] == "*"


def test_store_failure_is_a_500(staff_client, kitchen, ddb):
    ddb.fail("scan")
    response = staff_client.get(RECIPIENTS)
    assert response.status_code == 500
    assert "error" in response.json()


def test_logs_respect_limit(staff_client, kitchen):
    for n in range(3):
        kitchen.email_logs.record("daily", f"r{n}@zedbites.test", "Subject", "success", {"total_orders": n})

    assert len(staff_client.get(LOGS).json()) == 3
    assert len(staff_client.get(LOGS, {"limit": 2}).json()) == 2
    assert staff_client.get(LOGS, {"limit": "0"}).status_code == 400
    assert staff_client.get(LOGS, {"limit": "ten"}).status_code == 400
    assert staff_client.get(LOGS, {"limit": "\u00b2"}).status_code == 400


def test_test_daily_without_recipients(staff_client, kitchen, ses):
    response = staff_client.post("/api/email-management/test-daily")
    assert response.status_code == 200
    assert response.json() == {"message": "No active recipients found"}
    assert ses.sent == []


def test_test_daily_reports_failures(staff_client, kitchen, ses):
    kitchen.recipients.create("daily", "broken@zedbites.test")
    ses.fail_for["broken@zedbites.test"] = AWSError("Message rejected")

    response = staff_client.post("/api/email-management/test-daily")

    assert response.status_code == 200
    body = response.json()
    assert body["failed"] == 1
    assert body["successful"] == 0
    [log] = kitchen.email_logs.latest()
    assert log.status == "failed"
    assert log.error_message == "Message rejected"


def test_test_weekly_sends(staff_client, kitchen, ses):
    kitchen.recipients.create("weekly", "owner@zedbites.test")
    body = staff_client.post("/api/email-management/test-weekly").json()
    assert body["successful"] == 1
    assert {"week_start", "week_end", "top_selling_items"} <= set(body["data"])


def test_scheduled_trigger(staff_client, kitchen, ses):
    kitchen.recipients.create("daily", "ops@zedbites.test")
    response = send(staff_client, "post", "/api/reports/daily_data/", {"scheduled": True})
    assert response.status_code == 200
    assert response.json()["successful"] == 1


def test_unknown_report_type(staff_client, kitchen):
    assert send(staff_client, "post", "/api/reports/monthly/", {}).status_code == 400


# Orders

@pytest.fixture
def cook_client(client, plain_user):
    client.force_login(plain_user)
    return client


def test_order_api_lifecycle(cook_client, kitchen, sample_items):
    response = send(cook_client, "post", "/api/orders/", {
        "customer_name": "Mwila Banda", "customer_phone": "260971234567", "items": sample_items,
    })
    assert response.status_code == 201
    order = response.json()
    assert order["total_amount"] == 20.0
    assert order["customer_phone"] == "+260 97 123 4567"

    advanced = send(cook_client, "post", f"/api/orders/{order['id']}/status/").json()
    assert advanced["status"] == "cooking"

    skipped = send(cook_client, "post", f"/api/orders/{order['id']}/status/", {"status": "delivered"})
    assert skipped.status_code == 409

    board = cook_client.get("/api/orders/", {"status": "cooking"}).json()
    assert [o["id"] for o in board["orders"]] == [order["id"]]


def test_order_api_validation(cook_client, kitchen):
    response = send(cook_client, "post", "/api/orders/", {"customer_name": "Mwila", "items": []})
    assert response.status_code == 400


def test_status_of_unknown_order(cook_client, kitchen):
    assert send(cook_client, "post", "/api/orders/missing/status/").status_code == 404


def test_location_push(cook_client, kitchen, sample_items):
    order = kitchen.orders.create_order("Mwila", sample_items)
    url = f"/api/orders/{order.order_id}/location/"

    assert send(cook_client, "post", url, {"lat": 1, "lng": 2}).status_code == 409

    kitchen.trackers.tracker(order.order_id).start_tracking()
    response = send(cook_client, "post", url, {"lat": -15.4, "lng": 28.3})
    assert response.json() == {"tracking": True, "accepted": True}
    assert kitchen.orders.get(order.order_id).current_location.lng == pytest.approx(28.3)

    assert send(cook_client, "post", url, {"lat": "x"}).status_code == 400

    response = send(cook_client, "post", url, {"error": "Timeout expired"})
    assert response.json() == {"tracking": False}
    assert not kitchen.trackers.tracker(order.order_id).is_tracking
