"""Tests for the negotiation HTTP endpoints."""

from __future__ import annotations

import time
from typing import Any

from fastapi.testclient import TestClient

from dropit.provider.models import ProviderCall


def _wait_for(client: TestClient, negotiation_id: str, status: str) -> dict[str, Any]:
    for _ in range(300):
        body = client.get(f"/status/{negotiation_id}").json()
        if body["status"] == status:
            return body
        time.sleep(0.01)
    raise AssertionError(f"negotiation never reached {status}: {body}")


def _start(client: TestClient, **fields: str) -> dict[str, Any]:
    resp = client.post("/start", data=fields)
    assert resp.status_code == 200, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# POST /start
# ---------------------------------------------------------------------------

class TestStart:
    """Submission through the HTTP surface."""

    def test_refund_request_runs_to_completion(self, client: TestClient, fake_provider) -> None:
        body = _start(
            client, userMessage="I want a refund", orderNumber="ORD1", phoneNumber="4155552671"
        )

        assert body["success"] is True
        assert body["message"] == "Negotiation started successfully"

        snapshot = _wait_for(client, body["negotiationId"], "completed")
        assert snapshot["category"] == "refund"
        assert snapshot["referenceNumber"] == "ORD1"
        assert snapshot["customer"]["phone"] == "+14155552671"
        assert snapshot["providerCallId"] == "call_1"
        assert snapshot["phase"] == "completing"
        assert snapshot["result"]["code"] == "48213"
        assert fake_provider.placed[0]["customer_number"] == "+14155552671"

    def test_missing_message(self, client: TestClient) -> None:
        resp = client.post("/start", data={"phoneNumber": "4155552671"})

        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "User message is required"}

    def test_refund_without_order_or_screenshot(self, client: TestClient) -> None:
        resp = client.post(
            "/start", data={"userMessage": "I want a refund", "phoneNumber": "4155552671"}
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == (
            "Either order number or screenshot is required for returns/refunds"
        )

    def test_missing_phone(self, client: TestClient) -> None:
        resp = client.post("/start", data={"userMessage": "Book an appointment"})

        assert resp.status_code == 400
        assert resp.json()["error"] == "Phone number is required to make the call"

    def test_invalid_phone(self, client: TestClient, app_services) -> None:
        resp = client.post("/start", data={"userMessage": "Help me", "phoneNumber": "12345"})

        assert resp.status_code == 400
        assert resp.json()["error"] == (
            "Invalid phone number format: 12345. Must be in E.164 format (e.g., +15551234567)"
        )
        assert len(app_services["registry"]) == 0

    def test_screenshot_satisfies_return_request(self, client: TestClient, app_services) -> None:
        resp = client.post(
            "/start",
            data={"userMessage": "I need to return this jacket", "phoneNumber": "+14155552671"},
            files={"screenshot": ("my order.png", b"png-bytes", "image/png")},
        )
        assert resp.status_code == 200, resp.text

        snapshot = _wait_for(client, resp.json()["negotiationId"], "completed")
        attachment = snapshot["attachmentRef"]
        assert snapshot["category"] == "return"
        assert attachment.startswith("/uploads/")
        assert attachment.endswith("-my_order.png")

        stored = app_services["_settings"].upload_dir / attachment.removeprefix("/uploads/")
        assert stored.read_bytes() == b"png-bytes"
        assert client.get(attachment).content == b"png-bytes"

    def test_rejected_submission_leaves_no_screenshot(
        self, client: TestClient, app_services
    ) -> None:
        resp = client.post(
            "/start",
            data={"userMessage": "I need to return this jacket"},
            files={"screenshot": ("my order.png", b"png-bytes", "image/png")},
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "Phone number is required to make the call"
        assert list(app_services["_settings"].upload_dir.iterdir()) == []
        assert len(app_services["registry"]) == 0

    def test_oversized_screenshot_rejected(self, client: TestClient, app_services) -> None:
        client.app.state.settings = app_services["_settings"].model_copy(
            update={"max_upload_bytes": 4}
        )

        resp = client.post(
            "/start",
            data={"userMessage": "Return this", "phoneNumber": "+14155552671"},
            files={"screenshot": ("big.png", b"0123456789", "image/png")},
        )

        assert resp.status_code == 400
        assert resp.json()["error"].startswith("Screenshot must be at most")
        assert len(app_services["registry"]) == 0

    def test_signed_in_user_is_recorded(self, client: TestClient) -> None:
        token = client.post(
            "/signup", json={"email": "jane@example.com", "password": "hunter22"}
        ).json()["token"]

        resp = client.post(
            "/start",
            data={"userMessage": "Cancel my subscription", "phoneNumber": "4155552671"},
            headers={"Authorization": f"Bearer {token}"},
        )

        snapshot = client.get(f"/status/{resp.json()['negotiationId']}").json()
        assert snapshot["submittedBy"] == "jane@example.com"

    def test_invalid_token_is_treated_as_anonymous(self, client: TestClient) -> None:
        resp = client.post(
            "/start",
            data={"userMessage": "Cancel my subscription", "phoneNumber": "4155552671"},
            headers={"Authorization": "Bearer not-a-token"},
        )

        assert resp.status_code == 200
        snapshot = client.get(f"/status/{resp.json()['negotiationId']}").json()
        assert snapshot["submittedBy"] is None

    def test_placement_failure_reported_through_status(
        self, client: TestClient, fake_provider
    ) -> None:
        fake_provider.phone_number_id = None

        body = _start(client, userMessage="Book an appointment", phoneNumber="4155552671")

        snapshot = _wait_for(client, body["negotiationId"], "failed")
        assert snapshot["phase"] == "failed"
        assert snapshot["providerCallId"] is None
        assert "not registered" in snapshot["error"]

    def test_response_carries_request_id(self, client: TestClient) -> None:
        resp = client.post("/start", data={"phoneNumber": "4155552671"})
        assert resp.headers["X-Request-ID"]


# ---------------------------------------------------------------------------
# GET /status/{id}
# ---------------------------------------------------------------------------

class TestStatus:
    def test_unknown_id(self, client: TestClient) -> None:
        resp = client.get("/status/does-not-exist")

        assert resp.status_code == 404
        assert resp.json() == {"error": "Negotiation not found"}


# ---------------------------------------------------------------------------
# POST /log
# ---------------------------------------------------------------------------

class TestLog:
    """The provider's end-of-call webhook."""

    def test_completes_live_call(self, client: TestClient, fake_provider) -> None:
        fake_provider.statuses = [ProviderCall(id="call", status="in-progress", duration=5)]
        body = _start(
            client, userMessage="I want a refund", orderNumber="ORD1", phoneNumber="4155552671"
        )
        _wait_for(client, body["negotiationId"], "in_progress")

        resp = client.post(
            "/log",
            json={"callId": "call_1", "refund": "I can approve a $20 refund", "code": "AB-1234"},
        )

        assert resp.json() == {"success": True}
        snapshot = _wait_for(client, body["negotiationId"], "completed")
        assert snapshot["result"]["code"] == "AB-1234"
        assert snapshot["result"]["realConfirmationCode"] == "AB-1234"
        assert snapshot["result"]["refundAmount"] == "20.00"
        assert snapshot["result"]["source"] == "provider_webhook"

    def test_unknown_call_still_succeeds(self, client: TestClient) -> None:
        resp = client.post("/log", json={"callId": "call_nobody", "code": "X1"})

        assert resp.status_code == 200
        assert resp.json() == {"success": True}

    def test_unreadable_body_still_succeeds(self, client: TestClient) -> None:
        resp = client.post(
            "/log", content=b"not json", headers={"Content-Type": "application/json"}
        )

        assert resp.status_code == 200
        assert resp.json() == {"success": True}

    def test_non_object_body_still_succeeds(self, client: TestClient) -> None:
        assert client.post("/log", json=["call_1"]).json() == {"success": True}


# ---------------------------------------------------------------------------
# GET /test-phone
# ---------------------------------------------------------------------------

class TestTestPhone:
    def test_lists_numbers(self, client: TestClient) -> None:
        resp = client.get("/test-phone")

        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "agentPhoneNumber": "+15719329354",
            "resolvedPhoneNumberId": "pn_test",
            "phoneNumbers": [{"id": "pn_test", "number": "+15719329354"}],
        }
