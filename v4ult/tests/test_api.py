"""
API tests for V4ULT.

Run with: pytest v4ult/tests/test_api.py -v
"""

import pytest
import requests

from v4ult.api.dependencies import get_notifier
from v4ult.api.server import app
from v4ult.services import notification_service
from v4ult.services.notification_service import TelegramNotifier

BASE = "/api/v4ult"


def create(client, payload):
    response = client.post(f"{BASE}/confessions", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["shortCode"]


class TestHealth:
    def test_health_returns_ok(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_status_reports_price(self, client):
        data = client.get("/status").json()
        assert data["reveal_price"] == {"amount": 99, "currency": "INR"}

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestRevealFlow:
    def test_end_to_end(self, client, valid_payload, admin_headers, notifier):
        """Submit, look up locked, reconcile payment, look up unlocked."""
        response = client.post(f"{BASE}/confessions", json=valid_payload)
        assert response.status_code == 201
        data = response.json()
        assert set(data) == {"shortCode", "alias"}
        code = data["shortCode"]

        locked = client.get(f"{BASE}/reveal/{code}")
        assert locked.status_code == 402
        assert locked.json()["identity"] == "LOCKED"
        assert locked.json()["viewCount"] == 1
        assert locked.json()["body"] == "nice message"

        paid = client.post(
            f"/admin/confessions/{code}/mark-paid",
            json={"paymentRef": "TXN1"},
            headers=admin_headers,
        )
        assert paid.status_code == 200
        assert paid.json()["paymentState"] == "paid"

        unlocked = client.get(f"{BASE}/reveal/{code}")
        assert unlocked.status_code == 200
        assert unlocked.json()["identity"] == "John Smith"
        assert unlocked.json()["viewCount"] == 2
        assert "price" not in unlocked.json()

        assert any("TXN1" in message for message in notifier.messages)

    def test_target_name_never_returned(self, client, valid_payload):
        code = create(client, valid_payload)
        response = client.get(f"{BASE}/reveal/{code}")
        assert "Sarah Johnson" not in response.text
        assert "John Smith" not in response.text

    def test_lookup_is_case_insensitive(self, client, valid_payload):
        code = create(client, valid_payload)
        assert client.get(f"{BASE}/reveal/{code.lower()}").status_code == 402

    def test_unknown_code_404(self, client):
        response = client.get(f"{BASE}/reveal/STC-ZZZZ")
        assert response.status_code == 404
        assert "detail" in response.json()


class TestSubmission:
    def test_missing_fields_400(self, client):
        response = client.post(f"{BASE}/confessions", json={"body": "hello"})
        assert response.status_code == 400
        assert "claimedSenderName" in response.json()["detail"]

    def test_bad_sender_name_400(self, client, valid_payload):
        valid_payload["claimedSenderName"] = "xxx"
        response = client.post(f"{BASE}/confessions", json=valid_payload)
        assert response.status_code == 400
        assert "repeating" in response.json()["detail"]

    def test_unverified_author_401(self, client, valid_payload, identity):
        identity.unverified.add("user-123")
        assert client.post(f"{BASE}/confessions", json=valid_payload).status_code == 401

    def test_toxic_body_400(self, client, valid_payload, toxicity_provider):
        toxicity_provider.scores = {"toxicity": 0.93}
        response = client.post(f"{BASE}/confessions", json=valid_payload)
        assert response.status_code == 400
        assert "toxic" in response.json()["detail"]

    def test_toxicity_outage_still_accepts(self, client, valid_payload, toxicity_provider):
        toxicity_provider.fail = True
        assert client.post(f"{BASE}/confessions", json=valid_payload).status_code == 201

    def test_identity_outage_502_without_detail(self, client, valid_payload, identity):
        identity.fail = True
        response = client.post(f"{BASE}/confessions", json=valid_payload)
        assert response.status_code == 502
        assert "connection refused" not in response.text

    def test_authoritative_name_is_stored(self, client, valid_payload, identity, admin_headers):
        identity.names["user-123"] = "Rahul Verma"
        code = create(client, valid_payload)

        record = client.get(f"/admin/confessions/{code}", headers=admin_headers).json()
        assert record["claimedSenderName"] == "Rahul Verma"

    def test_snake_case_input_accepted(self, client):
        payload = {
            "author_ref": "user-9",
            "claimed_sender_name": "Meera Nair",
            "claimed_target_name": "Arjun Das",
            "body": "see you at the library",
            "category": "study_session",
            "display_alias": "Quiet Owl",
        }
        assert client.post(f"{BASE}/confessions", json=payload).status_code == 201


class TestPaymentProof:
    def test_submit_proof(self, client, valid_payload, admin_headers, notifier):
        code = create(client, valid_payload)

        response = client.post(f"{BASE}/reveal/{code}/submit-payment", json={"paymentRef": "UTR55"})

        assert response.status_code == 201
        assert response.json()["sessionId"]
        record = client.get(f"/admin/confessions/{code}", headers=admin_headers).json()
        assert record["paymentState"] == "pending"
        assert any("UTR55" in message for message in notifier.messages)

        # Still locked until an admin reconciles
        assert client.get(f"{BASE}/reveal/{code}").status_code == 402

    def test_rate_limited_within_cooldown(self, client, valid_payload, admin_headers, clock):
        code = create(client, valid_payload)
        assert client.post(f"{BASE}/reveal/{code}/submit-payment", json={"paymentRef": "A1"}).status_code == 201

        clock.advance(1.0)
        second = client.post(f"{BASE}/reveal/{code}/submit-payment", json={"paymentRef": "A2"})
        assert second.status_code == 429
        assert second.headers["Retry-After"] == "4"

        payments = client.get("/admin/payments", headers=admin_headers).json()
        assert [p["externalRef"] for p in payments] == ["A1"]

        clock.advance(5.0)
        assert client.post(f"{BASE}/reveal/{code}/submit-payment", json={"paymentRef": "A2"}).status_code == 201

    def test_missing_reference_400(self, client, valid_payload):
        code = create(client, valid_payload)
        assert client.post(f"{BASE}/reveal/{code}/submit-payment", json={}).status_code == 400

    def test_unknown_code_404(self, client):
        response = client.post(f"{BASE}/reveal/STC-ZZZZ/submit-payment", json={"paymentRef": "A1"})
        assert response.status_code == 404

    def test_rejected_proof_does_not_start_cooldown(self, client, valid_payload):
        code = create(client, valid_payload)
        url = f"{BASE}/reveal/{code}/submit-payment"

        assert client.post(f"{BASE}/reveal/STC-ZZZZ/submit-payment", json={"paymentRef": "A1"}).status_code == 404
        assert client.post(url, json={"paymentRef": "   "}).status_code == 400
        assert client.post(url, json={"paymentRef": "A1"}).status_code == 201
        assert client.post(url, json={"paymentRef": "A2"}).status_code == 429

    def test_notification_failure_does_not_fail_request(self, client, valid_payload, monkeypatch):
        def boom(*args, **kwargs):
            raise requests.ConnectionError("telegram unreachable")

        monkeypatch.setattr(notification_service.requests, "post", boom)
        app.dependency_overrides[get_notifier] = lambda: TelegramNotifier("bot-token", "42")

        code = create(client, valid_payload)
        response = client.post(f"{BASE}/reveal/{code}/submit-payment", json={"paymentRef": "A1"})
        assert response.status_code == 201


class TestAdmin:
    def test_requires_token(self, client):
        assert client.get("/admin/confessions").status_code == 403

    def test_wrong_token(self, client):
        response = client.get("/admin/confessions", headers={"X-V4ULT-Admin-Token": "guess"})
        assert response.status_code == 403

    def test_list_shows_full_records(self, client, valid_payload, admin_headers):
        create(client, valid_payload)
        rows = client.get("/admin/confessions", headers=admin_headers).json()

        assert len(rows) == 1
        assert rows[0]["claimedTargetName"] == "Sarah Johnson"
        assert rows[0]["authorRef"] == "user-123"
        assert rows[0]["validationScore"] == 100

    def test_list_sorted_by_views(self, client, valid_payload, admin_headers):
        quiet = create(client, valid_payload)
        popular = create(client, valid_payload)
        client.get(f"{BASE}/reveal/{popular}")
        client.get(f"{BASE}/reveal/{popular}")
        client.get(f"{BASE}/reveal/{quiet}")

        rows = client.get("/admin/confessions", headers=admin_headers).json()
        assert [r["shortCode"] for r in rows] == [popular, quiet]

    def test_filter_by_status(self, client, valid_payload, admin_headers):
        code = create(client, valid_payload)
        create(client, valid_payload)
        client.post(f"/admin/confessions/{code}/status", json={"status": "approved"}, headers=admin_headers)

        rows = client.get("/admin/confessions", params={"status": "approved"}, headers=admin_headers).json()
        assert [r["shortCode"] for r in rows] == [code]

        bad = client.get("/admin/confessions", params={"status": "archived"}, headers=admin_headers)
        assert bad.status_code == 400

    def test_status_workflow(self, client, valid_payload, admin_headers):
        code = create(client, valid_payload)
        url = f"/admin/confessions/{code}/status"

        assert client.post(url, json={"status": "posted"}, headers=admin_headers).status_code == 400
        assert client.post(url, json={"status": "approved"}, headers=admin_headers).status_code == 200
        posted = client.post(url, json={"status": "posted"}, headers=admin_headers)
        assert posted.status_code == 200
        assert posted.json()["postedAt"] is not None

        trail = client.get(f"/admin/confessions/{code}/audit", headers=admin_headers).json()
        assert [(e["oldValue"], e["newValue"]) for e in trail] == [
            ("pending", "approved"),
            ("approved", "posted"),
        ]

    def test_mark_paid_requires_reference(self, client, valid_payload, admin_headers):
        code = create(client, valid_payload)
        response = client.post(f"/admin/confessions/{code}/mark-paid", json={}, headers=admin_headers)
        assert response.status_code == 400

    def test_mark_paid_twice_notifies_once(self, client, valid_payload, admin_headers, notifier):
        code = create(client, valid_payload)
        url = f"/admin/confessions/{code}/mark-paid"

        assert client.post(url, json={"paymentRef": "TXN1"}, headers=admin_headers).status_code == 200
        again = client.post(url, json={"paymentRef": "TXN1"}, headers=admin_headers)

        assert again.status_code == 200
        assert again.json()["paymentState"] == "paid"
        assert len([m for m in notifier.messages if "reconciled" in m.lower()]) == 1

    def test_refund_only_from_pending(self, client, valid_payload, admin_headers):
        code = create(client, valid_payload)
        assert client.post(f"/admin/confessions/{code}/refund", json={}, headers=admin_headers).status_code == 400

        client.post(f"{BASE}/reveal/{code}/submit-payment", json={"paymentRef": "A1"})
        refunded = client.post(f"/admin/confessions/{code}/refund", json={}, headers=admin_headers)
        assert refunded.status_code == 200
        assert refunded.json()["paymentState"] == "refunded"

    def test_unknown_code_404(self, client, admin_headers):
        assert client.get("/admin/confessions/STC-ZZZZ", headers=admin_headers).status_code == 404

    def test_name_check(self, client, admin_headers):
        response = client.post("/admin/names/check", json={"names": ["John Doe", "J0hn"]}, headers=admin_headers)
        data = response.json()
        assert data["John Doe"]["valid"] is True
        assert data["J0hn"]["reason"] == "invalid characters"

    def test_stats(self, client, valid_payload, admin_headers):
        code = create(client, valid_payload)
        client.post(f"/admin/confessions/{code}/mark-paid", json={"paymentRef": "T1"}, headers=admin_headers)

        stats = client.get("/admin/stats", headers=admin_headers).json()
        assert stats["statusCounts"]["pending"] == 1
        assert stats["paymentCounts"]["paid"] == 1

    def test_metrics(self, client, admin_headers):
        data = client.get("/admin/metrics", headers=admin_headers).json()
        assert "counters" in data
        assert "rate_limiter" in data


class TestDashboard:
    def test_my_confessions(self, client, valid_payload):
        create(client, valid_payload)
        valid_payload["authorRef"] = "someone-else"
        create(client, valid_payload)

        rows = client.get(f"{BASE}/my-confessions", params={"authorRef": "user-123"}).json()
        assert len(rows) == 1
        assert rows[0]["status"] == "pending"
        assert "claimedSenderName" not in rows[0]
        assert "claimedTargetName" not in rows[0]

    def test_author_required(self, client):
        assert client.get(f"{BASE}/my-confessions").status_code == 400

    def test_public_stats(self, client, valid_payload):
        code = create(client, valid_payload)
        client.get(f"{BASE}/reveal/{code}")

        data = client.get(f"{BASE}/stats").json()
        assert data["totalSecrets"] == 1
        assert data["lastRevealAt"] is not None


@pytest.mark.parametrize("path", ["/admin/stats", "/admin/payments", "/admin/metrics"])
def test_admin_routes_locked(client, path):
    assert client.get(path).status_code == 403
