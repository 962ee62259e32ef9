"""
API tests for ordering, home visits, reports and the catalog
Essential for production reliability
"""

from datetime import date, timedelta

import pytest

from app.models.home_visit import HomeVisitStatus
from app.models.order import OrderStatus
from app.models.user import ROLE_AGENT
from app.services.order_service import OrderService
from app.utils.error_handler import DatabaseError

def _checkout_payload(lab_tests, **overrides):
    payload = {
        "items": [{"test_id": lab_tests[0].id, "quantity": 1}, {"test_id": lab_tests[1].id, "quantity": 1}],
        "address": {
            "line1": "12 MG Road",
            "city": "Bengaluru",
            "state": "Karnataka",
            "pincode": "560001",
        },
        "scheduled_date": (date.today() + timedelta(days=2)).isoformat(),
        "scheduled_time": "07:00-09:00",
        "payment_method": "razorpay",
    }
    payload.update(overrides)
    return payload

class TestCheckout:
    """Test cases for placing orders"""

    def test_create_order_success(self, client, customer, lab_tests, token_for):
        """Test successful order creation"""
        response = client.post("/api/v1/orders/", json=_checkout_payload(lab_tests), headers=token_for(customer))
        assert response.status_code == 201

        data = response.json()
        assert data["order_number"].startswith("LL")
        assert data["status"] == "PENDING"
        assert data["user_id"] == customer.id
        assert data["total_amount"] == 1300.0
        assert data["discount_amount"] == 100.0
        assert data["final_amount"] == 1200.0
        assert len(data["items"]) == 2
        assert data["home_visit"]["status"] == "SCHEDULED"
        assert data["home_visit"]["agent_id"] is None

    def test_unknown_test_returns_error_envelope(self, client, customer, lab_tests, token_for):
        payload = _checkout_payload(lab_tests, items=[{"test_id": 9999}])
        response = client.post("/api/v1/orders/", json=payload, headers=token_for(customer))
        assert response.status_code == 400

        error = response.json()["error"]
        assert error["code"] == "WORKFLOW_ERROR"
        assert "9999" in error["message"]
        assert error["request_id"]

    def test_order_number_exhaustion_returns_database_error(self, client, customer, lab_tests, token_for, monkeypatch):
        def _exhausted(self):
            raise DatabaseError("Could not allocate a unique order number")

        monkeypatch.setattr(OrderService, "_unique_order_number", _exhausted)
        response = client.post("/api/v1/orders/", json=_checkout_payload(lab_tests), headers=token_for(customer))
        assert response.status_code == 500

        error = response.json()["error"]
        assert error["code"] == "DATABASE_ERROR"
        assert error["request_id"]

    def test_invalid_pincode(self, client, customer, lab_tests, token_for):
        payload = _checkout_payload(lab_tests)
        payload["address"]["pincode"] = "5600"
        response = client.post("/api/v1/orders/", json=payload, headers=token_for(customer))
        assert response.status_code == 422

    def test_requires_login(self, client, lab_tests):
        response = client.post("/api/v1/orders/", json=_checkout_payload(lab_tests))
        assert response.status_code in (401, 403)

class TestCustomerOrders:
    """Test cases for customer order views"""

    def test_lists_only_own_orders(self, client, customer, user_factory, order_factory, token_for):
        other = user_factory("arjun")
        mine = order_factory(customer)
        order_factory(other)

        response = client.get("/api/v1/orders/", headers=token_for(customer))
        assert response.status_code == 200

        data = response.json()
        assert data["total"] == 1
        assert data["total_pages"] == 1
        assert data["orders"][0]["id"] == mine.id

    def test_status_filter(self, client, customer, order_factory, token_for):
        order_factory(customer)
        confirmed = order_factory(customer, status=OrderStatus.CONFIRMED)

        response = client.get("/api/v1/orders/?status=CONFIRMED", headers=token_for(customer))
        assert [o["id"] for o in response.json()["orders"]] == [confirmed.id]

    def test_other_customers_order_is_not_found(self, client, customer, user_factory, order_factory, token_for):
        other = user_factory("arjun")
        order = order_factory(other)

        response = client.get(f"/api/v1/orders/{order.id}", headers=token_for(customer))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_admin_sees_any_order(self, client, customer, admin_user, order_factory, token_for):
        order = order_factory(customer)
        response = client.get(f"/api/v1/orders/{order.id}", headers=token_for(admin_user))
        assert response.status_code == 200
        assert response.json()["order_number"] == order.order_number

    def test_customer_cancels_order(self, client, customer, order_factory, token_for, email_sender):
        order = order_factory(customer, status=OrderStatus.CONFIRMED)

        response = client.post(f"/api/v1/orders/{order.id}/cancel", headers=token_for(customer))
        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"
        assert email_sender.messages[0].subject == f"Order Cancelled - {order.order_number}"

    def test_cannot_cancel_after_collection(self, client, customer, order_factory, token_for):
        order = order_factory(customer, status=OrderStatus.SAMPLE_COLLECTED)

        response = client.post(f"/api/v1/orders/{order.id}/cancel", headers=token_for(customer))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_TRANSITION"

class TestAdminOrders:
    """Test cases for admin status management"""

    def test_status_update(self, client, customer, admin_user, order_factory, token_for, email_sender):
        order = order_factory(customer)

        response = client.put(
            f"/api/v1/orders/{order.id}/status",
            json={"status": "CONFIRMED", "notes": "Payment verified"},
            headers=token_for(admin_user),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "CONFIRMED"
        assert len(email_sender.messages) == 1

        history = client.get(f"/api/v1/orders/{order.id}/history", headers=token_for(admin_user)).json()
        assert len(history) == 1
        assert history[0]["from_status"] == "PENDING"
        assert history[0]["status"] == "CONFIRMED"
        assert history[0]["notes"] == "Payment verified"
        assert history[0]["created_by"] == admin_user.id

    def test_illegal_transition_returns_400(self, client, customer, admin_user, order_factory, token_for, email_sender):
        order = order_factory(customer)

        response = client.put(
            f"/api/v1/orders/{order.id}/status", json={"status": "COMPLETED"}, headers=token_for(admin_user)
        )
        assert response.status_code == 400

        error = response.json()["error"]
        assert error["code"] == "INVALID_TRANSITION"
        assert "PENDING" in error["message"]
        assert email_sender.messages == []

    def test_unknown_status_value(self, client, customer, admin_user, order_factory, token_for):
        order = order_factory(customer)
        response = client.put(
            f"/api/v1/orders/{order.id}/status", json={"status": "SHIPPED"}, headers=token_for(admin_user)
        )
        assert response.status_code == 422

    def test_missing_order(self, client, admin_user, token_for):
        response = client.put("/api/v1/orders/9999/status", json={"status": "CONFIRMED"}, headers=token_for(admin_user))
        assert response.status_code == 404

    def test_admin_list(self, client, customer, user_factory, admin_user, order_factory, token_for):
        order_factory(customer)
        order_factory(user_factory("arjun"))

        response = client.get("/api/v1/orders/admin/all?page_size=1", headers=token_for(admin_user))
        data = response.json()
        assert data["total"] == 2
        assert data["total_pages"] == 2
        assert len(data["orders"]) == 1

class TestHomeVisitEndpoints:
    """Test cases for home visit coordination"""

    def test_assign_then_reassign(self, client, customer, admin_user, agent, user_factory, order_factory, token_for):
        other_agent = user_factory("suresh", role=ROLE_AGENT)
        order = order_factory(customer, status=OrderStatus.CONFIRMED)
        url = f"/api/v1/home-visits/{order.home_visit.id}/assign"

        response = client.put(url, json={"agent_id": agent.id}, headers=token_for(admin_user))
        assert response.status_code == 200
        assert response.json()["agent"]["id"] == agent.id

        response = client.put(url, json={"agent_id": other_agent.id}, headers=token_for(admin_user))
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ALREADY_ASSIGNED"

    def test_no_assignment_after_customer_cancel(self, client, customer, admin_user, agent, order_factory, token_for, email_sender):
        order = order_factory(customer, status=OrderStatus.CONFIRMED)
        client.post(f"/api/v1/orders/{order.id}/cancel", headers=token_for(customer))

        response = client.put(
            f"/api/v1/home-visits/{order.home_visit.id}/assign",
            json={"agent_id": agent.id},
            headers=token_for(admin_user),
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_TRANSITION"
        assert [m.subject for m in email_sender.messages] == [f"Order Cancelled - {order.order_number}"]

    def test_agent_runs_own_visit(self, client, customer, agent, order_factory, token_for, email_sender):
        order = order_factory(customer, status=OrderStatus.CONFIRMED, agent=agent)
        url = f"/api/v1/home-visits/{order.home_visit.id}/status"

        response = client.put(url, json={"status": "IN_PROGRESS"}, headers=token_for(agent))
        assert response.status_code == 200
        assert response.json()["status"] == "IN_PROGRESS"

        response = client.put(url, json={"status": "COMPLETED", "otp": "4821"}, headers=token_for(agent))
        assert response.status_code == 200
        assert response.json()["collected_at"] is not None

        order_response = client.get(f"/api/v1/orders/{order.id}", headers=token_for(customer))
        assert order_response.json()["status"] == "SAMPLE_COLLECTED"
        assert len(email_sender.messages) == 2

    def test_agent_cannot_touch_other_visits(self, client, customer, agent, user_factory, order_factory, token_for):
        other_agent = user_factory("suresh", role=ROLE_AGENT)
        order = order_factory(customer, status=OrderStatus.CONFIRMED, agent=other_agent)

        response = client.put(
            f"/api/v1/home-visits/{order.home_visit.id}/status",
            json={"status": "IN_PROGRESS"},
            headers=token_for(agent),
        )
        assert response.status_code == 403

    def test_start_without_agent(self, client, customer, admin_user, order_factory, token_for):
        order = order_factory(customer, status=OrderStatus.CONFIRMED)
        response = client.put(
            f"/api/v1/home-visits/{order.home_visit.id}/status",
            json={"status": "IN_PROGRESS"},
            headers=token_for(admin_user),
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "AGENT_REQUIRED"

    def test_bad_otp(self, client, customer, agent, order_factory, token_for):
        order = order_factory(customer, status=OrderStatus.CONFIRMED, agent=agent)
        response = client.put(
            f"/api/v1/home-visits/{order.home_visit.id}/status",
            json={"status": "IN_PROGRESS", "otp": "12ab"},
            headers=token_for(agent),
        )
        assert response.status_code == 422

    def test_agent_lists_own_visits(self, client, customer, agent, order_factory, token_for):
        mine = order_factory(customer, agent=agent)
        order_factory(customer)

        response = client.get("/api/v1/home-visits/", headers=token_for(agent))
        assert [v["id"] for v in response.json()] == [mine.home_visit.id]

    def test_list_agents_and_remind(self, client, customer, admin_user, agent, order_factory, token_for, email_sender):
        agents = client.get("/api/v1/home-visits/agents", headers=token_for(admin_user)).json()
        assert [a["username"] for a in agents] == ["ravi"]

        order = order_factory(customer, status=OrderStatus.CONFIRMED, agent=agent)
        response = client.post(f"/api/v1/home-visits/{order.home_visit.id}/remind", headers=token_for(admin_user))
        assert response.status_code == 200
        assert response.json()["sent"] is True
        assert email_sender.messages[0].subject.startswith("Home Visit Reminder")

class TestReportEndpoints:
    """Test cases for report upload and delivery"""

    def test_upload_and_deliver(self, client, customer, admin_user, order_factory, token_for):
        order = order_factory(customer, status=OrderStatus.PROCESSING)
        upload = {
            "order_id": order.id,
            "file_name": "report.pdf",
            "file_url": "https://files.labs.test/report.pdf",
            "file_size": 2048,
        }

        response = client.post("/api/v1/reports/", json=upload, headers=token_for(admin_user))
        assert response.status_code == 201
        report_id = response.json()["id"]

        reports = client.get(f"/api/v1/reports/order/{order.id}", headers=token_for(customer)).json()
        assert [r["id"] for r in reports] == [report_id]

        response = client.put(f"/api/v1/reports/{report_id}/deliver", headers=token_for(admin_user))
        assert response.status_code == 200
        assert response.json()["is_delivered"] is True

        response = client.put(f"/api/v1/reports/{report_id}/deliver", headers=token_for(admin_user))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "REPORT_ALREADY_DELIVERED"

        order_response = client.get(f"/api/v1/orders/{order.id}", headers=token_for(customer))
        assert order_response.json()["status"] == "COMPLETED"

    @pytest.mark.parametrize("file_name", ["report.exe", "report"])
    def test_rejects_unsupported_files(self, client, customer, admin_user, order_factory, token_for, file_name):
        order = order_factory(customer, status=OrderStatus.PROCESSING)
        upload = {"order_id": order.id, "file_name": file_name, "file_url": "https://files.labs.test/x"}
        response = client.post("/api/v1/reports/", json=upload, headers=token_for(admin_user))
        assert response.status_code == 422

class TestCatalog:
    """Test cases for the lab test catalog"""

    def test_public_listing_hides_inactive(self, client, lab_tests, lab_test_factory):
        lab_test_factory("Retired Panel", 100.0, is_active=False)
        response = client.get("/api/v1/catalog/tests")
        assert response.status_code == 200
        assert sorted(t["name"] for t in response.json()) == ["Complete Blood Count", "Lipid Profile"]

    def test_admin_creates_test(self, client, admin_user, token_for):
        lab_test = {"name": "HbA1c", "slug": "hba1c", "price": 450.0, "discount_price": 399.0}
        response = client.post("/api/v1/catalog/tests", json=lab_test, headers=token_for(admin_user))
        assert response.status_code == 201
        assert response.json()["report_time"] == "24 hours"

        response = client.post("/api/v1/catalog/tests", json=lab_test, headers=token_for(admin_user))
        assert response.status_code == 400

    def test_discount_above_price_rejected(self, client, admin_user, token_for):
        lab_test = {"name": "HbA1c", "slug": "hba1c", "price": 450.0, "discount_price": 500.0}
        response = client.post("/api/v1/catalog/tests", json=lab_test, headers=token_for(admin_user))
        assert response.status_code == 422

class TestHealthCheck:
    """Test health check functionality"""

    def test_health_endpoint(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
