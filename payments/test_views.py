import json
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase, override_settings
from django.urls import reverse

from events.models import Event, Team
from .models import Payment, Ticket
from .tests import FakeResponse, sign


class PaymentEndpointTests(TestCase):
    def setUp(self):
        self.event = Event.objects.create(name="RoboRace", price_per_head=Decimal("200.00"), max_team_size=4)
        self.team = Team.objects.create(event=self.event, team_name="Gearheads", team_size=3)

    def _post(self, payload):
        return self.client.post(
            reverse("payments:payment"),
            data=json.dumps(payload),
            content_type="application/json",
        )

    def _create_order(self, order_id="order_E1"):
        resp = FakeResponse(200, {"id": order_id, "amount": 60000, "currency": "INR"})
        with patch("payments.integrations.razorpay.requests.post", return_value=resp):
            return self._post({"action": "create-order", "teamId": str(self.team.pk), "eventName": "RoboRace"})

    def _verify(self, order_id="order_E1", payment_id="pay_E1", status="captured", signature=None):
        body = {
            "action": "verify-payment",
            "razorpay_order_id": order_id,
            "razorpay_payment_id": payment_id,
            "razorpay_signature": signature or sign(order_id, payment_id),
            "teamId": str(self.team.pk),
        }
        resp = FakeResponse(200, {"id": payment_id, "status": status, "amount": 60000, "order_id": order_id})
        with patch("payments.integrations.razorpay.requests.get", return_value=resp) as get:
            return self._post(body), get

    def test_create_order_returns_order_handle(self):
        resp = self._create_order()
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"success": True, "orderId": "order_E1", "amount": 60000, "currency": "INR"})
        self.assertEqual(Payment.objects.get().razorpay_order_id, "order_E1")
        self.assertNotIn("test_key_secret", resp.content.decode())

    def test_create_order_unknown_team(self):
        resp = self._post({"action": "create-order", "teamId": "0f8fad5b-d9cb-469f-a165-70867728950e"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"success": False, "error": "Invalid team"})

    def test_create_order_gateway_down(self):
        with patch("payments.integrations.razorpay.requests.post", return_value=FakeResponse(503, text="")):
            resp = self._post({"action": "create-order", "teamId": str(self.team.pk)})
        self.assertEqual(resp.status_code, 502)
        self.assertFalse(resp.json()["success"])
        self.assertFalse(Payment.objects.exists())

    def test_happy_path_is_idempotent(self):
        self._create_order()

        first, _ = self._verify()
        self.assertEqual(first.status_code, 200)
        data = first.json()
        self.assertTrue(data["success"])
        self.assertEqual(data["orderId"], "order_E1")
        self.assertEqual(data["paymentId"], "pay_E1")
        self.assertEqual(data["amount"], 600)
        self.assertEqual(data["payment"]["status"], "paid")
        self.assertTrue(data["ticket"]["ticket_code"])

        second, _ = self._verify()
        self.assertEqual(second.status_code, 200)
        self.assertEqual(second.json()["ticket"]["id"], data["ticket"]["id"])
        self.assertEqual(second.json()["ticket"]["ticket_code"], data["ticket"]["ticket_code"])

        self.assertEqual(Ticket.objects.filter(team=self.team).count(), 1)
        self.assertEqual(Payment.objects.filter(team=self.team, status="paid").count(), 1)

    def test_create_order_after_payment_is_conflict(self):
        self._create_order()
        self._verify()
        with patch("payments.integrations.razorpay.requests.post") as post:
            resp = self._post({"action": "create-order", "teamId": str(self.team.pk)})
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json(), {"success": False, "error": "Team has already paid"})
        post.assert_not_called()
        self.assertEqual(Payment.objects.filter(team=self.team).count(), 1)

    def test_not_captured_leaves_payment_untouched(self):
        self._create_order()
        resp, _ = self._verify(status="authorized")
        self.assertEqual(resp.status_code, 400)
        self.assertIn("authorized", resp.json()["error"])
        payment = Payment.objects.get()
        self.assertEqual(payment.status, Payment.Status.CREATED)
        self.assertIsNone(payment.razorpay_payment_id)
        self.assertFalse(Ticket.objects.exists())

    def test_missing_payment_record(self):
        resp, _ = self._verify(order_id="order_UNKNOWN")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"success": False, "error": "Payment record not found"})
        self.assertFalse(Ticket.objects.exists())

    def test_bad_signature_never_reaches_gateway(self):
        self._create_order()
        with self.assertLogs("payments.services", level="WARNING") as cm:
            resp, get = self._verify(signature="0" * 64)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"success": False, "error": "Invalid payment signature"})
        self.assertIn("possible tampering", cm.output[0])
        get.assert_not_called()
        self.assertEqual(Payment.objects.get().status, Payment.Status.CREATED)
        self.assertFalse(Ticket.objects.exists())

    def test_missing_fields(self):
        resp = self._post({"action": "verify-payment", "razorpay_order_id": "order_E1", "teamId": str(self.team.pk)})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("razorpay_payment_id", resp.json()["error"])
        self.assertIn("razorpay_signature", resp.json()["error"])

    def test_unknown_action_and_bad_body(self):
        with patch("payments.integrations.razorpay.requests.post") as post:
            resp = self._post({"action": "refund", "teamId": str(self.team.pk)})
            self.assertEqual(resp.status_code, 400)
            self.assertEqual(resp.json()["error"], "Invalid action")

            resp = self.client.post(reverse("payments:payment"), data="not json", content_type="application/json")
            self.assertEqual(resp.status_code, 400)
        post.assert_not_called()

    def test_non_post_rejected(self):
        for method in ("get", "put", "delete"):
            resp = getattr(self.client, method)(reverse("payments:payment"))
            self.assertEqual(resp.status_code, 405)
            self.assertEqual(resp.json(), {"success": False, "error": "Method not allowed"})

    @override_settings(RAZORPAY={"KEY_ID": "", "KEY_SECRET": ""})
    def test_missing_credentials(self):
        with patch("payments.integrations.razorpay.requests.post") as post:
            with self.assertLogs("payments.config", level="ERROR"):
                resp = self._post({"action": "create-order", "teamId": str(self.team.pk)})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"success": False, "error": "Server misconfigured"})
        post.assert_not_called()

    def test_unexpected_error_is_generic(self):
        with patch("payments.views.verify_payment", side_effect=RuntimeError("stack details")):
            with self.assertLogs("payments.views", level="ERROR"):
                resp, _ = self._verify()
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"success": False, "error": "Failed to verify payment"})
