import hashlib
import hmac
from decimal import Decimal
from unittest.mock import patch

import requests
from django.db import DatabaseError
from django.db.models.query import QuerySet
from django.test import SimpleTestCase, TestCase, override_settings

from events.models import Event, Team
from . import services, utils
from .config import GatewayConfig, load_gateway_config
from .exceptions import (
    ConfigurationError,
    GatewayError,
    InvalidPricingError,
    InvalidSignatureError,
    InvalidTeamError,
    PaymentNotCapturedError,
    PaymentRecordNotFoundError,
    PersistenceError,
    TeamAlreadyPaidError,
)
from .models import Payment, Ticket

CONFIG = GatewayConfig(key_id="rzp_test_key", key_secret="test_key_secret", base_url="https://api.razorpay.test/v1")


def sign(order_id, payment_id, secret=CONFIG.key_secret):
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


class FakeResponse:
    def __init__(self, status_code=200, data=None, text=""):
        self.status_code = status_code
        self._data = data
        self.text = text

    def json(self):
        if self._data is None:
            raise ValueError("no json")
        return self._data


class VerifySignatureTests(SimpleTestCase):
    def test_matches_razorpay_hmac(self):
        sig = sign("order_1", "pay_1")
        self.assertTrue(utils.verify_signature("order_1", "pay_1", sig, CONFIG.key_secret))

    def test_is_deterministic(self):
        sig = sign("order_1", "pay_1")
        results = {utils.verify_signature("order_1", "pay_1", sig, CONFIG.key_secret) for _ in range(5)}
        self.assertEqual(results, {True})

    def test_any_flipped_character_fails(self):
        sig = sign("order_1", "pay_1")
        for i in range(len(sig)):
            flipped = "0" if sig[i] != "0" else "1"
            tampered = sig[:i] + flipped + sig[i + 1:]
            self.assertFalse(utils.verify_signature("order_1", "pay_1", tampered, CONFIG.key_secret), i)

    def test_wrong_secret_or_swapped_ids_fail(self):
        sig = sign("order_1", "pay_1")
        self.assertFalse(utils.verify_signature("order_1", "pay_1", sig, "other_secret"))
        self.assertFalse(utils.verify_signature("pay_1", "order_1", sig, CONFIG.key_secret))

    def test_missing_values_never_verify(self):
        self.assertFalse(utils.verify_signature("order_1", "pay_1", "", CONFIG.key_secret))
        self.assertFalse(utils.verify_signature("order_1", "pay_1", None, CONFIG.key_secret))
        self.assertFalse(utils.verify_signature("order_1", "pay_1", "é" * 64, CONFIG.key_secret))


class ReceiptAndTicketCodeTests(SimpleTestCase):
    def test_receipt_fits_gateway_limit(self):
        receipt = utils.build_receipt("0f8fad5b-d9cb-469f-a165-70867728950e")
        self.assertTrue(receipt.startswith("team_7728950e_"))
        self.assertLessEqual(len(receipt), 40)

    @override_settings(TICKET_CODE_PREFIX="RY26")
    def test_ticket_code_format(self):
        code = utils.gen_ticket_code()
        self.assertRegex(code, r"^RY26-\d{4}-[0-9A-F]{6}$")


class LoadGatewayConfigTests(SimpleTestCase):
    @override_settings(RAZORPAY={"KEY_ID": "id", "KEY_SECRET": "secret", "BASE_URL": "https://x.test/v1/"})
    def test_builds_config(self):
        config = load_gateway_config()
        self.assertEqual(config.key_id, "id")
        self.assertEqual(config.base_url, "https://x.test/v1")
        self.assertEqual(config.currency, "INR")

    @override_settings(RAZORPAY={"KEY_ID": "id", "KEY_SECRET": ""})
    def test_missing_secret_raises(self):
        with self.assertLogs("payments.config", level="ERROR") as cm:
            with self.assertRaises(ConfigurationError):
                load_gateway_config()
        self.assertIn("KEY_SECRET", cm.output[0])


class PricingTestMixin:
    def make_team(self, price=Decimal("200.00"), size=3, with_event=True):
        event = Event.objects.create(name="RoboWars", price_per_head=price, max_team_size=4) if with_event else None
        return Team.objects.create(event=event, team_name="Bolt", team_size=size)


class ResolveAmountTests(PricingTestMixin, TestCase):
    def test_amount_in_paise(self):
        team = self.make_team(price=Decimal("200.00"), size=3)
        _, amount = services.resolve_amount(team.pk)
        self.assertEqual(amount, 60000)

    def test_formula_holds_for_fractional_prices(self):
        for price, size in [("99.99", 1), ("149.50", 3), ("0.01", 1), ("1234.56", 4)]:
            team = self.make_team(price=Decimal(price), size=size)
            _, amount = services.resolve_amount(team.pk)
            self.assertEqual(amount, round(Decimal(price) * size * 100))
            self.assertIsInstance(amount, int)
            self.assertGreater(amount, 0)

    def test_unknown_team(self):
        with self.assertRaises(InvalidTeamError):
            services.resolve_amount("0f8fad5b-d9cb-469f-a165-70867728950e")
        with self.assertRaises(InvalidTeamError):
            services.resolve_amount("not-a-uuid")

    def test_team_without_event(self):
        team = self.make_team(with_event=False)
        with self.assertRaises(InvalidTeamError):
            services.resolve_amount(team.pk)

    def test_missing_or_zero_pricing(self):
        for price, size in [(None, 3), (Decimal("200.00"), None), (Decimal("0.00"), 3), (Decimal("200.00"), 0)]:
            team = self.make_team(price=price, size=size)
            with self.assertRaises(InvalidPricingError):
                services.resolve_amount(team.pk)


class CreateOrderTests(PricingTestMixin, TestCase):
    def setUp(self):
        self.team = self.make_team()

    def test_creates_gateway_order_and_pending_payment(self):
        resp = FakeResponse(200, {"id": "order_A1", "amount": 60000, "currency": "INR"})
        with patch("payments.integrations.razorpay.requests.post", return_value=resp) as post:
            handle = services.create_order(self.team.pk, config=CONFIG, event_name="RoboWars")

        self.assertEqual((handle.order_id, handle.amount, handle.currency), ("order_A1", 60000, "INR"))
        payment = Payment.objects.get()
        self.assertEqual(payment.razorpay_order_id, "order_A1")
        self.assertEqual(payment.amount, 60000)
        self.assertEqual(payment.status, Payment.Status.CREATED)

        post.assert_called_once()
        kwargs = post.call_args.kwargs
        self.assertEqual(post.call_args.args[0], "https://api.razorpay.test/v1/orders")
        self.assertEqual(kwargs["json"]["amount"], 60000)
        self.assertEqual(kwargs["json"]["currency"], "INR")
        self.assertEqual(kwargs["json"]["notes"], {"team_id": str(self.team.pk), "event_name": "RoboWars"})
        self.assertLessEqual(len(kwargs["json"]["receipt"]), 40)
        self.assertEqual((kwargs["auth"].username, kwargs["auth"].password), ("rzp_test_key", "test_key_secret"))

    def test_event_name_defaults_to_team_event(self):
        resp = FakeResponse(200, {"id": "order_A2", "amount": 60000, "currency": "INR"})
        with patch("payments.integrations.razorpay.requests.post", return_value=resp) as post:
            services.create_order(self.team.pk, config=CONFIG)
        self.assertEqual(post.call_args.kwargs["json"]["notes"]["event_name"], "RoboWars")

    def test_gateway_failure_creates_nothing(self):
        with patch("payments.integrations.razorpay.requests.post", return_value=FakeResponse(401, {"error": {}})):
            with self.assertRaises(GatewayError):
                services.create_order(self.team.pk, config=CONFIG)
        with patch("payments.integrations.razorpay.requests.post", side_effect=requests.ConnectionError("down")):
            with self.assertRaises(GatewayError):
                services.create_order(self.team.pk, config=CONFIG)
        with patch("payments.integrations.razorpay.requests.post", return_value=FakeResponse(200, {"status": "x"})):
            with self.assertRaises(GatewayError):
                services.create_order(self.team.pk, config=CONFIG)
        self.assertFalse(Payment.objects.exists())

    def test_invalid_pricing_never_calls_gateway(self):
        self.team.event.price_per_head = None
        self.team.event.save()
        with patch("payments.integrations.razorpay.requests.post") as post:
            with self.assertRaises(InvalidPricingError):
                services.create_order(self.team.pk, config=CONFIG)
        post.assert_not_called()

    def test_persistence_failure_after_gateway_is_logged(self):
        resp = FakeResponse(200, {"id": "order_ORPHAN", "amount": 60000, "currency": "INR"})
        with patch("payments.integrations.razorpay.requests.post", return_value=resp), \
            patch("payments.services.Payment.objects.create", side_effect=DatabaseError("db down")):
            with self.assertLogs("payments.services", level="ERROR") as cm:
                with self.assertRaises(PersistenceError):
                    services.create_order(self.team.pk, config=CONFIG)
        self.assertIn("order_ORPHAN", cm.output[0])

    def test_paid_team_cannot_open_another_order(self):
        Payment.objects.create(team=self.team, amount=60000, razorpay_order_id="order_PAID", status="paid")
        with patch("payments.integrations.razorpay.requests.post") as post:
            with self.assertRaises(TeamAlreadyPaidError):
                services.create_order(self.team.pk, config=CONFIG)
        post.assert_not_called()

    def test_ticketed_team_cannot_open_another_order(self):
        Ticket.objects.create(team=self.team, ticket_code="RY26-0101-CCCCCC")
        with patch("payments.integrations.razorpay.requests.post") as post:
            with self.assertRaises(TeamAlreadyPaidError):
                services.create_order(self.team.pk, config=CONFIG)
        post.assert_not_called()

    def test_repeat_create_order_makes_separate_payments(self):
        responses = [
            FakeResponse(200, {"id": "order_R1", "amount": 60000, "currency": "INR"}),
            FakeResponse(200, {"id": "order_R2", "amount": 60000, "currency": "INR"}),
        ]
        with patch("payments.integrations.razorpay.requests.post", side_effect=responses):
            services.create_order(self.team.pk, config=CONFIG)
            services.create_order(self.team.pk, config=CONFIG)
        self.assertEqual(
            sorted(Payment.objects.values_list("razorpay_order_id", flat=True)), ["order_R1", "order_R2"]
        )


class ConfirmCaptureTests(SimpleTestCase):
    def test_captured_passes(self):
        data = {"id": "pay_1", "status": "captured", "amount": 60000}
        with patch("payments.integrations.razorpay.requests.get", return_value=FakeResponse(200, data)) as get:
            self.assertEqual(services.confirm_capture("pay_1", config=CONFIG), data)
        self.assertEqual(get.call_args.args[0], "https://api.razorpay.test/v1/payments/pay_1")

    def test_other_statuses_fail_with_status(self):
        for status in ["authorized", "failed", "refunded", "created"]:
            resp = FakeResponse(200, {"id": "pay_1", "status": status})
            with patch("payments.integrations.razorpay.requests.get", return_value=resp):
                with self.assertRaises(PaymentNotCapturedError) as cm:
                    services.confirm_capture("pay_1", config=CONFIG)
            self.assertEqual(cm.exception.status, status)
            self.assertIn(status, cm.exception.public_message)

    def test_gateway_error(self):
        with patch("payments.integrations.razorpay.requests.get", return_value=FakeResponse(500, text="oops")):
            with self.assertRaises(GatewayError):
                services.confirm_capture("pay_1", config=CONFIG)


class IssueTicketTests(PricingTestMixin, TestCase):
    def setUp(self):
        self.team = self.make_team()
        self.payment = Payment.objects.create(team=self.team, amount=60000, razorpay_order_id="order_T1")

    def test_marks_paid_and_issues_ticket(self):
        ticket, payment = services.issue_ticket(self.team.pk, "order_T1", "pay_T1", {"status": "captured"})
        self.assertEqual(payment.pk, self.payment.pk)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.PAID)
        self.assertEqual(self.payment.razorpay_payment_id, "pay_T1")
        self.assertIsNotNone(self.payment.paid_at)
        self.assertTrue(ticket.ticket_code)
        self.assertEqual(ticket.team_id, self.team.pk)

    def test_repeat_is_idempotent(self):
        first, _ = services.issue_ticket(self.team.pk, "order_T1", "pay_T1")
        self.payment.refresh_from_db()
        paid_at = self.payment.paid_at
        second, _ = services.issue_ticket(self.team.pk, "order_T1", "pay_T1")
        self.assertEqual((first.pk, first.ticket_code), (second.pk, second.ticket_code))
        self.assertEqual(Ticket.objects.filter(team=self.team).count(), 1)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.paid_at, paid_at)

    def test_different_reference_on_paid_order_is_not_overwritten(self):
        services.issue_ticket(self.team.pk, "order_T1", "pay_T1")
        with self.assertLogs("payments.services", level="WARNING"):
            services.issue_ticket(self.team.pk, "order_T1", "pay_OTHER")
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.razorpay_payment_id, "pay_T1")

    def test_existing_ticket_is_returned(self):
        existing = Ticket.objects.create(team=self.team, ticket_code="RY26-0101-AAAAAA")
        ticket, _ = services.issue_ticket(self.team.pk, "order_T1", "pay_T1")
        self.assertEqual(ticket.pk, existing.pk)

    def test_matches_on_order_reference_not_latest_row(self):
        Payment.objects.create(team=self.team, amount=60000, razorpay_order_id="order_T2")
        services.issue_ticket(self.team.pk, "order_T1", "pay_T1")
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.PAID)
        self.assertEqual(Payment.objects.get(razorpay_order_id="order_T2").status, Payment.Status.CREATED)

    def test_no_matching_payment(self):
        other = self.make_team()
        for team_id, order_id in [(self.team.pk, "order_NOPE"), (other.pk, "order_T1"), ("bad-uuid", "order_T1")]:
            with self.assertRaises(PaymentRecordNotFoundError):
                services.issue_ticket(team_id, order_id, "pay_T1")
        self.assertFalse(Ticket.objects.exists())

    def test_second_paid_payment_for_team_is_rejected(self):
        Payment.objects.create(team=self.team, amount=60000, razorpay_order_id="order_T2")
        services.issue_ticket(self.team.pk, "order_T1", "pay_T1")
        with self.assertLogs("payments.services", level="ERROR"):
            with self.assertRaises(PersistenceError):
                services.issue_ticket(self.team.pk, "order_T2", "pay_T2")
        self.assertEqual(Payment.objects.get(razorpay_order_id="order_T2").status, Payment.Status.CREATED)
        self.assertEqual(Ticket.objects.count(), 1)

    def test_ticket_inserted_by_concurrent_request_is_returned(self):
        real_get = QuerySet.get
        competitor = {}

        def racing_get(qs, *args, **kwargs):
            # another verify-payment inserts the team's ticket between lookup and insert
            if qs.model is Ticket and not competitor:
                competitor["ticket"] = Ticket.objects.create(team=self.team, ticket_code="RY26-0101-RACE01")
                raise Ticket.DoesNotExist
            return real_get(qs, *args, **kwargs)

        with patch.object(QuerySet, "get", autospec=True, side_effect=racing_get):
            ticket, payment = services.issue_ticket(self.team.pk, "order_T1", "pay_T1")

        self.assertEqual(ticket.pk, competitor["ticket"].pk)
        self.assertEqual(Ticket.objects.filter(team=self.team).count(), 1)
        self.assertEqual(payment.status, Payment.Status.PAID)

    def test_repeated_verifications_leave_one_ticket(self):
        tickets = {services.issue_ticket(self.team.pk, "order_T1", "pay_T1")[0].pk for _ in range(5)}
        self.assertEqual(len(tickets), 1)
        self.assertEqual(Ticket.objects.count(), 1)

    def test_ticket_code_collision_is_retried(self):
        other = self.make_team()
        Ticket.objects.create(team=other, ticket_code="RY26-0101-AAAAAA")
        codes = ["RY26-0101-AAAAAA", "RY26-0101-BBBBBB"]
        with patch("payments.services.gen_ticket_code", side_effect=codes):
            with self.assertLogs("payments.services", level="WARNING") as cm:
                ticket, _ = services.issue_ticket(self.team.pk, "order_T1", "pay_T1")
        self.assertEqual(ticket.ticket_code, "RY26-0101-BBBBBB")
        self.assertIn("collision", cm.output[0])

    def test_ticket_code_collisions_exhausted(self):
        other = self.make_team()
        Ticket.objects.create(team=other, ticket_code="RY26-0101-AAAAAA")
        with patch("payments.services.gen_ticket_code", return_value="RY26-0101-AAAAAA"):
            with self.assertLogs("payments.services", level="ERROR"):
                with self.assertRaises(PersistenceError):
                    services.issue_ticket(self.team.pk, "order_T1", "pay_T1")
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.CREATED)
        self.assertFalse(Ticket.objects.filter(team=self.team).exists())

    def test_database_error_becomes_persistence_error(self):
        with patch("payments.services.Ticket.objects.get_or_create", side_effect=DatabaseError("boom")):
            with self.assertLogs("payments.services", level="ERROR"):
                with self.assertRaises(PersistenceError):
                    services.issue_ticket(self.team.pk, "order_T1", "pay_T1")
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.Status.CREATED)


class VerifyPaymentOrderingTests(SimpleTestCase):
    def test_bad_signature_stops_before_gateway_and_database(self):
        with patch("payments.services.confirm_capture") as confirm, \
            patch("payments.services.issue_ticket") as issue:
            with self.assertLogs("payments.services", level="WARNING"):
                with self.assertRaises(InvalidSignatureError):
                    services.verify_payment(
                        order_id="order_1", payment_id="pay_1", signature="deadbeef",
                        team_id="team", config=CONFIG,
                    )
        confirm.assert_not_called()
        issue.assert_not_called()

    def test_not_captured_stops_before_ticket(self):
        with patch("payments.services.confirm_capture", side_effect=PaymentNotCapturedError("authorized")), \
            patch("payments.services.issue_ticket") as issue:
            with self.assertRaises(PaymentNotCapturedError):
                services.verify_payment(
                    order_id="order_1", payment_id="pay_1", signature=sign("order_1", "pay_1"),
                    team_id="team", config=CONFIG,
                )
        issue.assert_not_called()

    def test_steps_run_in_sequence(self):
        gateway_payment = {"status": "captured", "amount": 60000}
        with patch("payments.services.confirm_capture", return_value=gateway_payment) as confirm, \
            patch("payments.services.issue_ticket", return_value=("ticket", "payment")) as issue:
            result = services.verify_payment(
                order_id="order_1", payment_id="pay_1", signature=sign("order_1", "pay_1"),
                team_id="team", config=CONFIG,
            )
        confirm.assert_called_once_with("pay_1", config=CONFIG)
        issue.assert_called_once_with("team", "order_1", "pay_1", gateway_payment)
        self.assertEqual(result.ticket, "ticket")


class SettleOnspotTests(PricingTestMixin, TestCase):
    def setUp(self):
        self.team = self.make_team(price=Decimal("150.00"), size=2)

    def test_records_paid_payment_and_ticket(self):
        ticket, payment = services.settle_onspot(self.team)

        self.assertEqual(payment.status, Payment.Status.PAID)
        self.assertEqual(payment.amount, 30000)
        self.assertTrue(payment.razorpay_order_id.startswith("ONSPOT-"))
        self.assertEqual(payment.razorpay_payment_id, payment.razorpay_order_id)
        self.assertEqual(ticket.team_id, self.team.pk)
        self.team.refresh_from_db()
        self.assertTrue(self.team.is_onspot)

    def test_already_paid_team_is_rejected(self):
        services.settle_onspot(self.team)
        with self.assertRaises(TeamAlreadyPaidError):
            services.settle_onspot(self.team)
        self.assertEqual(Payment.objects.filter(team=self.team).count(), 1)

    def test_ticket_failure_rolls_back_payment(self):
        with patch("payments.services.Ticket.objects.get_or_create", side_effect=DatabaseError("boom")):
            with self.assertLogs("payments.services", level="ERROR"):
                with self.assertRaises(PersistenceError):
                    services.settle_onspot(self.team)
        self.assertFalse(Payment.objects.exists())
        self.team.refresh_from_db()
        self.assertFalse(self.team.is_onspot)

    def test_invalid_pricing_records_nothing(self):
        self.team.event.price_per_head = None
        self.team.event.save()
        with self.assertRaises(InvalidPricingError):
            services.settle_onspot(self.team)
        self.assertFalse(Payment.objects.exists())
        self.assertFalse(Ticket.objects.exists())


class RegistrationStatsTests(PricingTestMixin, TestCase):
    def test_totals(self):
        paid = self.make_team(price=Decimal("200.00"), size=3)
        pending = self.make_team(price=Decimal("100.00"), size=2)
        self.make_team(price=Decimal("100.00"), size=4)
        services.settle_onspot(paid)
        Payment.objects.create(team=pending, amount=20000, razorpay_order_id="order_S1")

        stats = services.registration_stats()
        self.assertEqual(stats, {
            "total_registrations": 3,
            "total_participants": 9,
            "paid_registrations": 1,
            "unpaid_registrations": 1,
            "total_revenue": 60000,
            "pending_revenue": 20000,
        })

        per_event = services.registration_stats(event=paid.event)
        self.assertEqual(per_event["total_registrations"], 1)
        self.assertEqual(per_event["total_revenue"], 60000)
        self.assertEqual(per_event["unpaid_registrations"], 0)
