from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from events.models import Event, Team
from .models import Payment, Ticket


class AdminTestCase(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_superuser("desk", "desk@example.com", "pw")
        self.client.force_login(self.user)
        self.event = Event.objects.create(name="RoboSoccer", price_per_head=Decimal("250.00"), max_team_size=4)
        self.team = Team.objects.create(event=self.event, team_name="Sparks", team_size=2)


class TicketAdminTests(AdminTestCase):
    def test_tickets_cannot_be_added_by_hand(self):
        url = reverse("admin:payments_ticket_add")
        self.assertEqual(self.client.get(url).status_code, 403)
        resp = self.client.post(url, {"team": str(self.team.pk), "ticket_code": "RY26-0101-HANDMD"})
        self.assertEqual(resp.status_code, 403)
        self.assertFalse(Ticket.objects.exists())

    def test_ticket_fields_are_read_only(self):
        ticket = Ticket.objects.create(team=self.team, ticket_code="RY26-0101-AAAAAA")
        url = reverse("admin:payments_ticket_change", args=[ticket.pk])
        self.client.post(url, {"ticket_code": "RY26-0101-ZZZZZZ", "pdf_url": ""})
        ticket.refresh_from_db()
        self.assertEqual(ticket.ticket_code, "RY26-0101-AAAAAA")


class PaymentAdminTests(AdminTestCase):
    def test_status_cannot_be_flipped(self):
        payment = Payment.objects.create(team=self.team, amount=50000, razorpay_order_id="order_ADM1")
        url = reverse("admin:payments_payment_change", args=[payment.pk])
        self.client.post(url, {"status": "paid", "razorpay_payment_id": "pay_FAKE"})
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.CREATED)
        self.assertIsNone(payment.razorpay_payment_id)
        self.assertEqual(self.client.get(reverse("admin:payments_payment_add")).status_code, 403)

    def test_changelist_shows_registration_stats(self):
        Payment.objects.create(team=self.team, amount=50000, razorpay_order_id="order_ADM2", status="paid")
        resp = self.client.get(reverse("admin:payments_payment_changelist"))
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, 'id="registration-stats"')
        stats = resp.context["registration_stats"]
        self.assertEqual(stats["paid_registrations"], 1)
        self.assertEqual(stats["total_participants"], 2)
        self.assertEqual(stats["total_revenue"], Decimal("500"))


class TeamAdminTests(AdminTestCase):
    def _run_onspot(self, *teams):
        return self.client.post(
            reverse("admin:events_team_changelist"),
            {"action": "record_onspot_payment", "index": 0, "_selected_action": [str(t.pk) for t in teams]},
            follow=True,
        )

    def test_onspot_action_pays_and_tickets_team(self):
        resp = self._run_onspot(self.team)
        self.assertEqual(resp.status_code, 200)

        payment = Payment.objects.get(team=self.team)
        self.assertEqual(payment.status, Payment.Status.PAID)
        self.assertEqual(payment.amount, 50000)
        self.assertTrue(payment.razorpay_order_id.startswith("ONSPOT-"))
        ticket = Ticket.objects.get(team=self.team)
        self.assertContains(resp, ticket.ticket_code)
        self.team.refresh_from_db()
        self.assertTrue(self.team.is_onspot)

    def test_onspot_action_reports_already_paid_team(self):
        self._run_onspot(self.team)
        resp = self._run_onspot(self.team)
        self.assertContains(resp, "Sparks: Team has already paid")
        self.assertEqual(Payment.objects.filter(team=self.team).count(), 1)

    def test_event_changelist_shows_revenue(self):
        self._run_onspot(self.team)
        resp = self.client.get(reverse("admin:events_event_changelist"))
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, "500")
