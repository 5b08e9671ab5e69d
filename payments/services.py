import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import NamedTuple

from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Count, Sum
from django.utils import timezone

from events.models import Team
from .exceptions import (
    InvalidPricingError,
    InvalidSignatureError,
    InvalidTeamError,
    PaymentNotCapturedError,
    PaymentRecordNotFoundError,
    PersistenceError,
    TeamAlreadyPaidError,
)
from .integrations.razorpay import create_order as razorpay_create_order, fetch_payment as razorpay_fetch_payment
from .models import Payment, Ticket
from .utils import build_receipt, gen_onspot_ref, gen_ticket_code, verify_signature

logger = logging.getLogger(__name__)

TICKET_CODE_ATTEMPTS = 5


class OrderHandle(NamedTuple):
    order_id: str
    amount: int
    currency: str
    payment: Payment


class VerificationResult(NamedTuple):
    ticket: Ticket
    payment: Payment
    gateway_payment: dict


def resolve_amount(team_id) -> tuple[Team, int]:
    """Return ``(team, amount_in_paise)`` for a team's registration fee."""
    try:
        team = Team.objects.select_related("event").get(pk=team_id)
    except (Team.DoesNotExist, ValidationError, ValueError, TypeError):
        raise InvalidTeamError(f"Team {team_id!r} not found")
    if team.event is None:
        raise InvalidTeamError(f"Team {team.pk} has no linked event")

    price, size = team.event.price_per_head, team.team_size
    if price is None or size is None or isinstance(size, bool):
        raise InvalidPricingError(f"Team {team.pk}: price_per_head={price!r} team_size={size!r}")
    try:
        paise = (Decimal(str(price)) * int(size) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidPricingError(f"Team {team.pk}: non-numeric pricing {price!r} x {size!r}")
    amount = int(paise)
    if amount <= 0:
        raise InvalidPricingError(f"Team {team.pk}: non-positive amount {amount}")
    return team, amount


def ensure_not_paid(team):
    if Payment.objects.filter(team=team, status=Payment.Status.PAID).exists() or Ticket.objects.filter(team=team).exists():
        raise TeamAlreadyPaidError(f"Team {team.pk} already has a paid payment or ticket")


def create_order(team_id, *, config, event_name=None) -> OrderHandle:
    team, amount = resolve_amount(team_id)
    ensure_not_paid(team)
    receipt = build_receipt(team.pk)
    notes = {"team_id": str(team.pk), "event_name": event_name or team.event.name}

    order = razorpay_create_order(
        config, amount=amount, currency=config.currency, receipt=receipt, notes=notes
    )
    order_id = order["id"]

    # The gateway order exists from here on; a failed insert leaves it orphaned.
    try:
        payment = Payment.objects.create(
            team=team,
            amount=amount,
            currency=order.get("currency") or config.currency,
            status=Payment.Status.CREATED,
            razorpay_order_id=order_id,
            receipt=receipt,
        )
    except DatabaseError as e:
        logger.exception(
            "Razorpay order %s created for team %s (amount=%s) but the payment row was not saved",
            order_id, team.pk, amount,
        )
        raise PersistenceError(f"Could not save payment for order {order_id}") from e

    logger.info("Created order %s for team %s: %s %s", order_id, team.pk, amount, payment.currency)
    return OrderHandle(order_id=order_id, amount=amount, currency=payment.currency, payment=payment)


def confirm_capture(payment_id: str, *, config) -> dict:
    """Ask Razorpay for the payment and accept it only if it is captured."""
    data = razorpay_fetch_payment(config, payment_id)
    status = str(data.get("status") or "")
    if status != "captured":
        logger.warning("Payment %s not captured (status=%s)", payment_id, status or "unknown")
        raise PaymentNotCapturedError(status)
    return data


def _get_or_create_ticket(team_id):
    # get_or_create returns the row another request inserted for the same team;
    # an IntegrityError that survives it is a ticket_code collision.
    for attempt in range(1, TICKET_CODE_ATTEMPTS + 1):
        try:
            return Ticket.objects.get_or_create(team_id=team_id, defaults={"ticket_code": gen_ticket_code()})
        except IntegrityError:
            if attempt == TICKET_CODE_ATTEMPTS:
                raise
            logger.warning("Ticket code collision for team %s (attempt %s); retrying", team_id, attempt)


def issue_ticket(team_id, order_id: str, payment_ref: str, gateway_payment: dict | None = None):
    """Mark the team's payment for ``order_id`` paid and return ``(ticket, payment)``.

    Safe to call repeatedly: an already-paid payment is left as is and the
    existing ticket is returned.
    """
    try:
        with transaction.atomic():
            try:
                payment = (
                    Payment.objects.select_for_update()
                    .filter(team_id=team_id, razorpay_order_id=order_id)
                    .first()
                )
            except (ValidationError, ValueError):
                payment = None
            if payment is None:
                raise PaymentRecordNotFoundError(f"No payment for team {team_id!r} and order {order_id!r}")

            if payment.status == Payment.Status.PAID:
                if payment.razorpay_payment_id != payment_ref:
                    logger.warning(
                        "Order %s already paid with %s; ignoring second payment %s",
                        order_id, payment.razorpay_payment_id, payment_ref,
                    )
            else:
                payment.status = Payment.Status.PAID
                payment.razorpay_payment_id = payment_ref
                payment.paid_at = timezone.now()
                payment.gateway_payload = gateway_payment or None
                payment.save(update_fields=["status", "razorpay_payment_id", "paid_at", "gateway_payload", "updated_at"])

            ticket, created = _get_or_create_ticket(payment.team_id)
    except DatabaseError as e:
        logger.exception("Failed to record payment %s for order %s (team %s)", payment_ref, order_id, team_id)
        raise PersistenceError(f"Database error while issuing ticket for order {order_id}") from e

    if created:
        logger.info("Issued ticket %s to team %s for order %s", ticket.ticket_code, payment.team_id, order_id)
    return ticket, payment


def verify_payment(*, order_id, payment_id, signature, team_id, config) -> VerificationResult:
    """Signature check, then capture check, then ticket issuance; stops at the first failure."""
    if not verify_signature(order_id, payment_id, signature, config.key_secret):
        logger.warning(
            "Signature mismatch for order=%s payment=%s team=%s; possible tampering",
            order_id, payment_id, team_id,
        )
        raise InvalidSignatureError(f"Bad signature for order {order_id}")

    gateway_payment = confirm_capture(payment_id, config=config)
    ticket, payment = issue_ticket(team_id, order_id, payment_id, gateway_payment)
    return VerificationResult(ticket=ticket, payment=payment, gateway_payment=gateway_payment)


def settle_onspot(team) -> tuple[Ticket, Payment]:
    """Record a desk (cash) payment for ``team`` and issue its ticket.

    The payment row is created and marked paid through :func:`issue_ticket`
    in the same transaction, so a ticket never exists without a paid payment.
    """
    team, amount = resolve_amount(team.pk)
    ref = gen_onspot_ref()
    with transaction.atomic():
        ensure_not_paid(team)
        try:
            Team.objects.filter(pk=team.pk).update(is_onspot=True)
            Payment.objects.create(
                team=team, amount=amount, status=Payment.Status.CREATED,
                razorpay_order_id=ref, receipt=build_receipt(team.pk),
            )
        except DatabaseError as e:
            logger.exception("Failed to record on-spot payment %s for team %s", ref, team.pk)
            raise PersistenceError(f"Could not save on-spot payment for team {team.pk}") from e
        ticket, payment = issue_ticket(team.pk, ref, ref, {"method": "onspot", "amount": amount})
    logger.info("On-spot payment %s recorded for team %s", ref, team.pk)
    return ticket, payment


def registration_stats(event=None) -> dict:
    """Team, participant and revenue totals, optionally for one event. Amounts are in paise."""
    teams = Team.objects.all()
    payments = Payment.objects.all()
    if event is not None:
        teams = teams.filter(event=event)
        payments = payments.filter(team__event=event)

    paid = payments.filter(status=Payment.Status.PAID).aggregate(n=Count("id"), total=Sum("amount"))
    pending = payments.exclude(status=Payment.Status.PAID).aggregate(n=Count("id"), total=Sum("amount"))
    return {
        "total_registrations": teams.count(),
        "total_participants": teams.aggregate(n=Sum("team_size"))["n"] or 0,
        "paid_registrations": paid["n"],
        "unpaid_registrations": pending["n"],
        "total_revenue": paid["total"] or 0,
        "pending_revenue": pending["total"] or 0,
    }
