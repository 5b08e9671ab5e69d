import json
import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt

from .config import load_gateway_config
from .exceptions import PaymentError
from .services import create_order, verify_payment

logger = logging.getLogger(__name__)

VERIFY_FIELDS = ["razorpay_order_id", "razorpay_payment_id", "razorpay_signature", "teamId"]


def _json_body(request):
    try: body = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError): return None
    return body if isinstance(body, dict) else None


def _error(message, status):
    return JsonResponse({"success": False, "error": message}, status=status)


def _missing(body, fields):
    return [k for k in fields if not isinstance(body.get(k), str) or not body.get(k).strip()]


def _payment_payload(payment):
    return {
        "id": str(payment.id),
        "team_id": str(payment.team_id),
        "amount": payment.amount,
        "currency": payment.currency,
        "status": payment.status,
        "razorpay_order_id": payment.razorpay_order_id,
        "payment_ref": payment.razorpay_payment_id,
        "paid_at": payment.paid_at.isoformat() if payment.paid_at else None,
        "created_at": payment.created_at.isoformat(),
    }


def _ticket_payload(ticket):
    return {
        "id": str(ticket.id),
        "team_id": str(ticket.team_id),
        "ticket_code": ticket.ticket_code,
        "pdf_url": ticket.pdf_url or None,
        "created_at": ticket.created_at.isoformat(),
    }


def _create_order(body, config):
    event_name = body.get("eventName")
    if not isinstance(event_name, str) or not event_name.strip():
        event_name = None
    handle = create_order(body["teamId"].strip(), config=config, event_name=event_name)
    return JsonResponse({
        "success": True,
        "orderId": handle.order_id,
        "amount": handle.amount,
        "currency": handle.currency,
    })


def _verify_payment(body, config):
    result = verify_payment(
        order_id=body["razorpay_order_id"],
        payment_id=body["razorpay_payment_id"],
        signature=body["razorpay_signature"],
        team_id=body["teamId"].strip(),
        config=config,
    )
    captured = result.gateway_payment.get("amount", result.payment.amount)
    return JsonResponse({
        "success": True,
        "message": "Payment verified successfully",
        "paymentId": body["razorpay_payment_id"],
        "orderId": body["razorpay_order_id"],
        "amount": captured / 100,  # rupees
        "payment": _payment_payload(result.payment),
        "ticket": _ticket_payload(result.ticket),
    })


ACTIONS = {
    "create-order": (["teamId"], _create_order),
    "verify-payment": (VERIFY_FIELDS, _verify_payment),
}


@csrf_exempt
def payment_view(request):
    """Single payment endpoint; the JSON body's ``action`` selects the flow.

    ``create-order`` prices the team and opens a Razorpay order.
    ``verify-payment`` checks the checkout signature, confirms capture with
    Razorpay and issues the team's ticket. Requests are rejected before any
    gateway or database access unless they are well-formed POSTs.
    """
    if request.method != "POST":
        return _error("Method not allowed", 405)

    body = _json_body(request)
    if body is None:
        return _error("Invalid JSON body", 400)

    action = body.get("action")
    if not isinstance(action, str) or action not in ACTIONS:
        return _error("Invalid action", 400)
    required, handler = ACTIONS[action]
    missing = _missing(body, required)
    if missing:
        return _error(f"Missing fields: {', '.join(missing)}", 400)

    try:
        config = load_gateway_config()
        return handler(body, config)
    except PaymentError as e:
        if e.status_code >= 500:
            logger.error("%s failed: %s: %s", action, type(e).__name__, e)
        else:
            logger.info("%s rejected: %s: %s", action, type(e).__name__, e)
        return _error(e.public_message, e.status_code)
    except Exception:
        logger.exception("Unexpected error during %s", action)
        return _error("Failed to create order" if action == "create-order" else "Failed to verify payment", 500)
