import hashlib
import hmac
import secrets
import time

from django.conf import settings
from django.utils import timezone

RECEIPT_MAX_LEN = 40  # Razorpay limit


def verify_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    """Check a Razorpay checkout callback signature.

    Razorpay signs ``"<order_id>|<payment_id>"`` with HMAC-SHA256 using the
    key secret and sends the hex digest as ``razorpay_signature``. The digest
    is recomputed here and compared exactly (in constant time). Missing or
    non-string values never verify.
    """
    if not all(isinstance(v, str) and v for v in (order_id, payment_id, signature, secret)):
        return False
    msg = f"{order_id}|{payment_id}".encode("utf-8")
    expected = hmac.new(secret.encode("utf-8"), msg, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def build_receipt(team_id) -> str:
    # e.g. team_1a2b3c4d_1760851200000
    suffix = str(team_id).replace("-", "")[-8:]
    return f"team_{suffix}_{int(time.time() * 1000)}"[:RECEIPT_MAX_LEN]


def gen_ticket_code() -> str:
    # e.g. RY26-1019-3FA9C2
    prefix = getattr(settings, "TICKET_CODE_PREFIX", "RY26")
    now = timezone.now()
    return f"{prefix}-{now.strftime('%m%d')}-{secrets.token_hex(3).upper()}"


def gen_onspot_ref() -> str:
    # e.g. ONSPOT-1760851200000-3FA9; stands in for both gateway references
    return f"ONSPOT-{int(time.time() * 1000)}-{secrets.token_hex(2).upper()}"
