import json

import requests
from requests import RequestException
from requests.auth import HTTPBasicAuth

from payments.exceptions import GatewayError

COMMON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


def _auth(config) -> HTTPBasicAuth:
    return HTTPBasicAuth(config.key_id, config.key_secret)


def _parse(resp, what: str) -> dict:
    try: data = resp.json()
    except ValueError: data = {"raw": resp.text}
    if 200 <= resp.status_code < 300:
        return data
    if resp.status_code == 401: hint = "Check RAZORPAY key id/secret."
    elif resp.status_code == 400: hint = "Bad request."
    elif resp.status_code == 404: hint = "Not found."
    else: hint = f"HTTP {resp.status_code}"
    raise GatewayError(f"{what} failed: {hint} Response: {json.dumps(data)[:800]}")


def create_order(config, *, amount: int, currency: str, receipt: str, notes: dict | None = None) -> dict:
    """POST /orders. ``amount`` is in the smallest currency unit (paise)."""
    payload = {
        "amount": amount,
        "currency": currency,
        "receipt": receipt,
        "notes": notes or {},
    }
    try:
        resp = requests.post(
            f"{config.base_url}/orders",
            json=payload,
            headers=COMMON_HEADERS,
            auth=_auth(config),
            timeout=config.timeout,
        )
    except RequestException as e:
        raise GatewayError(f"Gateway request failed: {e}") from e
    data = _parse(resp, "Create order")
    if not data.get("id"):
        raise GatewayError(f"Create order returned no order id. Response: {json.dumps(data)[:800]}")
    return data


def fetch_payment(config, payment_id: str) -> dict:
    """GET /payments/{id}; the returned object carries the authoritative ``status``."""
    try:
        resp = requests.get(
            f"{config.base_url}/payments/{payment_id}",
            headers=COMMON_HEADERS,
            auth=_auth(config),
            timeout=config.timeout,
        )
    except RequestException as e:
        raise GatewayError(f"Gateway request failed: {e}") from e
    return _parse(resp, "Fetch payment")
