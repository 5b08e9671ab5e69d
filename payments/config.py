import logging
from dataclasses import dataclass

from django.conf import settings

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("KEY_ID", "KEY_SECRET")


@dataclass(frozen=True)
class GatewayConfig:
    key_id: str
    key_secret: str
    base_url: str = "https://api.razorpay.com/v1"
    currency: str = "INR"
    timeout: int = 30


def load_gateway_config() -> GatewayConfig:
    """Build a :class:`GatewayConfig` from ``settings.RAZORPAY``.

    Raises :class:`ConfigurationError` when gateway credentials or the default
    database are missing. Only the names of missing values are logged.
    """
    conf = getattr(settings, "RAZORPAY", None) or {}
    missing = [f"RAZORPAY['{k}']" for k in REQUIRED_KEYS if not conf.get(k)]

    db = (getattr(settings, "DATABASES", None) or {}).get("default") or {}
    if not (db.get("ENGINE") and db.get("NAME")):
        missing.append("DATABASES['default']")

    if missing:
        logger.error("Payment configuration incomplete; missing %s", ", ".join(missing))
        raise ConfigurationError(f"Missing settings: {', '.join(missing)}")

    return GatewayConfig(
        key_id=conf["KEY_ID"],
        key_secret=conf["KEY_SECRET"],
        base_url=(conf.get("BASE_URL") or GatewayConfig.base_url).rstrip("/"),
        currency=conf.get("CURRENCY") or GatewayConfig.currency,
        timeout=int(conf.get("TIMEOUT") or GatewayConfig.timeout),
    )
