"""
Webhook signature verification shared by the CRM providers and the
webhook blueprints.
"""
import base64
import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)


def _digest(secret: str, data: bytes) -> bytes:
    return hmac.new(secret.encode('utf-8'), data, hashlib.sha256).digest()


def verify_shopify_webhook_signature(data: bytes, hmac_header: str, secret: str) -> bool:
    """
    Verify a Shopify webhook: base64 HMAC-SHA256 of the raw body.

    Args:
        data: Raw request body bytes
        hmac_header: The X-Shopify-Hmac-SHA256 header value
        secret: The app's API secret

    Returns:
        True if signature is valid, False otherwise
    """
    if not secret:
        logger.warning('No Shopify secret configured for webhook verification')
        return False
    if not hmac_header:
        logger.warning('No HMAC header in Shopify webhook request')
        return False

    computed = base64.b64encode(_digest(secret, data)).decode('utf-8')
    return hmac.compare_digest(computed, hmac_header)


def verify_commerce7_webhook_signature(data: bytes, signature_header: str, secret: str) -> bool:
    """Verify a Commerce7 webhook: hex HMAC-SHA256 of the raw body."""
    if not secret:
        logger.warning('No Commerce7 webhook secret configured for verification')
        return False
    if not signature_header:
        logger.warning('No signature header in Commerce7 webhook request')
        return False

    computed = _digest(secret, data).hex()
    return hmac.compare_digest(computed, signature_header.strip().lower())


def verify_basic_auth(authorization: str, username: str, password: str) -> bool:
    """Check an ``Authorization: Basic ...`` header against fixed credentials."""
    if not authorization or not authorization.startswith('Basic ') or not username:
        return False
    try:
        decoded = base64.b64decode(authorization[6:]).decode('utf-8')
    except (ValueError, UnicodeDecodeError):
        return False
    user, _, secret = decoded.partition(':')
    return hmac.compare_digest(user, username) and hmac.compare_digest(secret, password or '')
